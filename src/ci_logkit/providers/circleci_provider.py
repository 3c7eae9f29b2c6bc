from __future__ import annotations
from typing import Any, Dict, List
from .base import CIProvider, ActionDetail, Artifact, JobDetails, StepDetail, StepOutput
from .circleci_api import CircleCIClient, DEFAULT_BASE_URL


def _action(a: Dict[str, Any]) -> ActionDetail:
    return ActionDetail(
        index=int(a.get("index") or 0), step=int(a.get("step") or 0),
        failed=bool(a.get("failed")), has_output=bool(a.get("has_output")),
        canceled=bool(a.get("canceled")), status=a.get("status"), exit_code=a.get("exit_code"),
        start_time=a.get("start_time"), end_time=a.get("end_time"),
    )


def job_details_from_v1(d: Dict[str, Any]) -> JobDetails:
    wf = d.get("workflows") or {}
    return JobDetails(
        job_name=wf.get("job_name") or d.get("job_name") or "",
        job_number=int(d.get("build_num") or 0),
        workflow_id=wf.get("workflow_id"),
        steps=[StepDetail(name=s.get("name") or "", actions=[_action(a) for a in s.get("actions") or []])
               for s in d.get("steps") or []],
    )


class CircleCIProvider(CIProvider):
    def __init__(self, token: str | None, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0, transport=None):
        self.api = CircleCIClient(token=token, base_url=base_url, timeout=timeout, transport=transport)

    async def close(self):
        await self.api.aclose()

    async def get_job_details(self, *, project_slug: str, job_number: int) -> JobDetails:
        return job_details_from_v1(await self.api.get_job_details(project_slug, job_number))

    async def get_step_output(self, *, project_slug: str, job_number: int, step_id: int, action_index: int) -> StepOutput:
        d = await self.api.get_step_output(project_slug, job_number, step_id, action_index)
        return StepOutput(output=d.get("output") or "", error=d.get("error") or "")

    async def list_job_artifacts(self, *, project_slug: str, job_number: int) -> List[Artifact]:
        items = await self.api.list_job_artifacts(project_slug, job_number)
        return [Artifact(path=i.get("path", ""), url=i.get("url", ""), node_index=int(i.get("node_index") or 0),
                         size=int(i.get("size") or 0)) for i in items]
