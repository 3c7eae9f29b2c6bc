from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Protocol


@dataclass
class ActionDetail:
    index: int
    step: int              # internal step id used by the output endpoint
    failed: bool
    has_output: bool
    canceled: bool = False
    status: Optional[str] = None
    exit_code: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


@dataclass
class StepDetail:
    name: str
    actions: List[ActionDetail] = field(default_factory=list)


@dataclass
class JobDetails:
    job_name: str
    job_number: int
    workflow_id: Optional[str]
    steps: List[StepDetail]


@dataclass
class StepOutput:
    output: str
    error: str


@dataclass
class Artifact:
    path: str
    url: str
    node_index: int
    size: int = 0


class CIProvider(Protocol):
    async def get_job_details(self, *, project_slug: str, job_number: int) -> JobDetails: ...
    async def get_step_output(self, *, project_slug: str, job_number: int, step_id: int, action_index: int) -> StepOutput: ...
    async def list_job_artifacts(self, *, project_slug: str, job_number: int) -> List[Artifact]: ...
