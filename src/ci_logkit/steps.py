from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .errors import ValidationError
from .models import (
    JobStepsResult,
    NoStepsMatched,
    StepLogEntry,
    StepLogsResult,
    StepLogsSummary,
    StepMetadataEntry,
    StepRunStatus,
)
from .pagination import DEFAULT_LIMIT, paginate_text, tail_text
from .providers.base import ActionDetail, CIProvider, JobDetails, StepOutput
from .utils import duration_ms, estimate_log_size, format_duration, iso_to_dt, with_deadline


logger = logging.getLogger(__name__)

STEP_STATUS_FILTERS = ("success", "failure", "all")

# Placeholder size reported for an action with output; no log body is read.
ESTIMATED_LOG_BYTES = 50000
INDEX_STRIDE = 100


@dataclass
class SelectedAction:
    step_name: str
    action: ActionDetail

    @property
    def step_id(self) -> str:
        return f"{self.action.step}-{self.action.index}"


def select_actions(
    details: JobDetails,
    step_names: Optional[Sequence[str]] = None,
    step_status: str = "all",
) -> List[SelectedAction]:
    """Flatten steps into one record per action and apply the name/status filters."""
    selected = [SelectedAction(step.name, action) for step in details.steps for action in step.actions]
    if step_names:
        wanted = set(step_names)
        selected = [sa for sa in selected if sa.step_name in wanted]
    if step_status == "failure":
        selected = [sa for sa in selected if sa.action.failed]
    elif step_status == "success":
        selected = [sa for sa in selected if not sa.action.failed]
    return selected


def _validate(step_status: str, offset: int, limit: int, tail_lines: Optional[int], max_concurrency: Optional[int]) -> None:
    if step_status not in STEP_STATUS_FILTERS:
        raise ValidationError(f"step_status must be one of {', '.join(STEP_STATUS_FILTERS)}, got {step_status!r}")
    if offset < 0:
        raise ValidationError(f"offset must be >= 0, got {offset}")
    if limit <= 0:
        raise ValidationError(f"limit must be > 0, got {limit}")
    if tail_lines is not None and tail_lines < 1:
        raise ValidationError(f"tail_lines must be >= 1, got {tail_lines}")
    if max_concurrency is not None and max_concurrency < 1:
        raise ValidationError(f"max_concurrency must be >= 1, got {max_concurrency}")


def build_log_entry(
    sa: SelectedAction,
    text: str,
    *,
    offset: int = 0,
    limit: int = DEFAULT_LIMIT,
    tail_lines: Optional[int] = None,
) -> StepLogEntry:
    status = "failure" if sa.action.failed else "success"
    if tail_lines is not None:
        tailed = tail_text(text, tail_lines)
        return StepLogEntry(
            step_id=sa.step_id, step_name=sa.step_name, status=status,
            content=tailed.content, truncated=tailed.truncated, tail=tailed,
        )
    chunk = paginate_text(text, offset, limit)
    return StepLogEntry(
        step_id=sa.step_id, step_name=sa.step_name, status=status,
        content=chunk.content, truncated=chunk.has_more, pagination=chunk,
    )


async def collect_step_logs(
    provider: CIProvider,
    *,
    project_slug: str,
    job_number: int,
    step_names: Optional[Sequence[str]] = None,
    step_status: str = "all",
    offset: int = 0,
    limit: int = DEFAULT_LIMIT,
    tail_lines: Optional[int] = None,
    max_concurrency: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Union[StepLogsResult, NoStepsMatched]:
    """
    Fetch the output of every selected step action of a job.

    Each step-output call is isolated: a failure becomes an entry with
    ``status="error"`` and never aborts its siblings. Failures fetching the
    job itself propagate. ``max_concurrency`` bounds in-flight calls (None
    means one call per action at once) and ``timeout`` is a per-call
    deadline in seconds.
    """
    _validate(step_status, offset, limit, tail_lines, max_concurrency)

    details = await with_deadline(provider.get_job_details(project_slug=project_slug, job_number=job_number), timeout)
    selected = select_actions(details, step_names, step_status)
    if not selected:
        return NoStepsMatched(step_names=list(step_names) if step_names else None, step_status=step_status)

    sem = asyncio.Semaphore(max_concurrency) if max_concurrency else None
    logger.debug("Fetching output for %d step actions of %s #%d", len(selected), project_slug, job_number)

    async def fetch_output(sa: SelectedAction) -> StepOutput:
        call = provider.get_step_output(
            project_slug=project_slug, job_number=job_number,
            step_id=sa.action.step, action_index=sa.action.index,
        )
        return await with_deadline(call, timeout)

    async def fetch_one(sa: SelectedAction) -> StepLogEntry:
        try:
            if sem is None:
                out = await fetch_output(sa)
            else:
                async with sem:
                    out = await fetch_output(sa)
        except Exception as exc:
            logger.warning("Step %s (%s) output fetch failed: %s", sa.step_name, sa.step_id, exc)
            return StepLogEntry(
                step_id=sa.step_id, step_name=sa.step_name, status="error",
                error=f"Failed to fetch logs: {str(exc) or type(exc).__name__}",
            )
        text = "\n".join(p for p in (out.output, out.error) if p and p.strip()).strip()
        return build_log_entry(sa, text, offset=offset, limit=limit, tail_lines=tail_lines)

    entries = list(await asyncio.gather(*(fetch_one(sa) for sa in selected)))
    return StepLogsResult(
        job_number=job_number,
        project_slug=project_slug,
        steps=entries,
        summary=StepLogsSummary(
            total_steps=len(entries),
            success_steps=sum(1 for e in entries if e.status == "success"),
            failure_steps=sum(1 for e in entries if e.status == "failure"),
            error_steps=sum(1 for e in entries if e.status == "error"),
        ),
    )


def resolve_status(action: ActionDetail) -> StepRunStatus:
    if action.failed:
        return "failure"
    if action.canceled:
        return "canceled"
    if action.status == "running":
        return "running"
    return "success"


def action_duration_ms(action: ActionDetail) -> int:
    if not action.start_time or not action.end_time:
        return 0
    # end before start (clock skew) reports as 0
    return max(0, duration_ms(iso_to_dt(action.start_time), iso_to_dt(action.end_time)))


def describe_job_steps(details: JobDetails, *, pipeline_number: int = 0, branch: str = "") -> JobStepsResult:
    """Map every action of a job to its metadata entry without reading any logs."""
    stride = max([INDEX_STRIDE] + [len(step.actions) for step in details.steps])
    entries: List[StepMetadataEntry] = []
    for step_pos, step in enumerate(details.steps):
        for action_pos, action in enumerate(step.actions):
            ms = action_duration_ms(action)
            est = ESTIMATED_LOG_BYTES if action.has_output else 0
            entries.append(StepMetadataEntry(
                step_id=f"{action.step}-{action.index}",
                name=step.name,
                index=step_pos * stride + action_pos,
                status=resolve_status(action),
                duration=format_duration(ms),
                duration_ms=ms,
                log_bytes=est,
                log_estimate=estimate_log_size(est),
                has_logs=action.has_output,
                exit_code=action.exit_code,
                start_time=action.start_time,
            ))
    return JobStepsResult(
        job_name=details.job_name,
        job_number=details.job_number,
        steps=entries,
        pipeline_number=pipeline_number,
        workflow_id=details.workflow_id,
        branch=branch,
    )
