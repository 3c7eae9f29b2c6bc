"""
Request-level entry points.

Each function returns a JSON-ready dict: the result payload on success, or
``{"isError": True, "error": {...}}`` for any CIToolError. Anything else is
a bug and propagates.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .artifacts import filter_artifacts, summarize_artifacts
from .errors import CIToolError, ValidationError
from .fetch import DEFAULT_MAX_SIZE, fetch_artifact_content
from .pagination import DEFAULT_LIMIT
from .providers.base import CIProvider
from .steps import collect_step_logs, describe_job_steps
from .utils import ParsedJobURL, parse_circleci_job_url, with_deadline


logger = logging.getLogger(__name__)


def error_output(exc: CIToolError) -> Dict[str, Any]:
    return {"isError": True, "error": exc.to_dict()}


def resolve_job(project_slug: Optional[str], job_number: Optional[int],
                job_url: Optional[str]) -> Tuple[str, int, Optional[ParsedJobURL]]:
    if project_slug and job_number:
        return project_slug, job_number, None
    if not job_url:
        raise ValidationError("Missing required inputs. Provide project_slug with job_number, or a job URL.")
    parsed = parse_circleci_job_url(job_url)
    if parsed.job_number is None:
        raise ValidationError("Project slug and job number are required; the URL does not point to a job.")
    return parsed.project_slug, parsed.job_number, parsed


async def get_step_logs(
    provider: CIProvider,
    *,
    project_slug: Optional[str] = None,
    job_number: Optional[int] = None,
    job_url: Optional[str] = None,
    step_names: Optional[List[str]] = None,
    step_status: str = "all",
    offset: int = 0,
    limit: int = DEFAULT_LIMIT,
    tail_lines: Optional[int] = None,
    max_concurrency: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    try:
        slug, num, _ = resolve_job(project_slug, job_number, job_url)
        result = await collect_step_logs(
            provider, project_slug=slug, job_number=num, step_names=step_names,
            step_status=step_status, offset=offset, limit=limit, tail_lines=tail_lines,
            max_concurrency=max_concurrency, timeout=timeout,
        )
    except CIToolError as exc:
        logger.warning("get_step_logs failed: %s", exc)
        return error_output(exc)
    return result.to_dict()


async def get_job_steps(
    provider: CIProvider,
    *,
    project_slug: Optional[str] = None,
    job_number: Optional[int] = None,
    job_url: Optional[str] = None,
    branch: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    try:
        slug, num, parsed = resolve_job(project_slug, job_number, job_url)
        details = await with_deadline(provider.get_job_details(project_slug=slug, job_number=num), timeout)
        result = describe_job_steps(
            details,
            pipeline_number=parsed.pipeline_number if parsed else 0,
            branch=(parsed.branch if parsed else None) or branch or "",
        )
    except CIToolError as exc:
        logger.warning("get_job_steps failed: %s", exc)
        return error_output(exc)
    return result.to_dict()


async def list_job_artifacts(
    provider: CIProvider,
    *,
    project_slug: Optional[str] = None,
    job_number: Optional[int] = None,
    job_url: Optional[str] = None,
    path_pattern: Optional[str] = None,
    node_index: Optional[int] = None,
    min_size: Optional[str] = None,
    max_size: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    try:
        slug, num, _ = resolve_job(project_slug, job_number, job_url)
        artifacts = await with_deadline(provider.list_job_artifacts(project_slug=slug, job_number=num), timeout)
        selected = filter_artifacts(
            artifacts, path_pattern=path_pattern, node_index=node_index,
            min_size=min_size, max_size=max_size,
        )
    except CIToolError as exc:
        logger.warning("list_job_artifacts failed: %s", exc)
        return error_output(exc)
    return summarize_artifacts(num, selected).to_dict()


async def get_artifact_content(
    client: httpx.AsyncClient,
    artifact_url: str,
    *,
    max_size: int = DEFAULT_MAX_SIZE,
    encoding: str = "auto",
    tail_lines: Optional[int] = None,
    parse: str = "none",
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    try:
        if not artifact_url:
            raise ValidationError("artifact_url is required")
        result = await fetch_artifact_content(
            client, artifact_url, max_size=max_size, encoding=encoding,
            tail_lines=tail_lines, parse=parse, timeout=timeout,
        )
    except CIToolError as exc:
        logger.warning("get_artifact_content failed: %s", exc)
        return error_output(exc)
    return result.to_dict()
