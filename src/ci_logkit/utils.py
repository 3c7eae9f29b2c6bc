from __future__ import annotations
import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Literal, Optional, TypeVar
from urllib.parse import parse_qs, urlparse

from .errors import UpstreamTimeoutError, ValidationError


T = TypeVar("T")

LogSizeCategory = Literal["small", "medium", "large", "huge"]

KB = 1024
MB = 1024 * KB
GB = 1024 * MB

_DURATION_RE = re.compile(r"^(\d+)([smh])$")
_SIZE_RE = re.compile(r"^(\d+)(KB|MB|GB)?$", re.IGNORECASE)
_UNIT_MS = {"s": 1000, "m": 60 * 1000, "h": 60 * 60 * 1000}
_UNIT_BYTES = {"": 1, "KB": KB, "MB": MB, "GB": GB}


@dataclass
class ParsedJobURL:
    project_slug: str
    pipeline_number: int
    workflow_id: str | None
    job_number: int | None
    branch: str | None = None


def parse_circleci_job_url(url: str) -> ParsedJobURL:
    u = urlparse(url)
    if u.netloc not in {"app.circleci.com", "circleci.com"}:
        raise ValidationError("URL host is not app.circleci.com")
    parts = [p for p in u.path.split("/") if p]
    # /pipelines/<vcs>/<org>/<repo>/<pipeline>[/workflows/<id>[/jobs/<job>]]
    if len(parts) < 5 or parts[0] != "pipelines" or not parts[4].isdigit():
        raise ValidationError("Not a CircleCI pipeline, workflow or job URL")
    workflow_id = None
    job_number = None
    rest = parts[5:]
    if rest:
        if len(rest) < 2 or rest[0] != "workflows":
            raise ValidationError("Not a CircleCI pipeline, workflow or job URL")
        workflow_id = rest[1]
        if len(rest) > 2:
            if len(rest) < 4 or rest[2] != "jobs" or not rest[3].isdigit():
                raise ValidationError("Not a CircleCI job URL")
            job_number = int(rest[3])
    return ParsedJobURL(
        project_slug="/".join(parts[1:4]),
        pipeline_number=int(parts[4]),
        workflow_id=workflow_id,
        job_number=job_number,
        branch=(parse_qs(u.query).get("branch") or [None])[0],
    )


def iso_to_dt(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def duration_ms(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


def parse_duration_to_ms(duration: str) -> int:
    """Parse a duration such as ``"30s"``, ``"5m"`` or ``"2h"`` into milliseconds."""
    m = _DURATION_RE.match(duration or "")
    if not m:
        raise ValidationError(f"Invalid duration format: {duration!r}")
    return int(m.group(1)) * _UNIT_MS[m.group(2)]


def format_duration(ms: int) -> str:
    """Render milliseconds as ``"1h 1m 1s"``, dropping zero components."""
    if ms < 0:
        raise ValidationError(f"Duration cannot be negative: {ms}")
    total_s = int(ms) // 1000
    h, rem = divmod(total_s, 3600)
    m, s = divmod(rem, 60)
    parts = []
    if h:
        parts.append(f"{h}h")
    if m:
        parts.append(f"{m}m")
    if s:
        parts.append(f"{s}s")
    return " ".join(parts) or "0s"


def estimate_log_size(num_bytes: int) -> LogSizeCategory:
    if num_bytes < 0:
        raise ValidationError(f"Byte count cannot be negative: {num_bytes}")
    if num_bytes < 10 * KB:
        return "small"
    if num_bytes < 100 * KB:
        return "medium"
    if num_bytes < MB:
        return "large"
    return "huge"


def parse_size(size: str) -> int:
    """Parse ``"500"``, ``"10KB"``, ``"1MB"`` or ``"2GB"`` into bytes."""
    m = _SIZE_RE.match((size or "").strip())
    if not m:
        raise ValidationError(f"Invalid size: {size!r} (expected e.g. 500, 10KB, 1MB)")
    return int(m.group(1)) * _UNIT_BYTES[(m.group(2) or "").upper()]


def format_size(num_bytes: int) -> str:
    if num_bytes < KB:
        return f"{num_bytes} B"
    if num_bytes < MB:
        return f"{num_bytes / KB:.1f} KB"
    if num_bytes < GB:
        return f"{num_bytes / MB:.1f} MB"
    return f"{num_bytes / GB:.1f} GB"


async def with_deadline(aw: Awaitable[T], timeout: Optional[float]) -> T:
    """Await ``aw``, abandoning it with UpstreamTimeoutError after ``timeout`` seconds."""
    if timeout is None:
        return await aw
    try:
        return await asyncio.wait_for(aw, timeout)
    except asyncio.TimeoutError:
        raise UpstreamTimeoutError(f"Deadline of {timeout}s exceeded") from None
