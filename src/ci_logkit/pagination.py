"""Character-offset pagination and line-based tailing of log text."""
from __future__ import annotations

from .errors import ValidationError
from .models import LogChunk, TailResult


DEFAULT_LIMIT = 50000


def paginate_text(text: str, offset: int = 0, limit: int = DEFAULT_LIMIT) -> LogChunk:
    """
    Return ``limit`` characters of ``text`` starting at ``offset``.

    A chunk that stops short of the end of ``text`` is cut back to its last
    newline so no line is split. When the chunk holds no newline at all (one
    line longer than ``limit``) it is returned uncut.

    Following ``next_offset`` until ``has_more`` is False and concatenating
    the chunks reproduces ``text`` exactly.
    """
    if offset < 0:
        raise ValidationError(f"offset must be >= 0, got {offset}")
    if limit <= 0:
        raise ValidationError(f"limit must be > 0, got {limit}")

    total = len(text)
    if offset >= total:
        return LogChunk(content="", offset=offset, limit=limit, total_size=total, has_more=False)

    end = min(offset + limit, total)
    chunk = text[offset:end]
    if end < total and not chunk.endswith("\n"):
        last_nl = chunk.rfind("\n")
        if last_nl != -1:
            chunk = chunk[:last_nl + 1]

    actual_end = offset + len(chunk)
    has_more = actual_end < total
    return LogChunk(
        content=chunk,
        offset=offset,
        limit=limit,
        total_size=total,
        has_more=has_more,
        next_offset=actual_end if has_more else None,
    )


def tail_text(text: str, lines: int) -> TailResult:
    """Return the last ``lines`` lines of ``text``; empty lines count."""
    if lines < 1:
        raise ValidationError(f"lines must be >= 1, got {lines}")
    if not text:
        return TailResult(content="", truncated=False, total_lines=0, returned_lines=0)

    all_lines = text.split("\n")
    total = len(all_lines)
    if total <= lines:
        return TailResult(content=text, truncated=False, total_lines=total, returned_lines=total)
    return TailResult(
        content="\n".join(all_lines[-lines:]),
        truncated=True,
        total_lines=total,
        returned_lines=lines,
    )
