from __future__ import annotations
import re
from functools import lru_cache
from typing import List, Optional, Pattern

from .models import ArtifactListing
from .providers.base import Artifact
from .utils import parse_size


def _segment_re(segment: str) -> str:
    out = []
    i = 0
    while i < len(segment):
        c = segment[i]
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            start = i + 2 if segment[i + 1:i + 2] in ("!", "^") else i + 1
            end = segment.find("]", start + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = segment[i + 1:end]
                if body[:1] in ("!", "^"):
                    body = "^" + body[1:]
                out.append("(?!/)[" + body.replace("\\", "\\\\").replace("[", "\\[") + "]")
                i = end
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


@lru_cache(maxsize=64)
def glob_to_regex(pattern: str) -> Pattern[str]:
    """
    Compile a path glob where ``*`` and ``?`` stay within one ``/`` segment
    and a ``**`` segment spans zero or more segments.

    ``*.xml`` matches ``report.xml`` but not ``deep/x.xml``;
    ``**/*.xml`` matches both.
    """
    parts = pattern.split("/")
    out = []
    for pos, part in enumerate(parts):
        last = pos == len(parts) - 1
        if part == "**":
            out.append(".*" if last else "(?:[^/]+/)*")
        else:
            out.append(_segment_re(part) + ("" if last else "/"))
    return re.compile("".join(out))


def path_matches(path: str, pattern: str) -> bool:
    return glob_to_regex(pattern).fullmatch(path) is not None


def filter_artifacts(
    artifacts: List[Artifact],
    *,
    path_pattern: Optional[str] = None,
    node_index: Optional[int] = None,
    min_size: Optional[str] = None,
    max_size: Optional[str] = None,
) -> List[Artifact]:
    """Filter by glob on path (e.g. ``"test-results/*.xml"``), node and size bounds like ``"1MB"``."""
    out = list(artifacts)
    if path_pattern:
        out = [a for a in out if path_matches(a.path, path_pattern)]
    if node_index is not None:
        out = [a for a in out if a.node_index == node_index]
    if min_size:
        lo = parse_size(min_size)
        out = [a for a in out if a.size >= lo]
    if max_size:
        hi = parse_size(max_size)
        out = [a for a in out if a.size <= hi]
    return out


def summarize_artifacts(job_number: int, artifacts: List[Artifact]) -> ArtifactListing:
    return ArtifactListing(job_number=job_number, artifacts=list(artifacts))
