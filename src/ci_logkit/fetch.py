"""
Size-bounded artifact download.

The body is read incrementally into a buffer of exactly ``max_size`` bytes.
As soon as the next chunk would overflow it, the chunk is cut to fit and the
response is closed, so no more than ``max_size`` bytes are ever held no
matter what content-length the server declares (or lies about).
"""
from __future__ import annotations
import base64
import logging
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx

from .errors import (
    BodyUnreadableError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
    UpstreamTransportError,
    ValidationError,
)
from .models import FetchResult, ParsedContent
from .pagination import tail_text
from .parsers import PARSE_MODES, parse_content
from .utils import MB, with_deadline


logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = MB
MAX_FETCH_SIZE = 10 * MB
MAX_TAIL_LINES = 10000
ENCODINGS = ("text", "base64", "auto")

TEXT_MIME_TYPES = (
    "text/",
    "application/json",
    "application/xml",
    "application/javascript",
    "application/x-yaml",
    "application/x-sh",
)


def is_text_content(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    lower = content_type.lower()
    if any(t in lower for t in TEXT_MIME_TYPES):
        return True
    return "+json" in lower or "+xml" in lower


def download_client(timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """An httpx client for artifact URLs. It carries no credentials, whatever host the URL names."""
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": "ci-logkit/0.1"},
        follow_redirects=True,
        transport=transport,
    )


def _declared_length(headers: httpx.Headers) -> int:
    try:
        return max(0, int(headers.get("content-length", "0")))
    except ValueError:
        return 0


async def read_limited(response: httpx.Response, max_size: int) -> Tuple[bytes, bool]:
    """Read at most ``max_size`` bytes of ``response``; returns (data, truncated)."""
    buf = bytearray(max_size)
    fetched = 0
    truncated = False
    async for chunk in response.aiter_bytes():
        remaining = max_size - fetched
        if len(chunk) > remaining:
            buf[fetched:max_size] = chunk[:remaining]
            fetched = max_size
            truncated = True
            await response.aclose()
            break
        buf[fetched:fetched + len(chunk)] = chunk
        fetched += len(chunk)
    with memoryview(buf) as view:
        return bytes(view[:fetched]), truncated


def _validate(url: str, max_size: int, encoding: str, tail_lines: Optional[int], parse: str) -> None:
    if urlparse(url).scheme not in ("http", "https"):
        raise ValidationError(f"artifact URL must be http(s): {url!r}")
    if not 1 <= max_size <= MAX_FETCH_SIZE:
        raise ValidationError(f"max_size must be between 1 and {MAX_FETCH_SIZE} bytes, got {max_size}")
    if encoding not in ENCODINGS:
        raise ValidationError(f"encoding must be one of {', '.join(ENCODINGS)}, got {encoding!r}")
    if tail_lines is not None and not 1 <= tail_lines <= MAX_TAIL_LINES:
        raise ValidationError(f"tail_lines must be between 1 and {MAX_TAIL_LINES}, got {tail_lines}")
    if parse not in PARSE_MODES:
        raise ValidationError(f"parse must be one of {', '.join(PARSE_MODES)}, got {parse!r}")


async def _download(client: httpx.AsyncClient, url: str, max_size: int) -> Tuple[Optional[str], int, bytes, bool]:
    try:
        async with client.stream("GET", url, headers={"Accept": "*/*"}) as response:
            if not response.is_success:
                raise UpstreamHTTPError(response.status_code, response.reason_phrase, url=url)
            content_type = response.headers.get("content-type")
            declared = _declared_length(response.headers)
            data, truncated = await read_limited(response, max_size)
    except httpx.TimeoutException as exc:
        raise UpstreamTimeoutError(f"Timed out fetching {url}: {exc}") from exc
    except httpx.DecodingError as exc:
        raise BodyUnreadableError(f"Failed to decode artifact response body: {exc}") from exc
    except httpx.RequestError as exc:
        raise UpstreamTransportError(f"Transport error fetching {url}: {exc}") from exc
    except httpx.StreamError as exc:
        raise BodyUnreadableError(f"Failed to read artifact response body: {exc}") from exc
    return content_type, declared, data, truncated


async def fetch_artifact_content(
    client: httpx.AsyncClient,
    url: str,
    *,
    max_size: int = DEFAULT_MAX_SIZE,
    encoding: str = "auto",
    tail_lines: Optional[int] = None,
    parse: str = "none",
    timeout: Optional[float] = None,
) -> FetchResult:
    """
    Download ``url`` and return its content as text or base64.

    ``encoding="auto"`` decides from the declared media type. Text is decoded
    as UTF-8 with malformed sequences replaced, then optionally tailed and
    parsed. ``timeout`` is an overall deadline for the whole download.
    """
    _validate(url, max_size, encoding, tail_lines, parse)

    content_type, declared, data, truncated = await with_deadline(_download(client, url, max_size), timeout)
    if truncated:
        logger.warning("Artifact %s truncated at %d bytes", url, max_size)
    logger.debug("Fetched %d bytes (declared %d) from %s", len(data), declared, url)

    parsed: ParsedContent = None
    if encoding == "text" or (encoding == "auto" and is_text_content(content_type)):
        out_encoding = "text"
        content = data.decode("utf-8", errors="replace")
        if tail_lines is not None:
            tailed = tail_text(content, tail_lines)
            content = tailed.content
            truncated = truncated or tailed.truncated
        if parse != "none":
            parsed = parse_content(content, content_type, parse)
            if parsed is None:
                logger.debug("Content of %s did not parse as %s", url, parse)
    else:
        out_encoding = "base64"
        content = base64.b64encode(data).decode("ascii")

    return FetchResult(
        url=url,
        content_type=content_type or "application/octet-stream",
        size_bytes=declared or len(data),
        fetched_bytes=len(data),
        encoding=out_encoding,
        content=content,
        truncated=truncated,
        parsed=parsed,
    )
