from __future__ import annotations
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ..errors import BodyUnreadableError, UpstreamHTTPError, UpstreamTimeoutError, UpstreamTransportError


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://circleci.com"
MAX_PAGES = 5
PAGINATION_TIMEOUT = 10.0


class CircleCIClient:
    """
    Read-only CircleCI API client.

    Job details come from API v1.1, step output from the private output
    endpoint and artifact listings from API v2. Only GET requests are made.
    """
    def __init__(self, token: str | None, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        headers = {"Accept": "application/json", "User-Agent": "ci-logkit/0.1"}
        if token:
            headers["Circle-Token"] = token
        self.client = httpx.AsyncClient(timeout=timeout, headers=headers, follow_redirects=True, transport=transport)
        self.base_url = base_url.rstrip("/")

    async def aclose(self):
        await self.client.aclose()

    async def _get(self, url: str, params: dict | None = None) -> httpx.Response:
        try:
            r = await self.client.get(url, params=params or {})
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(f"GET {url} timed out: {exc}") from exc
        except httpx.DecodingError as exc:
            raise BodyUnreadableError(f"GET {url} returned an undecodable body: {exc}") from exc
        except httpx.RequestError as exc:
            raise UpstreamTransportError(f"GET {url} failed: {exc}") from exc
        if not r.is_success:
            raise UpstreamHTTPError(r.status_code, r.reason_phrase, url=url)
        return r

    async def _get_json(self, url: str, params: dict | None = None) -> Any:
        r = await self._get(url, params)
        try:
            return r.json()
        except ValueError as exc:
            raise UpstreamTransportError(f"GET {url} returned invalid JSON: {exc}") from exc

    async def get_job_details(self, project_slug: str, job_number: int) -> Dict[str, Any]:
        url = f"{self.base_url}/api/v1.1/project/{project_slug}/{job_number}"
        return await self._get_json(url)

    async def _get_output_text(self, kind: str, project_slug: str, job_number: int, action_index: int, step_id: int) -> str:
        url = f"{self.base_url}/api/private/output/raw/{project_slug}/{job_number}/{kind}/{action_index}/{step_id}"
        return (await self._get(url)).text

    async def get_step_output(self, project_slug: str, job_number: int, step_id: int, action_index: int) -> Dict[str, str]:
        output, error = await asyncio.gather(
            self._get_output_text("output", project_slug, job_number, action_index, step_id),
            self._get_output_text("error", project_slug, job_number, action_index, step_id),
        )
        return {"output": output, "error": error}

    async def list_job_artifacts(self, project_slug: str, job_number: int,
                                 max_pages: int = MAX_PAGES, timeout: float = PAGINATION_TIMEOUT) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/api/v2/project/{project_slug}/{job_number}/artifacts"
        started = time.monotonic()
        items: List[Dict[str, Any]] = []
        token: Optional[str] = None
        for _ in range(max_pages):
            if time.monotonic() - started > timeout:
                raise UpstreamTimeoutError(f"Timeout reached after {timeout}s listing artifacts")
            data = await self._get_json(url, params={"page-token": token} if token else None)
            items.extend(data.get("items", []))
            token = data.get("next_page_token")
            if not token:
                return items
        logger.warning("Artifact listing for %s #%d stopped at %d pages", project_slug, job_number, max_pages)
        return items
