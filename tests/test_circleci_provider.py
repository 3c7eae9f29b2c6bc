import httpx
import pytest

from ci_logkit.errors import BodyUnreadableError, UpstreamHTTPError, UpstreamTimeoutError, UpstreamTransportError
from ci_logkit.providers.circleci_api import CircleCIClient
from ci_logkit.providers.circleci_provider import CircleCIProvider, job_details_from_v1


class RawStream(httpx.AsyncByteStream):
    def __init__(self, body):
        self.body = body

    async def __aiter__(self):
        yield self.body


V1_JOB = {
    "build_num": 42,
    "workflows": {"job_name": "test", "workflow_id": "wf-123"},
    "steps": [
        {"name": "Checkout code", "actions": [
            {"index": 0, "step": 101, "failed": None, "has_output": True, "status": "success",
             "exit_code": 0, "start_time": "2024-01-01T00:00:00Z", "end_time": "2024-01-01T00:00:05Z"},
        ]},
        {"name": "Run tests", "actions": [
            {"index": 0, "step": 102, "failed": True, "has_output": True, "status": "failed", "exit_code": 1},
            {"index": 1, "step": 102, "failed": False, "has_output": True, "status": "success", "exit_code": 0},
        ]},
    ],
}


def _provider(handler, token="secret"):
    return CircleCIProvider(token=token, base_url="https://circleci.test", transport=httpx.MockTransport(handler))


def test_job_details_from_v1():
    d = job_details_from_v1(V1_JOB)
    assert d.job_name == "test"
    assert d.job_number == 42
    assert d.workflow_id == "wf-123"
    assert [s.name for s in d.steps] == ["Checkout code", "Run tests"]
    checkout = d.steps[0].actions[0]
    assert checkout.step == 101
    assert checkout.failed is False
    assert checkout.exit_code == 0
    assert [a.failed for a in d.steps[1].actions] == [True, False]


@pytest.mark.asyncio
async def test_get_job_details_sends_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=V1_JOB)

    p = _provider(handler)
    try:
        details = await p.get_job_details(project_slug="gh/org/repo", job_number=42)
    finally:
        await p.close()
    assert details.job_name == "test"
    assert seen[0].url.path == "/api/v1.1/project/gh/org/repo/42"
    assert seen[0].headers["Circle-Token"] == "secret"


@pytest.mark.asyncio
async def test_no_token_header_without_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=V1_JOB)

    p = _provider(handler, token=None)
    try:
        await p.get_job_details(project_slug="gh/org/repo", job_number=42)
    finally:
        await p.close()
    assert "Circle-Token" not in seen[0].headers


@pytest.mark.asyncio
async def test_get_step_output_reads_both_streams():
    def handler(request):
        path = request.url.path
        if path == "/api/private/output/raw/gh/org/repo/42/output/1/102":
            return httpx.Response(200, text="ran 10 tests")
        if path == "/api/private/output/raw/gh/org/repo/42/error/1/102":
            return httpx.Response(200, text="1 failed")
        return httpx.Response(404)

    p = _provider(handler)
    try:
        out = await p.get_step_output(project_slug="gh/org/repo", job_number=42, step_id=102, action_index=1)
    finally:
        await p.close()
    assert out.output == "ran 10 tests"
    assert out.error == "1 failed"


@pytest.mark.asyncio
async def test_artifacts_follow_page_tokens():
    seen = []

    def handler(request):
        seen.append(request.url.params.get("page-token"))
        assert request.url.path == "/api/v2/project/gh/org/repo/42/artifacts"
        if request.url.params.get("page-token") == "p2":
            return httpx.Response(200, json={"items": [
                {"path": "b.log", "url": "https://a/b.log", "node_index": 1}
            ], "next_page_token": None})
        return httpx.Response(200, json={"items": [
            {"path": "a.xml", "url": "https://a/a.xml", "node_index": 0, "size": 10}
        ], "next_page_token": "p2"})

    p = _provider(handler)
    try:
        arts = await p.list_job_artifacts(project_slug="gh/org/repo", job_number=42)
    finally:
        await p.close()
    assert seen == [None, "p2"]
    assert [(a.path, a.node_index, a.size) for a in arts] == [("a.xml", 0, 10), ("b.log", 1, 0)]


@pytest.mark.asyncio
async def test_artifact_listing_stops_at_page_cap():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"items": [{"path": "x", "url": "u"}], "next_page_token": "more"})

    api = CircleCIClient(token="t", base_url="https://circleci.test", transport=httpx.MockTransport(handler))
    try:
        items = await api.list_job_artifacts("gh/org/repo", 42, max_pages=3)
    finally:
        await api.aclose()
    assert len(calls) == 3
    assert len(items) == 3


@pytest.mark.asyncio
async def test_artifact_listing_time_budget():
    def handler(request):
        return httpx.Response(200, json={"items": [], "next_page_token": "more"})

    api = CircleCIClient(token="t", base_url="https://circleci.test", transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(UpstreamTimeoutError):
            await api.list_job_artifacts("gh/org/repo", 42, timeout=-1)
    finally:
        await api.aclose()


@pytest.mark.asyncio
async def test_http_error_is_mapped():
    p = _provider(lambda request: httpx.Response(404))
    try:
        with pytest.raises(UpstreamHTTPError) as ei:
            await p.get_job_details(project_slug="gh/org/repo", job_number=42)
    finally:
        await p.close()
    assert ei.value.status == 404
    assert ei.value.to_dict()["reason"] == "Not Found"


@pytest.mark.asyncio
async def test_invalid_json_is_a_transport_error():
    p = _provider(lambda request: httpx.Response(200, text="<html>oops</html>"))
    try:
        with pytest.raises(UpstreamTransportError):
            await p.get_job_details(project_slug="gh/org/repo", job_number=42)
    finally:
        await p.close()


@pytest.mark.asyncio
async def test_connect_error_is_mapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    p = _provider(handler)
    try:
        with pytest.raises(UpstreamTransportError):
            await p.list_job_artifacts(project_slug="gh/org/repo", job_number=42)
    finally:
        await p.close()


def test_null_step_name_becomes_empty():
    d = job_details_from_v1({"build_num": 1, "steps": [{"name": None, "actions": None}]})
    assert d.steps[0].name == ""
    assert d.steps[0].actions == []


@pytest.mark.asyncio
async def test_corrupt_gzip_body_is_unreadable():
    def handler(request):
        return httpx.Response(200, headers={"content-encoding": "gzip"}, stream=RawStream(b"not gzip at all"))

    p = _provider(handler)
    try:
        with pytest.raises(BodyUnreadableError):
            await p.get_job_details(project_slug="gh/org/repo", job_number=42)
    finally:
        await p.close()


@pytest.mark.asyncio
async def test_redirect_loop_is_a_transport_error():
    def handler(request):
        return httpx.Response(302, headers={"location": str(request.url)})

    p = _provider(handler)
    try:
        with pytest.raises(UpstreamTransportError):
            await p.get_job_details(project_slug="gh/org/repo", job_number=42)
    finally:
        await p.close()
