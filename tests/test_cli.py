import json

from typer.testing import CliRunner

from ci_logkit import cli, tools


runner = CliRunner()


def test_missing_token_exits_10(monkeypatch):
    monkeypatch.delenv("CIRCLECI_TOKEN", raising=False)
    monkeypatch.setattr(cli, "load_dotenv", lambda: False)
    result = runner.invoke(cli.app, ["steps", "--project-slug", "gh/o/r", "--job-number", "1"])
    assert result.exit_code == 10


def test_json_output_and_error_exit(monkeypatch):
    async def fake_steps(provider, **kwargs):
        return {"isError": True, "error": {"type": "UpstreamHTTPError", "message": "404 Not Found", "status": 404}}

    monkeypatch.setattr(tools, "get_job_steps", fake_steps)
    result = runner.invoke(cli.app, ["steps", "--project-slug", "gh/o/r", "--job-number", "1",
                                     "--token", "t", "--format", "json"])
    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["status"] == 404


def test_artifact_json_output(monkeypatch):
    monkeypatch.setenv("CIRCLECI_TOKEN", "SECRET")
    seen = {}

    async def fake_fetch(client, url, **kwargs):
        seen.update(kwargs, url=url, headers=client.headers)
        return {"url": url, "contentType": "text/plain", "size": {"bytes": 2, "fetched": 2},
                "encoding": "text", "content": "hi", "truncated": False}

    monkeypatch.setattr(tools, "get_artifact_content", fake_fetch)
    result = runner.invoke(cli.app, ["artifact", "https://a/x.txt", "--tail", "5", "--format", "json"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["content"] == "hi"
    assert seen["url"] == "https://a/x.txt"
    assert seen["tail_lines"] == 5
    assert "circle-token" not in seen["headers"]
