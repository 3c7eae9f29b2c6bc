from __future__ import annotations
import asyncio, os
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
import typer
from rich.console import Console
from rich.logging import RichHandler
from dotenv import load_dotenv

from . import tools
from .fetch import DEFAULT_MAX_SIZE, download_client
from .pagination import DEFAULT_LIMIT
from .providers.circleci_api import DEFAULT_BASE_URL
from .providers.circleci_provider import CircleCIProvider
from .render import (
    console,
    payload_to_json,
    render_artifact,
    render_artifacts,
    render_error,
    render_job_steps,
    render_step_logs,
)


# Read-only: every command only performs GET requests against CircleCI.
app = typer.Typer(help="ci-logkit: fetch CircleCI step logs and artifacts within size budgets (read-only).")


DEFAULT_TIMEOUT = 10.0

JOB_URL_HELP = "CircleCI job URL (https://app.circleci.com/pipelines/gh/org/repo/123/workflows/<id>/jobs/456)"


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _token(token: str | None) -> str:
    load_dotenv()
    ci_token = token or os.getenv("CIRCLECI_TOKEN")
    if not ci_token:
        console.print("[red]Missing CircleCI token.[/red] Set --token or CIRCLECI_TOKEN env.")
        raise typer.Exit(code=10)
    return ci_token


def _base_url(base_url: str | None) -> str:
    return base_url or os.getenv("CIRCLECI_BASE_URL") or DEFAULT_BASE_URL


def _run(provider: CircleCIProvider, call: Callable[[CircleCIProvider], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
    async def runner():
        try:
            return await call(provider)
        finally:
            await provider.close()
    return asyncio.run(runner())


def _emit(payload: Dict[str, Any], format_: str, render: Callable[[Dict[str, Any]], None]):
    if format_.lower() == "json":
        typer.echo(payload_to_json(payload))
    elif payload.get("isError"):
        render_error(payload)
    else:
        render(payload)
    if payload.get("isError"):
        raise typer.Exit(code=1)


@app.command("steps")
def cmd_steps(
    job_url: Optional[str] = typer.Argument(None, help=JOB_URL_HELP),
    project_slug: Optional[str] = typer.Option(None, "--project-slug", help="Project slug, e.g. gh/org/repo"),
    job_number: Optional[int] = typer.Option(None, "--job-number", help="Job number"),
    branch: Optional[str] = typer.Option(None, "--branch", help="Branch to report in the metadata"),
    token: Optional[str] = typer.Option(None, "--token", help="CircleCI token (or env CIRCLECI_TOKEN)"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="CircleCI host (or env CIRCLECI_BASE_URL)"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", help="HTTP timeout seconds"),
    format_: str = typer.Option("pretty", "--format", help="pretty|json", case_sensitive=False),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
):
    """List the steps of a job with status, duration and log size, without reading logs."""
    _setup_logging(verbose)
    provider = CircleCIProvider(token=_token(token), base_url=_base_url(base_url), timeout=timeout)
    payload = _run(provider, lambda p: tools.get_job_steps(
        p, project_slug=project_slug, job_number=job_number, job_url=job_url, branch=branch,
    ))
    _emit(payload, format_, render_job_steps)


@app.command("logs")
def cmd_logs(
    job_url: Optional[str] = typer.Argument(None, help=JOB_URL_HELP),
    project_slug: Optional[str] = typer.Option(None, "--project-slug", help="Project slug, e.g. gh/org/repo"),
    job_number: Optional[int] = typer.Option(None, "--job-number", help="Job number"),
    step: Optional[List[str]] = typer.Option(None, "--step", help="Exact step name to include (repeatable)"),
    status: str = typer.Option("all", "--status", help="success|failure|all"),
    offset: int = typer.Option(0, "--offset", help="Character offset into each step log"),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", help="Maximum characters per step"),
    tail: Optional[int] = typer.Option(None, "--tail", help="Return only the last N lines of each step"),
    concurrency: Optional[int] = typer.Option(10, "--concurrency", help="Maximum concurrent step-output requests"),
    token: Optional[str] = typer.Option(None, "--token", help="CircleCI token (or env CIRCLECI_TOKEN)"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="CircleCI host (or env CIRCLECI_BASE_URL)"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", help="HTTP timeout seconds"),
    format_: str = typer.Option("pretty", "--format", help="pretty|json", case_sensitive=False),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
):
    """Fetch step logs of a job, paginated by characters or tailed by lines."""
    _setup_logging(verbose)
    provider = CircleCIProvider(token=_token(token), base_url=_base_url(base_url), timeout=timeout)
    payload = _run(provider, lambda p: tools.get_step_logs(
        p, project_slug=project_slug, job_number=job_number, job_url=job_url,
        step_names=step or None, step_status=status, offset=offset, limit=limit,
        tail_lines=tail, max_concurrency=concurrency,
    ))
    _emit(payload, format_, render_step_logs)


@app.command("artifacts")
def cmd_artifacts(
    job_url: Optional[str] = typer.Argument(None, help=JOB_URL_HELP),
    project_slug: Optional[str] = typer.Option(None, "--project-slug", help="Project slug, e.g. gh/org/repo"),
    job_number: Optional[int] = typer.Option(None, "--job-number", help="Job number"),
    pattern: Optional[str] = typer.Option(None, "--pattern", help='Glob on artifact path, e.g. "test-results/*.xml"'),
    node: Optional[int] = typer.Option(None, "--node", help="Only artifacts from this parallel node"),
    min_size: Optional[str] = typer.Option(None, "--min-size", help='Minimum size, e.g. "1KB"'),
    max_size: Optional[str] = typer.Option(None, "--max-size", help='Maximum size, e.g. "100MB"'),
    token: Optional[str] = typer.Option(None, "--token", help="CircleCI token (or env CIRCLECI_TOKEN)"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="CircleCI host (or env CIRCLECI_BASE_URL)"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", help="HTTP timeout seconds"),
    format_: str = typer.Option("pretty", "--format", help="pretty|json", case_sensitive=False),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
):
    """List the artifacts of a job."""
    _setup_logging(verbose)
    provider = CircleCIProvider(token=_token(token), base_url=_base_url(base_url), timeout=timeout)
    payload = _run(provider, lambda p: tools.list_job_artifacts(
        p, project_slug=project_slug, job_number=job_number, job_url=job_url,
        path_pattern=pattern, node_index=node, min_size=min_size, max_size=max_size,
    ))
    _emit(payload, format_, render_artifacts)


@app.command("artifact")
def cmd_artifact(
    artifact_url: str = typer.Argument(..., help="Artifact download URL (see the artifacts command)"),
    max_size: int = typer.Option(DEFAULT_MAX_SIZE, "--max-size", help="Maximum bytes to download (up to 10MB)"),
    encoding: str = typer.Option("auto", "--encoding", help="text|base64|auto"),
    tail: Optional[int] = typer.Option(None, "--tail", help="For text, only the last N lines"),
    parse: str = typer.Option("none", "--parse", help="none|json|junit|auto"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", help="HTTP timeout seconds"),
    format_: str = typer.Option("pretty", "--format", help="pretty|json", case_sensitive=False),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
):
    """Download one artifact within a byte budget, optionally tailing or parsing it."""
    _setup_logging(verbose)

    async def runner():
        # artifact hosts never get the CircleCI token
        async with download_client(timeout=timeout) as client:
            return await tools.get_artifact_content(
                client, artifact_url, max_size=max_size, encoding=encoding, tail_lines=tail, parse=parse,
            )
    _emit(asyncio.run(runner()), format_, render_artifact)


def main():
    app()


if __name__ == "__main__":
    main()
