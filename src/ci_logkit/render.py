from __future__ import annotations
import json
from typing import Any, Dict
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.rule import Rule
from rich.markup import escape


console = Console()

STATUS_STYLE = {"success": "green", "failure": "red", "error": "yellow", "canceled": "yellow", "running": "cyan"}


def _status(s: str) -> str:
    return f"[{STATUS_STYLE.get(s, 'white')}]{s}[/]"


def payload_to_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, indent=2)


def render_error(payload: Dict[str, Any]):
    err = payload.get("error", {})
    detail = f" (HTTP {err['status']})" if "status" in err else ""
    console.print(f"[red]{escape(err.get('type', 'Error'))}{detail}:[/red] {escape(err.get('message', ''))}")


def render_step_logs(payload: Dict[str, Any]):
    if "message" in payload:
        f = payload["filters"]
        console.print(f"[yellow]{payload['message']}[/yellow]  (steps: {escape(str(f['stepNames']))}, status: {f['stepStatus']})")
        return
    s = payload["summary"]
    console.print(Panel.fit(
        f"[bold]🧩 Job:[/bold] {escape(payload['projectSlug'])} #{payload['jobNumber']}\n"
        f"[bold]🪜 Steps:[/bold] {s['totalSteps']}  "
        f"([green]{s['successSteps']} ok[/], [red]{s['failureSteps']} failed[/], [yellow]{s['errorSteps']} unreadable[/])"
    ))
    for step in payload["steps"]:
        console.print(Rule(f"{escape(step['stepName'])} [{step['stepId']}] {_status(step['status'])}"))
        if step["status"] == "error":
            console.print(f"[yellow]{escape(step['error'])}[/yellow]")
            continue
        logs = step["logs"]
        console.print(escape(logs["content"]) if logs["content"] else "[dim](no output)[/dim]")
        if "lineInfo" in step:
            li = step["lineInfo"]
            if logs["truncated"]:
                console.print(f"[dim]… last {li['returnedLines']} of {li['totalLines']} lines[/dim]")
        elif logs["truncated"]:
            p = step["pagination"]
            console.print(f"[dim]… {p['totalSize'] - p['nextOffset']} more characters, continue with --offset {p['nextOffset']}[/dim]")


def render_job_steps(payload: Dict[str, Any]):
    meta = payload["metadata"]
    console.print(Panel.fit(
        f"[bold]🧩 Job:[/bold] {escape(payload['jobName'])} #{payload['jobNumber']}\n"
        f"[bold]🚦 Failed steps:[/bold] {payload['failedSteps']} of {payload['totalSteps']}\n"
        f"[bold]🔗 Workflow:[/bold] {meta['workflowId'] or 'n/a'}"
        + (f"  (pipeline {meta['pipelineNumber']}, branch {escape(meta['branch'])})" if meta["branch"] else "")
    ))
    tbl = Table(title="Steps")
    tbl.add_column("#", justify="right")
    tbl.add_column("Step", overflow="fold")
    tbl.add_column("Status")
    tbl.add_column("Exit", justify="right")
    tbl.add_column("Duration", justify="right")
    tbl.add_column("Log size")
    for st in payload["steps"]:
        tbl.add_row(
            str(st["index"]), escape(st["name"]), _status(st["status"]),
            str(st.get("exitCode", "")), st["duration"],
            st["logSize"]["estimate"] if st["hasLogs"] else "[dim]none[/dim]",
        )
    console.print(tbl)


def render_artifacts(payload: Dict[str, Any]):
    tbl = Table(title=f"📦 Artifacts for job #{payload['jobNumber']}")
    tbl.add_column("Path", overflow="fold")
    tbl.add_column("Node", justify="right")
    tbl.add_column("Size", justify="right")
    for a in payload["artifacts"]:
        tbl.add_row(escape(a["path"]), str(a["nodeIndex"]), a["size"]["readable"])
    console.print(tbl)
    console.print(f"[bold]{payload['totalArtifacts']} artifacts, {payload['totalSize']['readable']} total[/bold]")


def render_artifact(payload: Dict[str, Any]):
    size = payload["size"]
    header = f"[bold]📄 {escape(payload['url'])}[/bold]\n" \
             f"[bold]Type:[/bold] {escape(payload['contentType'])}  " \
             f"[bold]Fetched:[/bold] {size['fetched']} of {size['bytes']} bytes" \
             + ("  [yellow](truncated)[/yellow]" if payload["truncated"] else "")
    console.print(Panel.fit(header))

    parsed = payload.get("parsed")
    if parsed and parsed["format"] == "junit":
        s = parsed["summary"]
        console.print(f"[bold]🧪 Tests:[/bold] {s['totalTests']}  [red]failures {s['totalFailures']}[/]  "
                      f"[yellow]errors {s['totalErrors']}[/]  [dim]skipped {s['totalSkipped']}[/]")
        if s["failedTests"]:
            tbl = Table(title="Failed tests")
            tbl.add_column("Test", overflow="fold")
            tbl.add_column("Message", overflow="fold")
            for t in s["failedTests"]:
                tbl.add_row(escape(f"{t['classname']}.{t['name']}" if t["classname"] else t["name"]), escape(t["message"]))
            console.print(tbl)
        return
    if parsed and parsed["format"] == "json":
        console.print_json(data=parsed["data"])
        return
    if payload["encoding"] == "base64":
        console.print(f"[dim]binary content, {len(payload['content'])} base64 characters (use --format json to get it)[/dim]")
    else:
        console.print(escape(payload["content"]))
