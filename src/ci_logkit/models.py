from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from .providers.base import Artifact
from .utils import format_size


Encoding = Literal["text", "base64"]
StepLogStatus = Literal["success", "failure", "error"]
StepRunStatus = Literal["failure", "canceled", "running", "success"]


@dataclass(frozen=True)
class LogChunk:
    content: str
    offset: int
    limit: int
    total_size: int
    has_more: bool
    next_offset: Optional[int] = None

    def pagination_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "offset": self.offset,
            "limit": self.limit,
            "totalSize": self.total_size,
            "hasMore": self.has_more,
        }
        if self.next_offset is not None:
            d["nextOffset"] = self.next_offset
        return d

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "pagination": self.pagination_dict()}


@dataclass(frozen=True)
class TailResult:
    content: str
    truncated: bool
    total_lines: int
    returned_lines: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "truncated": self.truncated,
            "totalLines": self.total_lines,
            "returnedLines": self.returned_lines,
        }


@dataclass
class JUnitTestCase:
    name: str
    classname: str
    time: float = 0.0
    failure: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"name": self.name, "classname": self.classname, "time": self.time}
        if self.failure is not None:
            d["failure"] = self.failure
        if self.error is not None:
            d["error"] = self.error
        if self.skipped:
            d["skipped"] = True
        return d


@dataclass
class JUnitTestSuite:
    name: str
    tests: int = 0
    failures: int = 0
    errors: int = 0
    skipped: int = 0
    time: float = 0.0
    testcases: List[JUnitTestCase] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "tests": self.tests,
            "failures": self.failures,
            "errors": self.errors,
            "skipped": self.skipped,
            "time": self.time,
            "testcases": [c.to_dict() for c in self.testcases],
        }


@dataclass
class FailedTest:
    name: str
    classname: str
    message: str


@dataclass
class JUnitReport:
    suites: List[JUnitTestSuite]
    total_tests: int
    total_failures: int
    total_errors: int
    total_skipped: int
    failed_tests: List[FailedTest]
    format: str = "junit"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "suites": [s.to_dict() for s in self.suites],
            "summary": {
                "totalTests": self.total_tests,
                "totalFailures": self.total_failures,
                "totalErrors": self.total_errors,
                "totalSkipped": self.total_skipped,
                "failedTests": [
                    {"name": f.name, "classname": f.classname, "message": f.message}
                    for f in self.failed_tests
                ],
            },
        }


@dataclass
class JSONDocument:
    data: Any
    format: str = "json"

    def to_dict(self) -> Dict[str, Any]:
        return {"format": self.format, "data": self.data}


ParsedContent = Union[JUnitReport, JSONDocument, None]


@dataclass
class FetchResult:
    url: str
    content_type: str
    size_bytes: int
    fetched_bytes: int
    encoding: Encoding
    content: str
    truncated: bool
    parsed: ParsedContent = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "url": self.url,
            "contentType": self.content_type,
            "size": {"bytes": self.size_bytes, "fetched": self.fetched_bytes},
            "encoding": self.encoding,
            "content": self.content,
            "truncated": self.truncated,
        }
        if self.parsed is not None:
            d["parsed"] = self.parsed.to_dict()
        return d


@dataclass
class StepLogEntry:
    step_id: str
    step_name: str
    status: StepLogStatus
    content: Optional[str] = None
    truncated: bool = False
    error: Optional[str] = None
    pagination: Optional[LogChunk] = None
    tail: Optional[TailResult] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"stepId": self.step_id, "stepName": self.step_name, "status": self.status}
        if self.status == "error":
            d["error"] = self.error
            return d
        d["logs"] = {"content": self.content, "truncated": self.truncated}
        if self.tail is not None:
            d["lineInfo"] = {
                "totalLines": self.tail.total_lines,
                "returnedLines": self.tail.returned_lines,
                "mode": "tail",
            }
        elif self.pagination is not None:
            d["pagination"] = self.pagination.pagination_dict()
        return d


@dataclass
class StepLogsSummary:
    total_steps: int
    success_steps: int
    failure_steps: int
    error_steps: int


@dataclass
class StepLogsResult:
    job_number: int
    project_slug: str
    steps: List[StepLogEntry]
    summary: StepLogsSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobNumber": self.job_number,
            "projectSlug": self.project_slug,
            "steps": [s.to_dict() for s in self.steps],
            "summary": {
                "totalSteps": self.summary.total_steps,
                "successSteps": self.summary.success_steps,
                "failureSteps": self.summary.failure_steps,
                "errorSteps": self.summary.error_steps,
            },
        }


@dataclass
class NoStepsMatched:
    step_names: Optional[List[str]]
    step_status: Optional[str]
    message: str = "No steps matched the specified filters."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "filters": {
                "stepNames": list(self.step_names) if self.step_names else "all",
                "stepStatus": self.step_status or "all",
            },
        }


@dataclass
class StepMetadataEntry:
    step_id: str
    name: str
    index: int
    status: StepRunStatus
    duration: str
    duration_ms: int
    log_bytes: int
    log_estimate: str
    has_logs: bool
    exit_code: Optional[int] = None
    start_time: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "stepId": self.step_id,
            "name": self.name,
            "index": self.index,
            "status": self.status,
        }
        if self.exit_code is not None:
            d["exitCode"] = self.exit_code
        if self.start_time is not None:
            d["startTime"] = self.start_time
        d.update({
            "duration": self.duration,
            "durationMs": self.duration_ms,
            "logSize": {"bytes": self.log_bytes, "estimate": self.log_estimate},
            "hasLogs": self.has_logs,
        })
        return d


@dataclass
class JobStepsResult:
    job_name: str
    job_number: int
    steps: List[StepMetadataEntry]
    pipeline_number: int
    workflow_id: Optional[str]
    branch: str

    @property
    def failed_steps(self) -> int:
        return sum(1 for s in self.steps if s.status == "failure")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobName": self.job_name,
            "jobNumber": self.job_number,
            "steps": [s.to_dict() for s in self.steps],
            "totalSteps": len(self.steps),
            "failedSteps": self.failed_steps,
            "metadata": {
                "pipelineNumber": self.pipeline_number,
                "workflowId": self.workflow_id,
                "branch": self.branch,
            },
        }


@dataclass
class ArtifactListing:
    job_number: int
    artifacts: List[Artifact]

    @property
    def total_size(self) -> int:
        return sum(a.size for a in self.artifacts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobNumber": self.job_number,
            "artifacts": [_artifact_dict(a) for a in self.artifacts],
            "totalArtifacts": len(self.artifacts),
            "totalSize": {"bytes": self.total_size, "readable": format_size(self.total_size)},
        }


def _artifact_dict(a: Artifact) -> Dict[str, Any]:
    return {
        "artifactId": a.path,
        "path": a.path,
        "url": a.url,
        "size": {"bytes": a.size, "readable": format_size(a.size)},
        "nodeIndex": a.node_index,
        "prettyPath": a.path.rsplit("/", 1)[-1] or a.path,
    }
