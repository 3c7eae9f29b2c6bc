"""
Lightweight extraction of test results and JSON from artifact text.

The JUnit reader is pattern based rather than a real XML parser: it pulls a
fixed set of fields out of ``<testsuite>``/``<testcase>`` elements and
tolerates truncated or otherwise malformed documents. A miss is reported as
``None``, never as an exception.
"""
from __future__ import annotations
import html
import json
import logging
import math
import re
from typing import List, Optional

from .errors import ValidationError
from .models import (
    FailedTest,
    JSONDocument,
    JUnitReport,
    JUnitTestCase,
    JUnitTestSuite,
    ParsedContent,
)


logger = logging.getLogger(__name__)

PARSE_MODES = ("none", "json", "junit", "auto")

_FLAGS = re.DOTALL | re.IGNORECASE


def _element_re(tag: str) -> re.Pattern[str]:
    # group 1: attributes, group 2: body (None when self-closing)
    return re.compile(rf"<{tag}(\s[^>]*?)?\s*(?:/>|>(.*?)</{tag}\s*>)", _FLAGS)


_SUITE_RE = _element_re("testsuite")
_CASE_RE = _element_re("testcase")
_FAILURE_RE = _element_re("failure")
_ERROR_RE = _element_re("error")
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)


def _attr(attrs: str, name: str) -> Optional[str]:
    m = re.search(rf"(?<![\w:.-]){name}\s*=\s*([\"'])(.*?)\1", attrs or "", re.DOTALL)
    return html.unescape(m.group(2)) if m else None


def _int_attr(attrs: str, name: str) -> int:
    value = _attr(attrs, name)
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return 0


def _float_attr(attrs: str, name: str) -> float:
    try:
        value = float(_attr(attrs, name) or 0.0)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _message(m: Optional[re.Match[str]], default: str) -> Optional[str]:
    if m is None:
        return None
    msg = _attr(m.group(1), "message")
    if msg:
        return msg
    body = _CDATA_RE.sub(r"\1", m.group(2) or "").strip()
    return body or default


def _parse_testcase(attrs: str, body: str) -> JUnitTestCase:
    return JUnitTestCase(
        name=_attr(attrs, "name") or "",
        classname=_attr(attrs, "classname") or "",
        time=_float_attr(attrs, "time"),
        failure=_message(_FAILURE_RE.search(body), "Test failed"),
        error=_message(_ERROR_RE.search(body), "Test error"),
        skipped="<skipped" in body,
    )


def parse_junit_xml(content: str) -> Optional[JUnitReport]:
    if "<testsuite" not in content:  # also covers "<testsuites"
        return None

    suites: List[JUnitTestSuite] = []
    failed: List[FailedTest] = []
    for sm in _SUITE_RE.finditer(content):
        attrs, body = sm.group(1) or "", sm.group(2) or ""
        suite = JUnitTestSuite(
            name=_attr(attrs, "name") or "",
            tests=_int_attr(attrs, "tests"),
            failures=_int_attr(attrs, "failures"),
            errors=_int_attr(attrs, "errors"),
            skipped=_int_attr(attrs, "skipped"),
            time=_float_attr(attrs, "time"),
        )
        for cm in _CASE_RE.finditer(body):
            case = _parse_testcase(cm.group(1) or "", cm.group(2) or "")
            suite.testcases.append(case)
            if case.failure is not None:
                failed.append(FailedTest(case.name, case.classname, case.failure))
            if case.error is not None:
                failed.append(FailedTest(case.name, case.classname, case.error))
        suites.append(suite)

    if not suites:
        logger.debug("testsuite marker present but no suite element matched")
        return None
    return JUnitReport(
        suites=suites,
        total_tests=sum(s.tests for s in suites),
        total_failures=sum(s.failures for s in suites),
        total_errors=sum(s.errors for s in suites),
        total_skipped=sum(s.skipped for s in suites),
        failed_tests=failed,
    )


def parse_json(content: str) -> Optional[JSONDocument]:
    try:
        return JSONDocument(data=json.loads(content))
    except (ValueError, RecursionError):
        return None


def _looks_like_xml(content: str, content_type: str) -> bool:
    return "xml" in content_type or content.lstrip().startswith("<?xml") or "<testsuite" in content


def _looks_like_json(content: str, content_type: str) -> bool:
    return "json" in content_type or content.lstrip()[:1] in ("{", "[")


def parse_content(content: str, content_type: Optional[str], mode: str = "auto") -> ParsedContent:
    """Parse ``content`` according to ``mode``; ``None`` when nothing matched."""
    if mode not in PARSE_MODES:
        raise ValidationError(f"parse must be one of {', '.join(PARSE_MODES)}, got {mode!r}")
    if mode == "none":
        return None
    if mode == "json":
        return parse_json(content)
    if mode == "junit":
        return parse_junit_xml(content)

    ctype = (content_type or "").lower()
    if _looks_like_xml(content, ctype):
        report = parse_junit_xml(content)
        if report is not None:
            return report
    if _looks_like_json(content, ctype):
        return parse_json(content)
    return None
