from __future__ import annotations
from typing import Any, Dict, Optional


class CIToolError(Exception):
    """Base class for every error an entry point turns into an error payload."""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": type(self).__name__, "message": str(self)}


class ValidationError(CIToolError, ValueError):
    """Malformed caller input. Never clamped, always surfaced."""


class UpstreamHTTPError(CIToolError):
    def __init__(self, status: int, reason: str, url: Optional[str] = None):
        self.status = status
        self.reason = reason
        self.url = url
        super().__init__(f"{status} {reason}".strip())

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["status"] = self.status
        d["reason"] = self.reason
        if self.url:
            d["url"] = self.url
        return d


class UpstreamTransportError(CIToolError): ...


class UpstreamTimeoutError(CIToolError): ...


class BodyUnreadableError(CIToolError): ...
