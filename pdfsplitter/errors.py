"""Exception types raised by the page service."""

from __future__ import annotations

from typing import Any, Dict, Optional


class PdfServiceError(Exception):
    """Base class for failures that map onto an HTTP error response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(PdfServiceError):
    """Malformed or missing input. Reported as 400, never logged as a fault."""

    status_code = 400

    def __init__(self, message: str, *, total_pages: Optional[int] = None) -> None:
        super().__init__(message)
        self.total_pages = total_pages

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.total_pages is not None:
            payload["totalPages"] = self.total_pages
        return payload


class BackendError(PdfServiceError):
    """The PDF engine (library call or external process) failed."""


class InternalError(PdfServiceError):
    """Any other failure surfaced at the request boundary."""


class CleanupError(Exception):
    """Releasing a temporary resource failed. Logged, never surfaced."""


__all__ = [
    "BackendError",
    "CleanupError",
    "InternalError",
    "PdfServiceError",
    "ValidationError",
]
