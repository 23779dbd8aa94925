"""
Error taxonomy for pageviewer fetches.

Every fetch ends in either a typed result or exactly one of these errors.
Readiness-stage timeouts never appear here; they are absorbed by the
orchestrator.

Error codes:
- NAVIGATION_FAILED: navigation (or the before-navigate hook) failed
- REJECTED_CONTENT: primary response is not renderable text/markup
- STAGE_FAILED: a readiness probe failed for a reason other than timeout
- SANITIZATION_FAILED / EXTRACTION_FAILED / CONVERSION_FAILED: post-readiness steps
- NO_CONTENT: page loaded but holds no qualifying article
- UNEXPECTED_FAULT: anything else, converted at the fetch boundary
"""

from enum import Enum
from typing import Any


class FetchErrorCode(str, Enum):
    """Error codes for fetch failures."""

    NAVIGATION_FAILED = "NAVIGATION_FAILED"
    REJECTED_CONTENT = "REJECTED_CONTENT"
    STAGE_FAILED = "STAGE_FAILED"
    SANITIZATION_FAILED = "SANITIZATION_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    NO_CONTENT = "NO_CONTENT"
    CONVERSION_FAILED = "CONVERSION_FAILED"
    UNEXPECTED_FAULT = "UNEXPECTED_FAULT"


class PageViewerError(Exception):
    """
    Base exception for fetch failures.

    Carries a code, the fetched URL and optional details so callers can
    render a structured error without parsing messages.
    """

    code: FetchErrorCode = FetchErrorCode.UNEXPECTED_FAULT

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.url = url
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a structured response."""
        result: dict[str, Any] = {
            "ok": False,
            "error_code": self.code.value,
            "error": self.message,
        }
        if self.url:
            result["url"] = self.url
        if self.details:
            result["details"] = self.details
        return result


class NavigationError(PageViewerError):
    """Raised when navigation to the target URL fails."""

    code = FetchErrorCode.NAVIGATION_FAILED


class RejectedContentError(PageViewerError):
    """Raised when the primary response is not renderable."""

    code = FetchErrorCode.REJECTED_CONTENT

    def __init__(self, url: str, content_type: str, *, response_url: str | None = None):
        details: dict[str, Any] = {"content_type": content_type}
        if response_url and response_url != url:
            details["response_url"] = response_url
        super().__init__(
            f"no html content: {url}. The url's MIME type is: {content_type}",
            url=url,
            details=details,
        )
        self.content_type = content_type
        self.response_url = response_url or url


class StageFailure(PageViewerError):
    """Raised when a readiness stage fails for a reason other than timeout."""

    code = FetchErrorCode.STAGE_FAILED

    def __init__(self, stage: str, cause: BaseException, *, url: str | None = None):
        super().__init__(
            f"readiness stage {stage} failed: {cause}",
            url=url,
            details={"stage": stage, "cause": type(cause).__name__},
        )
        self.stage = stage
        self.cause = cause


class SanitizationError(PageViewerError):
    """Raised when the in-page sanitization pass fails."""

    code = FetchErrorCode.SANITIZATION_FAILED


class ExtractionFailure(PageViewerError):
    """Raised when cloning or evaluating the document fails."""

    code = FetchErrorCode.EXTRACTION_FAILED


class NoContentFound(PageViewerError):
    """Raised when the page loaded but holds no qualifying article."""

    code = FetchErrorCode.NO_CONTENT


class ConversionError(PageViewerError):
    """Raised when HTML to Markdown conversion fails."""

    code = FetchErrorCode.CONVERSION_FAILED


class UnexpectedFault(PageViewerError):
    """Any other exception, converted at the fetch boundary."""

    code = FetchErrorCode.UNEXPECTED_FAULT

    @classmethod
    def from_exception(cls, exc: BaseException, *, url: str | None = None) -> "UnexpectedFault":
        return cls(
            str(exc) or type(exc).__name__,
            url=url,
            details={"exception_type": type(exc).__name__},
        )
