"""
Tests for the error taxonomy (pageviewer/errors.py).

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|----------------------|--------------------------------------|-----------------|-------|
| TC-E-N-01 | Each error class | Equivalence – codes | Distinct FetchErrorCode per class | - |
| TC-E-N-02 | PageViewerError with url/details | Equivalence – to_dict | ok=False plus code, error, url, details | - |
| TC-E-B-01 | PageViewerError without url/details | Boundary – optional fields | to_dict omits url and details | - |
| TC-E-N-03 | RejectedContentError | Equivalence – message | Names URL and MIME type | - |
| TC-E-N-04 | StageFailure | Equivalence – cause | Stage and cause type in details | - |
| TC-E-N-05 | UnexpectedFault.from_exception | Equivalence – wrapping | Keeps message and type name | - |
| TC-E-B-02 | from_exception with empty message | Boundary – empty | Message falls back to type name | - |
"""

import pytest

from pageviewer.errors import (
    ConversionError,
    ExtractionFailure,
    FetchErrorCode,
    NavigationError,
    NoContentFound,
    PageViewerError,
    RejectedContentError,
    SanitizationError,
    StageFailure,
    UnexpectedFault,
)

pytestmark = pytest.mark.unit


class TestErrorCodes:
    """Each failure mode maps to its own code."""

    @pytest.mark.parametrize(
        "error_cls,code",
        [
            (NavigationError, FetchErrorCode.NAVIGATION_FAILED),
            (SanitizationError, FetchErrorCode.SANITIZATION_FAILED),
            (ExtractionFailure, FetchErrorCode.EXTRACTION_FAILED),
            (NoContentFound, FetchErrorCode.NO_CONTENT),
            (ConversionError, FetchErrorCode.CONVERSION_FAILED),
            (UnexpectedFault, FetchErrorCode.UNEXPECTED_FAULT),
        ],
    )
    def test_error_code(self, error_cls, code) -> None:
        """
        TC-E-N-01
        Given: An error class
        When: It is instantiated
        Then: It carries its code and is a PageViewerError
        """
        error = error_cls("boom")

        assert error.code is code
        assert isinstance(error, PageViewerError)


class TestToDict:
    def test_full_payload(self) -> None:
        """
        TC-E-N-02
        Given: An error with URL and details
        When: to_dict() is called
        Then: The structured form carries everything
        """
        # Given
        error = NavigationError("dns failure", url="https://example.com/", details={"stage": "navigate"})

        # When
        payload = error.to_dict()

        # Then
        assert payload == {
            "ok": False,
            "error_code": "NAVIGATION_FAILED",
            "error": "dns failure",
            "url": "https://example.com/",
            "details": {"stage": "navigate"},
        }

    def test_minimal_payload(self) -> None:
        """
        TC-E-B-01
        Given: An error with only a message
        When: to_dict() is called
        Then: url and details are omitted
        """
        payload = NoContentFound("nothing").to_dict()

        assert payload == {"ok": False, "error_code": "NO_CONTENT", "error": "nothing"}


class TestSpecificErrors:
    def test_rejected_content_message(self) -> None:
        """
        TC-E-N-03
        Given: A PDF response
        When: RejectedContentError is built
        Then: Message and details name the URL and MIME type
        """
        error = RejectedContentError(
            "https://example.com/doc",
            "application/pdf",
            response_url="https://cdn.example.com/doc.pdf",
        )

        assert error.code is FetchErrorCode.REJECTED_CONTENT
        assert "https://example.com/doc" in str(error)
        assert "application/pdf" in str(error)
        assert error.content_type == "application/pdf"
        assert error.details["response_url"] == "https://cdn.example.com/doc.pdf"

    def test_stage_failure_details(self) -> None:
        """
        TC-E-N-04
        Given: A probe raising RuntimeError
        When: StageFailure wraps it
        Then: Stage and cause type are recorded
        """
        cause = RuntimeError("execution context destroyed")

        error = StageFailure("engine_idle", cause, url="https://example.com/")

        assert error.stage == "engine_idle"
        assert error.cause is cause
        assert error.details == {"stage": "engine_idle", "cause": "RuntimeError"}
        assert "engine_idle" in str(error)

    def test_unexpected_fault_from_exception(self) -> None:
        """
        TC-E-N-05
        Given: An arbitrary KeyError
        When: UnexpectedFault.from_exception wraps it
        Then: Message and type name survive
        """
        fault = UnexpectedFault.from_exception(KeyError("missing"), url="https://example.com/")

        assert fault.code is FetchErrorCode.UNEXPECTED_FAULT
        assert "missing" in fault.message
        assert fault.details["exception_type"] == "KeyError"
        assert fault.url == "https://example.com/"

    def test_unexpected_fault_empty_message(self) -> None:
        """
        TC-E-B-02
        Given: An exception with no message
        When: It is wrapped
        Then: The type name stands in for the message
        """
        fault = UnexpectedFault.from_exception(ZeroDivisionError())

        assert fault.message == "ZeroDivisionError"
