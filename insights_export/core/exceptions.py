"""Custom exception hierarchy for the insights export module.

Every error raised by the package derives from ``ExportError`` so callers can
catch the whole family at once, while the subclasses keep enough context
(HTTP status, offending field, pipeline stage) to produce a useful message
for the audit log.
"""

from typing import Any, Dict, Optional


class ExportError(Exception):
    """Base exception for all insights export errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AuthenticationError(ExportError):
    """Raised when credentials for the source or destination are missing.

    Examples:
        - No Facebook token stored for the user
        - No Google authorization stored for the user
    """

    pass


class APIError(ExportError):
    """Raised when a remote API request fails.

    Examples:
        - Graph API returns an ``error`` payload
        - HTTP 4xx/5xx after retries
        - Network timeouts
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize API error with HTTP details.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            response_body: Raw response body
            details: Optional additional context
        """
        super().__init__(message, details)
        self.status_code = status_code
        self.response_body = response_body

    def __str__(self) -> str:
        base = self.message
        if self.status_code:
            base = f"[HTTP {self.status_code}] {base}"
        if self.response_body:
            base = f"{base}\nResponse: {self.response_body[:500]}"
        if self.details:
            base = f"{base}\nDetails: {self.details}"
        return base


class ConfigurationError(ExportError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Configuration file not found or not valid YAML
        - Unknown write mode or date range
        - Unknown time zone
    """

    pass


class DataValidationError(ExportError):
    """Raised when request or mapping data fails validation.

    Examples:
        - Invalid sheet column letter
        - A column referenced by two active mapping entries
        - Missing required request fields
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[Any] = None,
        actual: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize data validation error with field details.

        Args:
            message: Human-readable error message
            field: Field name that failed validation
            expected: Expected value or type
            actual: Actual value or type
            details: Optional additional context
        """
        super().__init__(message, details)
        self.field = field
        self.expected = expected
        self.actual = actual

    def __str__(self) -> str:
        base = self.message
        if self.field:
            base = f"{base} (field: {self.field})"
        if self.expected is not None and self.actual is not None:
            base = f"{base} - Expected: {self.expected}, Got: {self.actual}"
        if self.details:
            base = f"{base}\nDetails: {self.details}"
        return base


class SheetWriteError(ExportError):
    """Raised when the spreadsheet API rejects a read, clear or write."""

    def __init__(
        self,
        message: str,
        spreadsheet_id: Optional[str] = None,
        ranges: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.spreadsheet_id = spreadsheet_id
        self.ranges = ranges or []

    def __str__(self) -> str:
        base = self.message
        if self.spreadsheet_id:
            base = f"{base} (spreadsheet: {self.spreadsheet_id})"
        if self.details:
            base = f"{base}\nDetails: {self.details}"
        return base


class PipelineError(ExportError):
    """Raised when an export run fails after it has started.

    Examples:
        - Insights extraction failure for one of the accounts
        - Sheet write failure
    """

    def __init__(
        self,
        message: str,
        pipeline_name: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize pipeline error.

        Args:
            message: Human-readable error message
            pipeline_name: Name of the export (configuration name or "manual")
            stage: Pipeline stage where error occurred (extract/transform/load)
            details: Optional additional context
        """
        super().__init__(message, details)
        self.pipeline_name = pipeline_name
        self.stage = stage

    def __str__(self) -> str:
        base = self.message
        if self.pipeline_name:
            base = f"[{self.pipeline_name}] {base}"
        if self.stage:
            base = f"{base} (stage: {self.stage})"
        if self.details:
            base = f"{base}\nDetails: {self.details}"
        return base
