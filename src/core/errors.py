"""Custom exception types for the vulnerability ingestion pipeline.

This module defines exceptions used throughout the pipeline to provide
clear error classification and recovery strategies.
"""


class PipelineError(Exception):
    """Base exception for pipeline-related errors."""

    pass


class ExternalAPIError(PipelineError):
    """
    Raised when an external API call (NVD, CISA KEV, EPSS) fails.

    This error indicates a transient or permanent failure to reach an external service.
    """

    def __init__(self, service: str, status_code: int | None = None, message: str | None = None):
        """
        Initialize ExternalAPIError.

        Args:
            service: Name of the external service (e.g., 'NVD', 'EPSS')
            status_code: HTTP status code (if applicable)
            message: Optional additional error details
        """
        self.service = service
        self.status_code = status_code
        self.message = message

        msg = f"External API error: {service}"
        if status_code:
            msg += f" (HTTP {status_code})"
        if message:
            msg += f": {message}"

        super().__init__(msg)


class SourceUnavailableError(ExternalAPIError):
    """
    Raised when a vulnerability source cannot produce data for one slice.

    Covers timeouts, 5xx responses, malformed bodies and unexpected status codes.
    The refresh loop catches it per asset and window and keeps previously known data.
    """


class RateLimitedError(SourceUnavailableError):
    """Raised when the source still rejects a request (429/403) after the backoff retry."""


class PartialSourceError(SourceUnavailableError):
    """
    Raised when the primary source failed but CISA KEV still matched records.

    ``records`` holds the KEV matches so the caller can merge them into the
    previously known slice instead of dropping them.
    """

    def __init__(self, cause: SourceUnavailableError, records: list):
        self.cause = cause
        self.records = records
        super().__init__(cause.service, cause.status_code, cause.message)


class CacheUnavailableError(PipelineError):
    """
    Raised when the cache store cannot be read or written.

    Fatal for the current invocation: assembling from a partially readable
    store would publish an incomplete snapshot.
    """

    def __init__(self, operation: str, key: str, reason: str | None = None):
        self.operation = operation
        self.key = key
        self.reason = reason
        msg = f"Cache store unavailable during {operation} for {key!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ConfigurationError(PipelineError):
    """
    Raised at startup when required configuration is missing or invalid.
    """

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Configuration error: {field}. Reason: {reason}")


class DataValidationError(PipelineError):
    """
    Raised when input data validation fails.

    This error indicates that input data (window identifier, asset id, etc.)
    does not meet required constraints. The caller should reject the input.
    """

    def __init__(self, field: str, value: str, reason: str):
        """
        Initialize DataValidationError.

        Args:
            field: Name of the field that failed validation
            value: The invalid value
            reason: Why the value is invalid
        """
        self.field = field
        self.value = value
        self.reason = reason
        msg = f"Data validation error: {field}={value!r}. Reason: {reason}"
        super().__init__(msg)
