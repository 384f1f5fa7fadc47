"""
Error taxonomy for the metrics delivery subsystem.

None of these errors ever reach the git command that produced the metrics:
they are raised between components and absorbed by the scheduler.
"""

from enum import Enum
from typing import Optional

import httpx


class ErrorCategory(Enum):
    """Standard error categories for delivery failures."""
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERIALIZATION = "serialization"
    UNKNOWN = "unknown"


class MetricsError(Exception):
    """Base class for all metrics pipeline errors."""


class ConfigParseError(MetricsError):
    """A configuration value could not be parsed; the default is used instead."""

    def __init__(self, key: str, value: object, source: str):
        self.key = key
        self.value = value
        self.source = source
        super().__init__(f"Malformed value {value!r} for {key} from {source}")


class UploadError(MetricsError):
    """Delivery to the primary API failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        is_retryable: bool = False,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.category = category
        self.is_retryable = is_retryable
        self.original_error = original_error


class FallbackStoreError(MetricsError):
    """The local fallback store is unavailable or corrupt."""


class OtlpExportError(MetricsError):
    """Export to the OTLP collector failed."""


class ErrorMapper:
    """Maps transport failures to standardized UploadError instances."""

    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    @staticmethod
    def categorize_status(status_code: int) -> ErrorCategory:
        if status_code in (401, 403):
            return ErrorCategory.AUTHENTICATION
        if status_code == 429:
            return ErrorCategory.RATE_LIMIT
        if status_code >= 500:
            return ErrorCategory.SERVER_ERROR
        if status_code >= 400:
            return ErrorCategory.CLIENT_ERROR
        return ErrorCategory.UNKNOWN

    @staticmethod
    def from_response(response: httpx.Response) -> UploadError:
        """
        Build an UploadError for a non-2xx API response.

        Args:
            response: The httpx response

        Returns:
            UploadError with status metadata
        """
        status_code = response.status_code
        return UploadError(
            f"Metrics API returned HTTP {status_code}",
            status_code=status_code,
            category=ErrorMapper.categorize_status(status_code),
            is_retryable=status_code in ErrorMapper.RETRYABLE_STATUS_CODES,
        )

    @staticmethod
    def map_upload_error(error: Exception) -> UploadError:
        """
        Map an exception raised while uploading to UploadError.

        Args:
            error: The exception to map

        Returns:
            UploadError with category and retryable flag
        """
        if isinstance(error, UploadError):
            return error

        if isinstance(error, httpx.TimeoutException):
            return UploadError(
                f"Metrics API request timed out: {error}",
                category=ErrorCategory.TIMEOUT,
                is_retryable=True,
                original_error=error,
            )

        if isinstance(error, httpx.HTTPStatusError):
            mapped = ErrorMapper.from_response(error.response)
            mapped.original_error = error
            return mapped

        if isinstance(error, (httpx.ConnectError, httpx.NetworkError)):
            return UploadError(
                f"Metrics API unreachable: {error}",
                category=ErrorCategory.NETWORK,
                is_retryable=True,
                original_error=error,
            )

        if isinstance(error, (TypeError, ValueError)):
            return UploadError(
                f"Failed to serialize metrics batch: {error}",
                category=ErrorCategory.SERIALIZATION,
                original_error=error,
            )

        return UploadError(
            f"Metrics upload failed: {error}",
            category=ErrorCategory.UNKNOWN,
            original_error=error,
        )
