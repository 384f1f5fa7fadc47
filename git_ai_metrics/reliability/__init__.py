"""Error taxonomy and error mapping for metrics delivery."""

from .errors import (
    ConfigParseError,
    ErrorCategory,
    ErrorMapper,
    FallbackStoreError,
    MetricsError,
    OtlpExportError,
    UploadError,
)

__all__ = [
    "ConfigParseError",
    "ErrorCategory",
    "ErrorMapper",
    "FallbackStoreError",
    "MetricsError",
    "OtlpExportError",
    "UploadError",
]
