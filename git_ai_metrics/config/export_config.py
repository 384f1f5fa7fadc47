"""
Export configuration resolution.

Merges environment variables and config file values into a single
immutable ExportConfig. Precedence: environment > config file > default.
Resolution never fails: malformed values fall back to the built-in default.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..reliability.errors import ConfigParseError
from . import constants as c

logger = logging.getLogger(__name__)


class OtelProtocol:
    """Supported OTLP transports."""
    GRPC = "grpc"
    HTTP = "http"


class ExportConfig(BaseModel):
    """Resolved export configuration. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    # OTLP (optional sink)
    otel_enabled: bool = Field(default=False, description="Export to an OTLP collector")
    otel_endpoint: str = Field(default=c.DEFAULT_OTEL_ENDPOINT, description="OTLP collector endpoint")
    otel_export_interval: int = Field(
        default=c.DEFAULT_OTEL_EXPORT_INTERVAL_SECS, ge=1, description="OTLP export interval in seconds"
    )
    otel_protocol: str = Field(default=c.DEFAULT_OTEL_PROTOCOL, description="grpc or http")
    otel_auth_header: Optional[str] = Field(None, description="Authorization header for the collector")

    # Primary API
    api_endpoint: str = Field(default=c.DEFAULT_API_ENDPOINT, description="Metrics upload URL")
    api_key: Optional[str] = Field(None, description="Bearer token for the metrics API")
    api_export_interval: int = Field(
        default=c.DEFAULT_API_EXPORT_INTERVAL_SECS, ge=1, description="API flush interval in seconds"
    )

    # Timeouts
    request_timeout: int = Field(default=c.DEFAULT_REQUEST_TIMEOUT_SECS, ge=1)
    shutdown_timeout: int = Field(default=c.DEFAULT_SHUTDOWN_TIMEOUT_SECS, ge=1)

    # Fallback store
    fallback_db_path: str = Field(default=c.DEFAULT_FALLBACK_DB_PATH)
    fallback_max_attempts: int = Field(default=c.DEFAULT_FALLBACK_MAX_ATTEMPTS, ge=1)
    fallback_max_age: int = Field(default=c.DEFAULT_FALLBACK_MAX_AGE_SECS, ge=1)

    @property
    def fallback_path(self) -> Path:
        return Path(self.fallback_db_path).expanduser()


def parse_bool(value: Any) -> bool:
    """Parse an enabled flag: "1" or "true" (any case) is true, anything else false."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value)
    return text == "1" or text.lower() == "true"


def parse_positive_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an interval")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        number = int(value.strip())
    else:
        raise ValueError(f"unsupported type {type(value).__name__}")
    if number < 1:
        raise ValueError("must be a positive integer")
    return number


def parse_non_empty(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("must be a non-empty string")
    return value.strip()


def parse_optional(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("must be a string")
    return value or None


def parse_protocol(value: Any) -> str:
    text = parse_non_empty(value).lower()
    if text not in (OtelProtocol.GRPC, OtelProtocol.HTTP):
        raise ValueError(f"unknown protocol {text!r}")
    return text


_UNSET = object()


# field -> (env var, file key, parser)
_FIELDS: Dict[str, tuple] = {
    "otel_enabled": (c.ENV_OTEL_ENABLED, c.FILE_OTEL_ENABLED, parse_bool),
    "otel_endpoint": (c.ENV_OTEL_ENDPOINT, c.FILE_OTEL_ENDPOINT, parse_non_empty),
    "otel_export_interval": (c.ENV_OTEL_EXPORT_INTERVAL, c.FILE_OTEL_EXPORT_INTERVAL, parse_positive_int),
    "otel_protocol": (c.ENV_OTEL_PROTOCOL, c.FILE_OTEL_PROTOCOL, parse_protocol),
    "otel_auth_header": (c.ENV_OTEL_AUTH_HEADER, c.FILE_OTEL_AUTH_HEADER, parse_optional),
    "api_endpoint": (c.ENV_API_ENDPOINT, c.FILE_API_ENDPOINT, parse_non_empty),
    "api_key": (c.ENV_API_KEY, c.FILE_API_KEY, parse_optional),
    "api_export_interval": (c.ENV_API_EXPORT_INTERVAL, c.FILE_API_EXPORT_INTERVAL, parse_positive_int),
    "request_timeout": (c.ENV_REQUEST_TIMEOUT, c.FILE_REQUEST_TIMEOUT, parse_positive_int),
    "shutdown_timeout": (c.ENV_SHUTDOWN_TIMEOUT, c.FILE_SHUTDOWN_TIMEOUT, parse_positive_int),
    "fallback_db_path": (c.ENV_FALLBACK_DB, c.FILE_FALLBACK_DB, parse_non_empty),
    "fallback_max_attempts": (c.ENV_FALLBACK_MAX_ATTEMPTS, c.FILE_FALLBACK_MAX_ATTEMPTS, parse_positive_int),
    "fallback_max_age": (c.ENV_FALLBACK_MAX_AGE, c.FILE_FALLBACK_MAX_AGE, parse_positive_int),
}


class ConfigResolver:
    """
    Resolves ExportConfig from environment and config file values.

    Resolution is a pure function of its inputs: the same environment and
    file mapping always produce the same config.
    """

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        file_values: Optional[Mapping[str, Any]] = None,
    ):
        """
        Args:
            env: Environment mapping (defaults to os.environ)
            file_values: Parsed config file contents (defaults to empty)
        """
        self.env = os.environ if env is None else env
        self.file_values = file_values or {}

    def resolve(self) -> ExportConfig:
        """Build the immutable ExportConfig."""
        values: Dict[str, Any] = {}
        for field_name, (env_key, file_key, parser) in _FIELDS.items():
            resolved = self._resolve_field(field_name, env_key, file_key, parser)
            if resolved is not _UNSET:
                values[field_name] = resolved
        return ExportConfig(**values)

    def _resolve_field(
        self,
        field_name: str,
        env_key: str,
        file_key: str,
        parser: Callable[[Any], Any],
    ) -> Any:
        if env_key in self.env:
            raw, source = self.env[env_key], f"env {env_key}"
        elif file_key in self.file_values:
            raw, source = self.file_values[file_key], f"config file key {file_key}"
        else:
            return _UNSET

        try:
            return parser(raw)
        except (TypeError, ValueError):
            error = ConfigParseError(field_name, raw, source)
            logger.warning(f"{error}; using default")
            return _UNSET


def load_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the tool's JSON config file.

    Args:
        path: Config file path; defaults to $GIT_AI_CONFIG_FILE or ~/.git-ai/config.json

    Returns:
        Parsed top-level mapping, or {} when missing or unreadable
    """
    if path is None:
        path = Path(os.environ.get(c.ENV_CONFIG_FILE, c.DEFAULT_CONFIG_FILE))
    path = Path(path).expanduser()

    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: top level is not an object")
        return {}
    return data


def resolve_config(
    env: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
) -> ExportConfig:
    """Resolve the export config from the environment and the config file."""
    return ConfigResolver(env=env, file_values=load_config_file(config_path)).resolve()
