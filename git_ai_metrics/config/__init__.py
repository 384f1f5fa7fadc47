"""Configuration module for metrics export."""

from .export_config import (
    ConfigResolver,
    ExportConfig,
    OtelProtocol,
    load_config_file,
    parse_bool,
    resolve_config,
)

# Import all constants
from .constants import *

__all__ = [
    "ConfigResolver",
    "ExportConfig",
    "OtelProtocol",
    "load_config_file",
    "parse_bool",
    "resolve_config",
]
