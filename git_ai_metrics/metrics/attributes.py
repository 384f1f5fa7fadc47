"""Resource and per-event attribute handling."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from ..config.constants import COMMON_ATTRIBUTE_KEYS, SERVICE_NAME


class ResourceAttributer:
    """
    Attaches identity attributes to recorded samples.

    Resource attributes (service.name, service.version) are computed once and
    applied by every sink at export time. Common attributes are extracted per
    event; absent or non-string fields are omitted, never sent as placeholders.
    """

    def __init__(self, service_version: Optional[str] = None, service_name: str = SERVICE_NAME):
        if service_version is None:
            from .. import __version__
            service_version = __version__
        self._resource = MappingProxyType({
            "service.name": service_name,
            "service.version": service_version,
        })

    @property
    def resource_attributes(self) -> Mapping[str, str]:
        return self._resource

    def common_attributes(self, attrs: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        """Extract the common attribute subset carried by an event."""
        if not attrs:
            return {}
        result: Dict[str, str] = {}
        for key in COMMON_ATTRIBUTE_KEYS:
            value = attrs.get(key)
            if isinstance(value, str) and value:
                result[key] = value
        return result
