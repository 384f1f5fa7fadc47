"""
Primary metrics sink: uploads batches to the hosted metrics API.

Any failure (network, auth, non-2xx, serialization) surfaces as UploadError
so the primary pipeline can hand the batch to the fallback store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import httpx
from pydantic import BaseModel, Field

from ..config.constants import UPLOAD_PAYLOAD_VERSION
from ..config.export_config import ExportConfig
from ..metrics.models import PendingBatch
from ..reliability.errors import ErrorMapper

logger = logging.getLogger(__name__)


class UploadRequest(BaseModel):
    """Wire body for a metrics upload."""
    version: int = Field(default=UPLOAD_PAYLOAD_VERSION, description="Payload schema version")
    batch_id: str = Field(..., description="Idempotency key for the batch")
    created_at: float = Field(..., description="Batch capture time (Unix seconds)")
    resource: Dict[str, str] = Field(default_factory=dict, description="service.name / service.version")
    metrics: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_batch(cls, batch: PendingBatch, resource: Mapping[str, str]) -> UploadRequest:
        return cls(
            batch_id=batch.batch_id,
            created_at=batch.created_at,
            resource=dict(resource),
            metrics=[s.to_dict() for s in batch.samples],
        )


@dataclass
class UploadAck:
    """Successful delivery acknowledgement."""
    batch_id: str
    status_code: int
    sample_count: int


class ApiUploader:
    """
    Uploads PendingBatches to the metrics API over HTTP.

    The httpx client is created lazily inside the running event loop and
    every request is bounded by the configured timeout.
    """

    def __init__(
        self,
        config: ExportConfig,
        resource_attributes: Mapping[str, str],
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            config: Resolved export configuration
            resource_attributes: Static service identity sent with every batch
            client: Optional pre-built client (tests inject a MockTransport)
        """
        self.endpoint = config.api_endpoint
        self.timeout = float(config.request_timeout)
        self.api_key = config.api_key
        self.resource_attributes = dict(resource_attributes)
        self._client = client
        self._owns_client = client is None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def upload(self, batch: PendingBatch) -> UploadAck:
        """
        Upload one batch.

        Args:
            batch: The batch to deliver

        Returns:
            UploadAck on any 2xx response

        Raises:
            UploadError: On any delivery failure
        """
        try:
            body = UploadRequest.from_batch(batch, self.resource_attributes).model_dump_json()
            response = await self._get_client().post(
                self.endpoint,
                content=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except Exception as e:
            raise ErrorMapper.map_upload_error(e) from e

        if not response.is_success:
            raise ErrorMapper.from_response(response)

        logger.debug(f"Uploaded batch {batch.batch_id} ({batch.size()} samples)")
        return UploadAck(batch_id=batch.batch_id, status_code=response.status_code, sample_count=batch.size())

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
