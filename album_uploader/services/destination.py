"""
Destination Store - Single Responsibility: commit media into a collection.

Each candidate is sent as a streamed request body so progress is reported
from bytes actually handed to the transport.
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ..errors import APIError, TransferError
from ..models import CommittedUnit, UploadCandidate
from ..protocols import ProgressCallback
from .api_client import HTTPAPIClient
from .compression import ImageCompressor, PreparedPayload

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
PREPARED_PERCENT = 10
SENT_PERCENT = 95


class HTTPDestinationStore:
    """
    Destination store backed by the album HTTP API.

    Implements IDestinationStore:
        POST /collections/{collection_id}/items   (raw body, metadata in query)
        GET  /collections/{collection_id}/items
    """

    def __init__(self, api_client: HTTPAPIClient, compressor: Optional[ImageCompressor] = None):
        self._api = api_client
        self._compressor = compressor or ImageCompressor()

    async def commit_one(
        self,
        candidate: UploadCandidate,
        collection_id: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> CommittedUnit:
        try:
            payload = await asyncio.to_thread(self._compressor.prepare, candidate)
        except OSError as exc:
            raise TransferError(f"Cannot read {candidate.name}: {exc}") from exc
        _report(progress_callback, PREPARED_PERCENT)

        params = self._item_params(candidate, payload)
        try:
            response = await self._api.post(
                f"/collections/{collection_id}/items",
                max_retries=1,
                params=params,
                content=self._stream(payload.content, progress_callback),
                headers={
                    "Content-Type": payload.content_type or "application/octet-stream",
                    "Content-Length": str(len(payload.content)),
                },
            )
        except APIError as exc:
            raise TransferError(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise TransferError(f"Transfer of {candidate.name} failed: {exc}") from exc

        try:
            data = response.json()
            item_id = str(data["id"])
        except (ValueError, KeyError, TypeError) as exc:
            raise TransferError(f"Unexpected response for {candidate.name}: {response.text[:200]}") from exc

        logger.debug("[transfer] %s stored as %s in %s", candidate.name, item_id, collection_id)
        return CommittedUnit(
            candidate_id=candidate.id,
            collection_id=collection_id,
            item_id=item_id,
            url=data.get("url"),
            metadata=dict(payload.metadata),
        )

    async def list_collection_items(self, collection_id: str) -> List[Dict[str, Any]]:
        response = await self._api.get(f"/collections/{collection_id}/items")
        data = response.json()
        if isinstance(data, dict):
            return list(data.get("items", []))
        return list(data)

    @staticmethod
    def _item_params(candidate: UploadCandidate, payload: PreparedPayload) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "original_filename": candidate.name,
            "file_type": candidate.kind.value if candidate.kind else "unknown",
            "file_size": len(payload.content),
            "metadata": json.dumps(payload.metadata, sort_keys=True),
        }
        if payload.width is not None and payload.height is not None:
            params["width"] = payload.width
            params["height"] = payload.height
        return params

    @staticmethod
    async def _stream(content: bytes, progress_callback: Optional[ProgressCallback]) -> AsyncIterator[bytes]:
        total = len(content)
        sent = 0
        span = SENT_PERCENT - PREPARED_PERCENT
        for offset in range(0, total, CHUNK_SIZE):
            chunk = content[offset:offset + CHUNK_SIZE]
            yield chunk
            sent += len(chunk)
            _report(progress_callback, PREPARED_PERCENT + (span * sent) // total)


def _report(progress_callback: Optional[ProgressCallback], percent: int) -> None:
    if progress_callback is not None:
        progress_callback(percent)
