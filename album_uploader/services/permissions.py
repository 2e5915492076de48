"""Permission Guard backed by the album HTTP API."""
import logging

from ..errors import APIError
from .api_client import HTTPAPIClient

logger = logging.getLogger(__name__)


class HTTPPermissionGuard:
    """
    Implements IPermissionGuard via GET /collections/{id}/permissions.

    The endpoint answers {"can_upload": bool, ...}. A 401/403/404 is treated
    as "not allowed"; other API errors propagate.
    """

    def __init__(self, api_client: HTTPAPIClient):
        self._api = api_client

    async def can_upload(self, collection_id: str) -> bool:
        try:
            response = await self._api.get(f"/collections/{collection_id}/permissions")
        except APIError as exc:
            if exc.status_code in (401, 403, 404):
                logger.info("Upload to %s not permitted: %s", collection_id, exc)
                return False
            raise
        data = response.json()
        return bool(data.get("can_upload", False))
