"""HTTP adapter for album API operations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import APIError

logger = logging.getLogger(__name__)


class HTTPAPIClient:
    """
    Async HTTP client for the album backend.

    Usage:
        async with HTTPAPIClient(base_url, token=token) as api:
            response = await api.get("/collections/album-1/items")
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 60,
        token: Optional[str] = None,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._token = token
        self._max_retries = max_retries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else None
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self._request("GET", endpoint, self._max_retries, params=params)

    async def post(self, endpoint: str, max_retries: Optional[int] = None, **kwargs) -> httpx.Response:
        """
        POST to the API. Streaming bodies cannot be replayed, so callers
        sending one pass max_retries=1.
        """
        retries = self._max_retries if max_retries is None else max_retries
        return await self._request("POST", endpoint, retries, **kwargs)

    async def _request(self, method: str, endpoint: str, max_retries: int, **kwargs) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        max_retries = max(1, max_retries)
        for attempt in range(max_retries):
            try:
                response = await self._client.request(method, endpoint, **kwargs)
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                if attempt < max_retries - 1:
                    logger.debug("%s %s failed (%s), retrying", method, endpoint, exc)
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise

            if response.status_code >= 500 and attempt < max_retries - 1:
                await asyncio.sleep(0.5 * (attempt + 1))
                continue

            if response.status_code >= 400:
                try:
                    error_detail = response.json()
                except Exception:
                    error_detail = response.text
                raise APIError(
                    response.status_code,
                    f"API error {response.status_code} on {method} {endpoint}: {error_detail}",
                )

            return response

        raise RuntimeError(f"Failed to {method} {endpoint} after {max_retries} attempts")
