"""Async HTTP client for the engine API backing the connect flow."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from bankconnect.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class EngineClient:
    """Thin wrapper around ``httpx.AsyncClient`` for engine API calls.

    Raises ``httpx.HTTPError`` subclasses on transport failures and non-2xx
    responses. Callers translate those into connect errors.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.engine_api_url).rstrip("/")
        self.api_key = settings.engine_api_key if api_key is None else api_key
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.request_timeout_seconds
        )

    def _headers(self) -> Dict[str, str]:
        h = {"Accept": "application/json"}
        if self.api_key:
            h["Authorization"] = f"Bearer {self.api_key}"
        return h

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None if empty)."""
        url = self.base_url + path
        response = await self._client.request(
            method, url, params=params, json=json, headers=self._headers()
        )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, json=json)

    async def aclose(self) -> None:
        await self._client.aclose()
