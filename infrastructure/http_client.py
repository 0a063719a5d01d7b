"""Shared async HTTP client for outbound provider calls (email delivery)."""

import time
from typing import Any, Optional

import httpx

from shared.logging import get_logger

log = get_logger(__name__)


class HttpClient:
    """One pooled httpx.AsyncClient per process, closed at shutdown.

    ``post_json`` logs the provider's host, status and latency at debug level;
    request bodies and headers are never logged since they carry codes and
    API keys.
    """

    def __init__(self, timeout: float = 5.0, user_agent: Optional[str] = None) -> None:
        headers = {"User-Agent": user_agent} if user_agent else None
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def post_json(
        self, url: str, payload: dict, headers: Optional[dict] = None
    ) -> httpx.Response:
        started = time.perf_counter()
        response = await self.post(url, json=payload, headers=headers)
        log.debug(
            "http_post_completed",
            host=httpx.URL(url).host,
            status_code=response.status_code,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
