"""Shared HTTP plumbing for upstream services.

Every upstream client sends requests through `ServiceClient`, which adds:
- the descriptive User-Agent and bounded timeout of an `httpx.AsyncClient`
- a per-provider minimum interval between requests (`RateLimiter`)
- `raise_for_status` so HTTP errors reach the retry classifier
- retries through `RetryExecutor`
- a FatalUpstreamError for bodies that are not JSON
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from placebot.core.exceptions import FatalUpstreamError
from placebot.core.retry import RetryExecutor
from placebot.settings import HttpSettings


def build_http_client(settings: Optional[HttpSettings] = None, **kwargs: Any) -> httpx.AsyncClient:
    """AsyncClient with the configured User-Agent and timeout.

    Extra keyword arguments (e.g. `transport` in tests) go to httpx.
    """
    settings = settings or HttpSettings()
    return httpx.AsyncClient(
        headers={"User-Agent": settings.user_agent},
        timeout=settings.timeout,
        follow_redirects=True,
        **kwargs,
    )


class RateLimiter:
    """Keeps at least `min_interval` seconds between consecutive acquisitions."""

    def __init__(self, min_interval: float = 0.0):
        self.min_interval = min_interval
        self._lock = asyncio.Lock()
        self._last: Optional[float] = None

    async def wait(self) -> None:
        if self.min_interval <= 0:
            return
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            if self._last is not None:
                remaining = self.min_interval - (now - self._last)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last = loop.time()


class ServiceClient:
    """JSON requests to one upstream provider.

    Attributes:
        name: Provider name used in retry labels and errors
        http: Shared httpx.AsyncClient
        executor: RetryExecutor wrapping each request
        limiter: Per-provider RateLimiter
    """

    def __init__(
        self,
        name: str,
        http: httpx.AsyncClient,
        executor: Optional[RetryExecutor] = None,
        min_interval: float = 0.0,
    ):
        self.name = name
        self.http = http
        self.executor = executor or RetryExecutor()
        self.limiter = RateLimiter(min_interval)

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        await self.limiter.wait()
        response = await self.http.request(method, url, **kwargs)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise FatalUpstreamError.from_malformed_payload(self.name, e) from e

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        label: Optional[str] = None,
    ) -> Any:
        return await self.executor.execute(
            lambda: self._send("GET", url, params=params, headers=headers),
            label or f"{self.name}.get",
        )

    async def post_json(
        self,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        label: Optional[str] = None,
    ) -> Any:
        return await self.executor.execute(
            lambda: self._send("POST", url, json=payload, headers=headers),
            label or f"{self.name}.post",
        )
