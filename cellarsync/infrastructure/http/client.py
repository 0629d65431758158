"""Rate-limited client for the upstream ERP REST API.

Every outbound call funnels through one :class:`ErpClient`, which owns a
single :class:`RateLimiter` queue. The limiter bounds how many calls are in
flight and spaces dispatch starts by a minimum interval, so the pacing holds
no matter how many enrichment fetches are gathered concurrently.

Only rate-limit responses (HTTP 429) are retried, with a linearly growing
backoff. Every other HTTP or transport error fails immediately.

Usage:
    async with ErpClient(settings) as client:
        item = await client.get_json(client.record_url("inventoryitem", 42))
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping
from urllib.parse import quote, urlencode

import httpx

from cellarsync.infrastructure.observability import (
    get_logger,
    record_rate_limit_retry,
    record_upstream_request,
)

from .config import ErpSettings
from .signing import OAuth1Signer, RequestSigner

logger = get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class ErpApiError(Exception):
    """Raised when an upstream call fails."""

    def __init__(
        self, message: str, *, status_code: int | None = None, url: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class AuthenticationError(ErpApiError):
    """Raised when the upstream rejects the request credentials."""


class RateLimitExceededError(ErpApiError):
    """Raised when rate-limit responses persist past the retry bound."""


@dataclass
class ErpRequest:
    """One outbound call: method, URL, extra headers, JSON body and timeout."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None
    timeout: float | None = None


class RateLimiter:
    """Single dispatch queue shared by every caller of one client.

    At most ``max_concurrent`` calls hold a slot at once, and consecutive
    dispatch starts are at least ``min_interval`` seconds apart.
    """

    def __init__(
        self,
        min_interval: float,
        max_concurrent: int = 1,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.min_interval = max(0.0, min_interval)
        self.max_concurrent = max(1, max_concurrent)
        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._lock = asyncio.Lock()
        self._next_start: float | None = None

    def _next_delay(self) -> float:
        now = self._clock()
        if self._next_start is None or self._next_start <= now:
            self._next_start = now + self.min_interval
            return 0.0
        delay = self._next_start - now
        self._next_start += self.min_interval
        return delay

    async def wait_turn(self) -> None:
        """Wait until this caller's reserved dispatch time has arrived."""
        if self.min_interval <= 0:
            return
        async with self._lock:
            delay = self._next_delay()
        if delay > 0:
            await self._sleep(delay)

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._semaphore:
            yield


def require_object(data: Any, url: str) -> dict[str, Any]:
    """Return ``data`` if it is a JSON object, else raise :class:`ErpApiError`."""
    if not isinstance(data, dict):
        raise ErpApiError(
            f"Expected a JSON object from {url}, got {type(data).__name__}", url=url
        )
    return data


def build_url(base: str, *segments: object, params: Mapping[str, object] | None = None) -> str:
    """Join ``segments`` onto ``base`` and append percent-encoded ``params``."""
    url = "/".join([base.rstrip("/"), *(str(s).strip("/") for s in segments)])
    if params:
        url = f"{url}?{urlencode(params, quote_via=quote)}"
    return url


class ErpClient:
    """Signed, paced and retried access to the upstream REST API."""

    def __init__(
        self,
        settings: ErpSettings,
        *,
        signer: RequestSigner | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        limiter: RateLimiter | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.max_retries = settings.max_retries
        self.backoff_base_seconds = settings.backoff_base_seconds
        self._signer = signer or OAuth1Signer.from_settings(settings)
        self._transport = transport
        self._limiter = limiter or RateLimiter(
            settings.min_interval_seconds, settings.max_concurrent, sleep=sleep
        )
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ErpClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.timeout_seconds, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def record_url(self, *segments: object, params: Mapping[str, object] | None = None) -> str:
        """URL of a record API resource, e.g. ``record_url("inventoryitem", 7)``."""
        return build_url(self.settings.record_url, *segments, params=params)

    def _backoff_delay(self, attempt: int) -> float:
        return attempt * self.backoff_base_seconds

    async def execute(self, request: ErpRequest) -> httpx.Response:
        """Send ``request`` through the rate limiter and return the response.

        Raises:
            RateLimitExceededError: 429 responses outlasted ``max_retries``.
            AuthenticationError: The upstream answered 401 or 403.
            ErpApiError: Any other HTTP error status or transport failure.
        """
        async with self._limiter.slot():
            attempt = 0
            while True:
                await self._limiter.wait_turn()
                response = await self._send(request)
                if response.status_code != 429:
                    break
                if attempt >= self.max_retries:
                    raise RateLimitExceededError(
                        f"Rate limit persisted after {self.max_retries} retries "
                        f"for {request.method} {request.url}",
                        status_code=429,
                        url=request.url,
                    )
                attempt += 1
                delay = self._backoff_delay(attempt)
                record_rate_limit_retry()
                logger.warning(
                    "Rate limited by upstream, retry %s/%s in %.1fs: %s",
                    attempt,
                    self.max_retries,
                    delay,
                    request.url,
                )
                await self._sleep(delay)

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"HTTP {response.status_code} for {request.method} {request.url}",
                status_code=response.status_code,
                url=request.url,
            )
        if response.is_error:
            raise ErpApiError(
                f"HTTP {response.status_code} for {request.method} {request.url}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
                url=request.url,
            )
        return response

    async def _send(self, request: ErpRequest) -> httpx.Response:
        client = await self._get_client()
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            **self._signer.sign(request.method, request.url),
            **request.headers,
        }
        timeout = request.timeout or self.settings.timeout_seconds
        start = time.perf_counter()
        try:
            response = await client.request(
                request.method,
                request.url,
                headers=headers,
                json=request.json,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            record_upstream_request(request.method, "timeout", time.perf_counter() - start)
            raise ErpApiError(
                f"Timed out after {timeout:.0f}s: {request.method} {request.url}",
                url=request.url,
            ) from exc
        except httpx.HTTPError as exc:
            record_upstream_request(request.method, "error", time.perf_counter() - start)
            raise ErpApiError(
                f"Request failed: {request.method} {request.url}: {exc}", url=request.url
            ) from exc
        record_upstream_request(
            request.method, str(response.status_code), time.perf_counter() - start
        )
        return response

    async def get_json(self, url: str, *, timeout: float | None = None) -> Any:
        response = await self.execute(ErpRequest("GET", url, timeout=timeout))
        return self._decode(response, url)

    async def get_object(self, url: str, *, timeout: float | None = None) -> dict[str, Any]:
        return require_object(await self.get_json(url, timeout=timeout), url)

    async def post_json(
        self,
        url: str,
        body: Any,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        response = await self.execute(
            ErpRequest("POST", url, headers=headers or {}, json=body, timeout=timeout)
        )
        return self._decode(response, url)

    @staticmethod
    def _decode(response: httpx.Response, url: str) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ErpApiError(
                f"Invalid JSON from {url}", status_code=response.status_code, url=url
            ) from exc

    async def test_authentication(self) -> bool:
        """Probe the API with one cheap listing call; False if it fails."""
        url = self.record_url("inventoryItem", params={"limit": 1})
        try:
            await self.get_json(url, timeout=self.settings.probe_timeout_seconds)
        except ErpApiError as exc:
            logger.error("Authentication probe failed: %s", exc)
            return False
        logger.info("Authentication probe succeeded")
        return True
