"""CachedFetcher: Cached, retrying HTTP fetch with stale-on-error fallback.

Every upstream call made by a source goes through CachedFetcher.fetch():

    1. Return a fresh cache entry if one exists (no network call)
    2. Otherwise request the URL, retrying with exponential backoff
    3. Store successful payloads in the cache
    4. If all attempts fail, serve the expired entry flagged as stale,
       or raise the last error when nothing was ever cached

Failures are classified into RateLimitedError, TransportError and
ApplicationError. should_retry() is the single place that decides whether a
classified failure earns another attempt: rate limits get the full budget,
everything else gets one retry after the first attempt.

.. code-block:: python

    fetcher = CachedFetcher(ApiCache())
    result = await fetcher.fetch("https://www.cary0x.com/api/manifest/<address>")
    result.data, result.from_cache, result.is_stale
"""

from __future__ import annotations

import asyncio
import json as jsonlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Literal

import httpx

from .ApiCache import ApiCache

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Base exception for upstream fetch failures."""

    pass


class RateLimitedError(FetchError):
    """Raised when the upstream answers HTTP 429."""

    status_code = 429

    def __init__(self, url: str):
        """Initialize the rate-limit error.

        :param url: URL that was rate limited.
        """
        self.url = url
        super().__init__(f"Rate limited: {url}")


class TransportError(FetchError):
    """Raised on timeouts, connection errors and non-2xx responses.

    :ivar status_code: HTTP status code, or None for network-level errors.
    """

    def __init__(self, message: str, status_code: int | None = None):
        """Initialize the transport error.

        :param message: Error message.
        :param status_code: HTTP status code if a response was received.
        """
        self.status_code = status_code
        super().__init__(message)


class ApplicationError(FetchError):
    """Raised when a 2xx JSON body carries an explicit ``error`` field.

    :ivar detail: Value of the upstream ``error`` field.
    """

    def __init__(self, url: str, detail: Any):
        """Initialize the application error.

        :param url: URL that returned the error payload.
        :param detail: Upstream error value.
        """
        self.detail = detail
        super().__init__(f"API error from {url}: {detail}")


def should_retry(error: FetchError, attempt: int, max_retries: int) -> bool:
    """Decide whether a failed attempt should be retried.

    Rate-limited attempts are retried until the budget runs out. Any other
    failure is retried only when it happened on the first attempt.

    :param error: Classified failure of the attempt.
    :param attempt: Zero-based index of the attempt that failed.
    :param max_retries: Number of retries allowed after the first attempt.
    :returns: True if another attempt should be made.
    """
    if attempt >= max_retries:
        return False
    if isinstance(error, RateLimitedError):
        return True
    return attempt == 0


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ...

    :param attempt: Zero-based index of the attempt that failed.
    :param base_delay: Delay after the first failure in seconds.
    :returns: Seconds to wait before the next attempt.
    """
    return base_delay * (2**attempt)


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything that identifies one upstream request.

    Two descriptors with equal fields share one cache entry.

    :ivar url: Request URL.
    :ivar method: HTTP method.
    :ivar headers: Sorted (name, value) header pairs.
    :ivar params: Sorted (name, value) query parameter pairs.
    :ivar body: Canonical JSON body, or None.
    """

    url: str
    method: str = "GET"
    headers: tuple[tuple[str, str], ...] = ()
    params: tuple[tuple[str, str], ...] = ()
    body: str | None = None

    @classmethod
    def build(
        cls,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> RequestDescriptor:
        """Build a descriptor from plain request arguments.

        :param url: Request URL.
        :param method: HTTP method (default: GET).
        :param headers: Optional request headers.
        :param params: Optional query parameters.
        :param json: Optional JSON body.
        :returns: Normalized descriptor.
        """
        headers = dict(headers or {})
        if json is not None:
            headers.setdefault("Content-Type", "application/json")
        return cls(
            url=url,
            method=method.upper(),
            headers=tuple(sorted(headers.items())),
            params=tuple(sorted((k, str(v)) for k, v in (params or {}).items())),
            body=None if json is None else jsonlib.dumps(json, sort_keys=True),
        )

    @property
    def cache_key(self) -> tuple:
        """Hashable key covering URL and request options."""
        return (self.method, self.url, self.headers, self.params, self.body)


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a successful CachedFetcher.fetch() call.

    :ivar data: Decoded payload.
    :ivar from_cache: True if no network response produced this payload.
    :ivar is_stale: True if the payload is an expired cache entry.
    """

    data: Any
    from_cache: bool = False
    is_stale: bool = False


@dataclass
class FetchStats:
    """Counters for fetch outcomes since startup."""

    network_successes: int = 0
    cache_hits: int = 0
    stale_served: int = 0
    failures: int = 0
    retries: int = 0

    def as_dict(self) -> dict[str, int]:
        """Return counters as a plain dict."""
        return asdict(self)


class CachedFetcher:
    """HTTP fetch layer with TTL caching, retry and stale fallback.

    :ivar cache: Cache store shared by every fetch made through this instance.
    :ivar default_ttl: TTL in seconds for cached payloads.
    :ivar max_retries: Retries after the first attempt (default 3).
    :ivar base_delay: Backoff delay after the first failure (default 1s).
    :ivar timeout: Per-attempt request timeout in seconds.
    """

    # Class-level shared HTTP client, used when none is injected
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    DEFAULT_TTL = 300.0
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_BASE_DELAY = 1.0
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        cache: ApiCache,
        client: httpx.AsyncClient | None = None,
        default_ttl: float = DEFAULT_TTL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the fetcher.

        :param cache: Cache store to read from and write to.
        :param client: Optional HTTP client (default: shared client).
        :param default_ttl: TTL in seconds for cached payloads (default: 300).
        :param max_retries: Retries after the first attempt (default: 3).
        :param base_delay: Initial backoff delay in seconds (default: 1.0).
        :param timeout: Per-attempt request timeout in seconds (default: 10).
        :param sleep: Awaitable sleep used between attempts.
        :raises ValueError: If parameters are invalid.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

        self.cache = cache
        self._client = client
        self.default_ttl = default_ttl
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep
        self.stats = FetchStats()

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.AsyncClient instance.
        """
        if cls._shared_client is None or cls._shared_client.is_closed:
            cls._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return cls._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if cls._shared_client is not None and not cls._shared_client.is_closed:
            await cls._shared_client.aclose()
            cls._shared_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client used for requests."""
        return self._client if self._client is not None else self.get_shared_client()

    async def fetch(
        self,
        request: RequestDescriptor | str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        ttl: float | None = None,
        parse: Literal["json", "text"] = "json",
    ) -> FetchResult:
        """Fetch a request through the cache.

        :param request: Prebuilt descriptor, or a URL combined with the
            keyword arguments below.
        :param method: HTTP method when request is a URL.
        :param headers: Request headers when request is a URL.
        :param params: Query parameters when request is a URL.
        :param json: JSON body when request is a URL.
        :param ttl: Cache TTL in seconds (default: default_ttl).
        :param parse: Body decoding, "json" or "text".
        :returns: FetchResult with payload and cache flags.
        :raises FetchError: If every attempt failed and nothing is cached.
        """
        if isinstance(request, str):
            request = RequestDescriptor.build(
                request, method=method, headers=headers, params=params, json=json
            )
        key = request.cache_key

        entry = self.cache.get_entry(key)
        if entry is not None and self.cache.is_fresh(entry):
            logger.debug(f"Cache hit for {request.url}")
            self.stats.cache_hits += 1
            return FetchResult(data=entry.payload, from_cache=True, is_stale=False)

        try:
            data = await self._fetch_with_retry(request, parse)
        except FetchError as e:
            logger.warning(f"Failed to fetch {request.url}: {e}")
            stale = self.cache.get_entry(key)
            if stale is not None:
                logger.warning(f"Using stale cache data for {request.url}")
                self.stats.stale_served += 1
                return FetchResult(data=stale.payload, from_cache=True, is_stale=True)
            self.stats.failures += 1
            raise

        self.cache.set(key, data, ttl if ttl is not None else self.default_ttl)
        self.stats.network_successes += 1
        logger.debug(f"Fresh data cached for {request.url}")
        return FetchResult(data=data, from_cache=False, is_stale=False)

    async def _fetch_with_retry(
        self, request: RequestDescriptor, parse: Literal["json", "text"]
    ) -> Any:
        """Run attempts until one succeeds or should_retry() says stop.

        :param request: Request to perform.
        :param parse: Body decoding mode.
        :returns: Decoded payload.
        :raises FetchError: The last classified failure.
        """
        attempt = 0
        while True:
            try:
                return await self._attempt(request, parse)
            except FetchError as e:
                if not should_retry(e, attempt, self.max_retries):
                    raise
                delay = backoff_delay(attempt, self.base_delay)
                logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} for {request.url} "
                    f"in {delay:.1f}s ({type(e).__name__})"
                )
                self.stats.retries += 1
                await self._sleep(delay)
                attempt += 1

    async def _attempt(
        self, request: RequestDescriptor, parse: Literal["json", "text"]
    ) -> Any:
        """Perform a single request and classify its outcome.

        :param request: Request to perform.
        :param parse: Body decoding mode.
        :returns: Decoded payload.
        :raises RateLimitedError: On HTTP 429.
        :raises TransportError: On network errors, non-2xx or bad bodies.
        :raises ApplicationError: On a JSON body with an ``error`` field.
        """
        try:
            response = await self.client.request(
                request.method,
                request.url,
                params=dict(request.params) or None,
                headers=dict(request.headers) or None,
                content=request.body,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError(request.url)
        if not response.is_success:
            logger.debug(
                f"HTTP {request.method} {request.url} failed with status "
                f"{response.status_code}: {response.text[:200]}"
            )
            raise TransportError(
                f"HTTP {response.status_code} for {request.url}",
                status_code=response.status_code,
            )

        if parse == "text":
            data = _decode_text(response.text)
            if not data.startswith("{"):
                return data
            # Text endpoints still report errors as JSON objects
            try:
                parsed = jsonlib.loads(data)
            except ValueError:
                return data
            if isinstance(parsed, dict) and parsed.get("error"):
                raise ApplicationError(request.url, parsed["error"])
            return data

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON from {request.url}: {e}",
                status_code=response.status_code,
            ) from e

        if isinstance(data, dict) and data.get("error"):
            raise ApplicationError(request.url, data["error"])
        return data


def _decode_text(text: str) -> str:
    """Return a text body, unquoting it if it is a JSON string literal."""
    stripped = text.strip()
    if stripped.startswith('"') and stripped.endswith('"'):
        try:
            value = jsonlib.loads(stripped)
        except ValueError:
            return stripped
        if isinstance(value, str):
            return value
    return stripped
