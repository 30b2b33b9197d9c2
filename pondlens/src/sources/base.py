"""Base source interface and the tagged SourceResult outcome.

Each wallet data source inherits from BaseSource and implements fetch(),
which turns a wallet address into a successful SourceResult. All HTTP goes
through the injected CachedFetcher, so every source gets caching, retry and
stale fallback for free.

load() is what the aggregator calls: it wraps fetch() and converts any
failure into a failed SourceResult instead of raising.

.. code-block:: python

    @register_source
    class MySource(BaseSource):
        name = "mysource"
        BASE_URL = "https://api.example.com"

        async def fetch(self, address: str) -> SourceResult:
            result = await self._get(f"{self.base_url}/wallet/{address}")
            return SourceResult.success(self.name, result.data, stale=result.is_stale)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Literal

from ..CachedFetcher import CachedFetcher, FetchError, FetchResult

logger = logging.getLogger(__name__)


class SourceConfigError(FetchError):
    """Raised when source configuration is invalid (e.g., missing API key)."""

    pass


class Freshness(str, Enum):
    """Where a successful payload came from."""

    FRESH = "fresh"
    STALE = "stale-from-cache"


@dataclass(frozen=True)
class SourceResult:
    """Outcome of one source call: a payload or an error, never both.

    :ivar source: Name of the source that produced this result.
    :ivar payload: Normalized payload on success.
    :ivar freshness: Freshness of the payload on success.
    :ivar error: Failure cause on failure.
    """

    source: str
    payload: Any = None
    freshness: Freshness | None = None
    error: BaseException | None = None

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.error is None):
            raise ValueError("SourceResult needs exactly one of payload or error")
        if self.payload is not None and self.freshness is None:
            raise ValueError("Successful SourceResult needs a freshness flag")
        if self.error is not None and self.freshness is not None:
            raise ValueError("Failed SourceResult cannot carry a freshness flag")

    @classmethod
    def success(cls, source: str, payload: Any, *, stale: bool = False) -> SourceResult:
        """Build a successful result.

        :param source: Source name.
        :param payload: Normalized payload (must not be None).
        :param stale: True if the payload was served from an expired entry.
        :returns: Successful SourceResult.
        """
        return cls(
            source=source,
            payload=payload,
            freshness=Freshness.STALE if stale else Freshness.FRESH,
        )

    @classmethod
    def failure(cls, source: str, error: BaseException) -> SourceResult:
        """Build a failed result.

        :param source: Source name.
        :param error: Failure cause.
        :returns: Failed SourceResult.
        """
        return cls(source=source, error=error)

    @property
    def ok(self) -> bool:
        """Check if the call succeeded."""
        return self.error is None

    @property
    def is_stale(self) -> bool:
        """Check if the payload came from an expired cache entry."""
        return self.freshness is Freshness.STALE

    def describe(self) -> dict[str, Any]:
        """Summarize the outcome for API responses."""
        return {
            "ok": self.ok,
            "freshness": self.freshness.value if self.freshness else None,
            "error": str(self.error) if self.error is not None else None,
        }


class BaseSource(ABC):
    """Abstract base class for wallet data sources.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "manifest")
        - fetch(): Async method returning a successful SourceResult

    :cvar name: Unique identifier for this source.
    :cvar chain: Address family the source needs ("sol" or "eth").
    :cvar BASE_URL: Default API base URL.
    :cvar DEFAULT_HEADERS: Headers sent with every request.
    :ivar fetcher: Cached fetch layer used for HTTP calls.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar base_url: API base URL.
    :ivar ttl: Cache TTL override in seconds, or None for the fetcher default.
    """

    name: ClassVar[str] = ""
    chain: ClassVar[Literal["sol", "eth"]] = "sol"
    BASE_URL: ClassVar[str] = ""
    DEFAULT_HEADERS: ClassVar[dict[str, str]] = {
        "Accept": "application/json",
        "User-Agent": "Mozilla/5.0 (compatible; Pond0xAnalytics/1.0)",
    }

    def __init__(
        self,
        fetcher: CachedFetcher,
        api_key: str | None = None,
        base_url: str | None = None,
        ttl: float | None = None,
    ):
        """Initialize the source.

        :param fetcher: Cached fetch layer.
        :param api_key: Optional API key.
        :param base_url: Optional base URL override.
        :param ttl: Optional cache TTL override in seconds.
        """
        self.fetcher = fetcher
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.ttl = ttl

    @property
    def has_api_key(self) -> bool:
        """Check if this source has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    def require_api_key(self) -> str:
        """Return the API key or raise if it is missing.

        :raises SourceConfigError: If no API key is configured.
        """
        if not self.has_api_key:
            raise SourceConfigError(f"{self.name} source requires an API key")
        return self.api_key  # type: ignore[return-value]

    @abstractmethod
    async def fetch(self, address: str) -> SourceResult:
        """Fetch and normalize this source's view of a wallet.

        :param address: Wallet address.
        :returns: Successful SourceResult.
        :raises FetchError: If the upstream call fails.
        """
        pass

    async def load(self, address: str) -> SourceResult:
        """Fetch a wallet view, converting any failure into a failed result.

        :param address: Wallet address.
        :returns: SourceResult, successful or failed.
        """
        try:
            return await self.fetch(address)
        except FetchError as e:
            logger.warning(f"[{self.name}] Failed to fetch {address}: {e}")
            return SourceResult.failure(self.name, e)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"[{self.name}] Failed to parse response for {address}: {e}")
            return SourceResult.failure(self.name, e)

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        merged = dict(self.DEFAULT_HEADERS)
        if headers:
            merged.update(headers)
        return merged

    async def _get(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        parse: Literal["json", "text"] = "json",
    ) -> FetchResult:
        """Make a cached GET request.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Extra request headers.
        :param parse: Body decoding, "json" or "text".
        :returns: FetchResult from the cached fetch layer.
        :raises FetchError: If the request fails with nothing cached.
        """
        return await self.fetcher.fetch(
            url,
            params=params,
            headers=self._headers(headers),
            ttl=self.ttl,
            parse=parse,
        )

    async def _post(
        self,
        url: str,
        *,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        """Make a cached POST request (idempotent reads only, e.g. JSON-RPC).

        :param url: Request URL.
        :param json: JSON body.
        :param headers: Extra request headers.
        :returns: FetchResult from the cached fetch layer.
        :raises FetchError: If the request fails with nothing cached.
        """
        return await self.fetcher.fetch(
            url,
            method="POST",
            json=json,
            headers=self._headers(headers),
            ttl=self.ttl,
        )


# Registry of available sources (populated by subclass imports)
SOURCE_REGISTRY: dict[str, type[BaseSource]] = {}


def register_source(cls: type[BaseSource]) -> type[BaseSource]:
    """Decorator to register a source class in the global registry.

    :param cls: Source class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If source has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Source {cls.__name__} must define a 'name' class variable")
    SOURCE_REGISTRY[cls.name] = cls
    return cls


def get_source(
    name: str,
    fetcher: CachedFetcher,
    api_key: str | None = None,
    base_url: str | None = None,
) -> BaseSource:
    """Get a source instance by name.

    :param name: Source name (e.g., "manifest", "health").
    :param fetcher: Cached fetch layer to give the source.
    :param api_key: Optional API key.
    :param base_url: Optional base URL override.
    :returns: Source instance.
    :raises ValueError: If source name is unknown.
    """
    if name not in SOURCE_REGISTRY:
        available = ", ".join(sorted(SOURCE_REGISTRY.keys()))
        raise ValueError(f"Unknown source '{name}'. Available: {available}")
    return SOURCE_REGISTRY[name](fetcher, api_key=api_key, base_url=base_url)


def get_available_sources() -> list[str]:
    """Get list of available source names.

    :returns: Sorted list of registered source names.
    """
    return sorted(SOURCE_REGISTRY.keys())
