"""ApiCache: In-memory TTL cache for upstream API responses.

Entries are immutable and replaced wholesale on refresh. Expired entries are
never evicted on read: they stay available through get_stale() so the fetch
layer can serve them when every upstream attempt fails.

.. code-block:: python

    >>> cache = ApiCache(default_ttl=300.0)
    >>> entry = cache.set(("GET", "https://example.com"), {"ok": True})
    >>> cache.get(("GET", "https://example.com"))
    {'ok': True}
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload with its capture and expiry times.

    :ivar payload: Decoded response body.
    :ivar captured_at: Unix timestamp when the payload was stored.
    :ivar expires_at: Unix timestamp after which the entry is stale.
    """

    payload: Any
    captured_at: float
    expires_at: float

    def __post_init__(self) -> None:
        if self.expires_at <= self.captured_at:
            raise ValueError("expires_at must be later than captured_at")

    def is_fresh(self, now: float) -> bool:
        """Check if the entry is still within its TTL."""
        return now <= self.expires_at


class ApiCache:
    """Process-wide store of CacheEntry objects keyed by request descriptor.

    The cache is constructed explicitly and handed to the fetch layer, so
    tests and separate app instances never share state by accident.

    :ivar default_ttl: TTL in seconds used when set() is called without one.
    """

    DEFAULT_TTL = 300.0  # 5 minutes

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize an empty cache.

        :param default_ttl: Default time-to-live in seconds.
        :param clock: Callable returning the current Unix time.
        :raises ValueError: If default_ttl is not positive.
        """
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}

    def set(self, key: Hashable, payload: Any, ttl: float | None = None) -> CacheEntry:
        """Store a payload, replacing any previous entry for the key.

        :param key: Hashable cache key.
        :param payload: Value to store.
        :param ttl: Time-to-live in seconds (default: default_ttl).
        :returns: The newly written entry.
        :raises ValueError: If ttl is not positive.
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        now = self._clock()
        entry = CacheEntry(payload=payload, captured_at=now, expires_at=now + ttl)
        self._entries[key] = entry
        return entry

    def get(self, key: Hashable) -> Any | None:
        """Get a payload if a fresh entry exists.

        :param key: Cache key.
        :returns: The cached payload, or None if missing or expired.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            logger.debug(f"Cache entry expired for {key!r}")
            return None
        return entry.payload

    def get_stale(self, key: Hashable) -> Any | None:
        """Get a payload regardless of expiry.

        :param key: Cache key.
        :returns: The cached payload, or None if the key was never stored.
        """
        entry = self._entries.get(key)
        return entry.payload if entry is not None else None

    def get_entry(self, key: Hashable) -> CacheEntry | None:
        """Get the raw entry for a key, fresh or not."""
        return self._entries.get(key)

    def is_fresh(self, entry: CacheEntry) -> bool:
        """Check an entry against the cache clock."""
        return entry.is_fresh(self._clock())

    def has(self, key: Hashable) -> bool:
        """Check if a fresh entry exists for the key."""
        return self.get(key) is not None

    def clear(self) -> int:
        """Drop every entry.

        :returns: Number of entries removed.
        """
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        """Summarize cache contents for debugging.

        :returns: Dict with entry count and per-entry age / remaining TTL in
            whole seconds (negative ttl means expired).
        """
        now = self._clock()
        entries = [
            {
                "key": repr(key),
                "age": round(now - entry.captured_at),
                "ttl": round(entry.expires_at - now),
            }
            for key, entry in self._entries.items()
        ]
        return {"size": len(self._entries), "entries": entries}
