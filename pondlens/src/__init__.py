"""
Pondlens - Pond0x Wallet Analytics Aggregation Module

This module aggregates wallet data from multiple independent sources:
- ApiCache: Injected TTL cache of upstream responses
- CachedFetcher: Cached HTTP fetch with retry and stale fallback
- FieldResolver: Declarative priority table for output fields
- MiningRigBoost: Swap/session boost formula and projections
- WalletAggregator: Concurrent fan-out over sources and field merge
- sources: Modular wallet data source implementations
"""

from .ApiCache import ApiCache, CacheEntry
from .CachedFetcher import (
    ApplicationError,
    CachedFetcher,
    FetchError,
    FetchResult,
    RateLimitedError,
    RequestDescriptor,
    TransportError,
    should_retry,
)
from .FieldResolver import FIELD_RULES, FieldResolver
from .MiningRigBoost import MAX_BOOST, BoostBreakdown, compute_boost
from .WalletAggregator import AggregateResult, WalletAggregator, merge_events

__all__ = [
    "AggregateResult",
    "ApiCache",
    "ApplicationError",
    "BoostBreakdown",
    "CacheEntry",
    "CachedFetcher",
    "FIELD_RULES",
    "FetchError",
    "FetchResult",
    "FieldResolver",
    "MAX_BOOST",
    "RateLimitedError",
    "RequestDescriptor",
    "TransportError",
    "WalletAggregator",
    "compute_boost",
    "merge_events",
    "should_retry",
]
