"""WalletAggregator: Fan-out/fan-in aggregation of wallet data sources.

Architecture:
    - Picks every configured source whose chain has an address
    - Loads all of them concurrently and waits for all to settle
    - A failure in one source never blocks or aborts the others
    - Resolves output fields through the FieldResolver priority table
    - Derives Pro expiry and the mining rig boost from resolved fields
    - Merges timeline events from chain sources, newest first
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from .FieldResolver import FieldResolver
from .MiningRigBoost import compute_boost
from .sources.base import SourceResult

if TYPE_CHECKING:
    from .sources import BaseSource

logger = logging.getLogger(__name__)

# Pond Pro subscriptions last a year from purchase
PRO_SUBSCRIPTION_DAYS = 365

POND0X_SOURCES = ("manifest", "health", "mining")
CHAIN_EVENT_SOURCES = ("solana", "ethereum")


def merge_events(
    *event_lists: Iterable[Mapping[str, Any]], key: str = "timestamp"
) -> list[Mapping[str, Any]]:
    """Combine event lists and sort them newest first.

    :param event_lists: Event lists from different chains.
    :param key: Timestamp field name.
    :returns: One list sorted by key descending (stable for ties).
    """
    combined = [event for events in event_lists for event in events]
    return sorted(combined, key=lambda e: e.get(key) or 0, reverse=True)


def pro_expiry(
    is_pro: bool, pro_ago: int | None, now: datetime
) -> datetime | None:
    """Estimate when a Pond Pro subscription runs out.

    :param is_pro: Whether the wallet currently has Pro.
    :param pro_ago: Days since the subscription was bought.
    :param now: Current time.
    :returns: Expiry time, or None if unknown or already past.
    """
    if not is_pro or pro_ago is None or pro_ago >= PRO_SUBSCRIPTION_DAYS:
        return None
    return now + timedelta(days=PRO_SUBSCRIPTION_DAYS - pro_ago)


@dataclass
class AggregateResult:
    """Merged view of one wallet across all sources.

    :ivar stats: Every declared output field plus derived fields.
    :ivar events: Timeline events from chain sources, newest first.
    :ivar sources: Source name to SourceResult for every source invoked.
    :ivar provenance: Field name to the source(s) that supplied it.
    """

    stats: dict[str, Any] = field(default_factory=dict)
    events: list[Mapping[str, Any]] = field(default_factory=list)
    sources: dict[str, SourceResult] = field(default_factory=dict)
    provenance: dict[str, str] = field(default_factory=dict)

    def payload(self, source: str) -> Any:
        """Payload of a successful source, or None."""
        result = self.sources.get(source)
        return result.payload if result is not None and result.ok else None

    def to_response(self) -> dict[str, Any]:
        """Render the JSON body served by /api/wallet/multi."""
        return {
            "events": list(self.events),
            "stats": dict(self.stats),
            "pond0xData": {name: self.payload(name) for name in POND0X_SOURCES},
            "sources": {name: r.describe() for name, r in self.sources.items()},
        }


class WalletAggregator:
    """Aggregates wallet data from multiple independent sources.

    :ivar sources: Source instances keyed by name.
    :ivar resolver: Field priority table evaluator.
    """

    def __init__(
        self,
        sources: Sequence[BaseSource],
        resolver: FieldResolver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the aggregator.

        :param sources: Source instances to fan out to.
        :param resolver: Field resolver (default: FieldResolver()).
        :param clock: Callable returning the current UTC time.
        """
        self.sources: dict[str, BaseSource] = {s.name: s for s in sources}
        self.resolver = resolver or FieldResolver()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        """Current time according to the aggregator clock."""
        return self._clock()

    async def load_sources(
        self, addresses: Mapping[str, str | None]
    ) -> dict[str, SourceResult]:
        """Load every source whose chain has an address, concurrently.

        :param addresses: Chain ("sol"/"eth") to wallet address or None.
        :returns: Source name to SourceResult for every source invoked.
        """
        selected = [
            (name, source, addresses[source.chain])
            for name, source in self.sources.items()
            if addresses.get(source.chain)
        ]
        if not selected:
            return {}

        outcomes = await asyncio.gather(
            *(source.load(address) for _, source, address in selected),
            return_exceptions=True,
        )

        results: dict[str, SourceResult] = {}
        for (name, _, _), outcome in zip(selected, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.warning(f"[{name}] Unexpected source error: {outcome!r}")
                results[name] = SourceResult.failure(name, outcome)
            else:
                results[name] = outcome
        return results

    async def aggregate(
        self, address: str | None, *, eth_address: str | None = None
    ) -> AggregateResult:
        """Build the merged view for a wallet. Never raises for source failures.

        :param address: Solana wallet address (drives the Pond0x sources).
        :param eth_address: Optional Ethereum address.
        :returns: AggregateResult with every declared field present.
        """
        results = await self.load_sources({"sol": address, "eth": eth_address})
        return self.build(results)

    def build(self, results: Mapping[str, SourceResult]) -> AggregateResult:
        """Merge source outcomes into an AggregateResult.

        :param results: Source name to SourceResult.
        :returns: AggregateResult.
        """
        resolution = self.resolver.resolve(results)
        stats = dict(resolution.values)

        expiry = pro_expiry(
            bool(stats.get("pondProStatus")), stats.get("proAgo"), self.now()
        )
        stats["pondProExpiry"] = expiry.isoformat() if expiry else None

        boost = compute_boost(stats["totalSwaps"], stats["miningSessions"])
        stats.update(boost.to_dict())

        events = merge_events(
            *(
                results[name].payload.get("events") or []
                for name in CHAIN_EVENT_SOURCES
                if name in results and results[name].ok
            )
        )

        failed = [name for name, r in results.items() if not r.ok]
        stale = [name for name, r in results.items() if r.is_stale]
        if failed:
            logger.info(f"Aggregated with failed sources: {failed}")
        if stale:
            logger.info(f"Aggregated with stale sources: {stale}")

        return AggregateResult(
            stats=stats,
            events=events,
            sources=dict(results),
            provenance=dict(resolution.provenance),
        )
