"""Solana transaction source (Helius enhanced transactions API).

Endpoint: https://api.helius.xyz/v0/addresses/{ADDRESS}/transactions
Rate Limit: Depends on plan (API key required)

Transaction parsing is Helius' job; this source only maps its enhanced
records onto timeline events and counts swaps.
"""

import logging
from typing import Any

from .base import BaseSource, SourceResult, register_source

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000


def _event_type(tx: dict[str, Any]) -> str:
    if tx.get("transactionError"):
        return "failed"
    tx_type = str(tx.get("type") or "").lower()
    description = str(tx.get("description") or "").lower()
    if tx_type == "swap" or any(w in description for w in ("swap", "bought", "sold")):
        return "swap"
    if tx_type in ("stake", "unstake") or "stake" in description:
        return "stake"
    return "transfer"


def _event_amount(tx: dict[str, Any], address: str) -> tuple[float, str]:
    for transfer in tx.get("tokenTransfers") or []:
        if address in (transfer.get("fromUserAccount"), transfer.get("toUserAccount")):
            try:
                amount = abs(float(transfer.get("tokenAmount") or 0))
            except (TypeError, ValueError):
                continue
            return amount, transfer.get("symbol") or transfer.get("mint") or "SPL"
    for transfer in tx.get("nativeTransfers") or []:
        if address in (transfer.get("fromUserAccount"), transfer.get("toUserAccount")):
            return abs(transfer.get("amount") or 0) / LAMPORTS_PER_SOL, "SOL"
    return 0.0, "SOL"


def parse_enhanced_transaction(tx: dict[str, Any], address: str) -> dict[str, Any] | None:
    """Map one Helius enhanced transaction onto a timeline event.

    :param tx: Enhanced transaction record.
    :param address: Wallet the timeline belongs to.
    :returns: Event dict, or None if the record has no signature.
    """
    signature = tx.get("signature")
    if not signature:
        return None

    event_type = _event_type(tx)
    amount, token = _event_amount(tx, address)
    description = tx.get("description") or "Solana transaction"
    if event_type == "failed":
        description = f"{description} (failed)"

    return {
        "id": f"sol_{signature}",
        "type": event_type,
        "description": description,
        "timestamp": int(tx.get("timestamp") or 0) * 1000,
        "hash": signature,
        "chain": "sol",
        "amount": amount,
        "token": token,
        "tokenSymbol": token,
        "tokenName": "Solana" if token == "SOL" else token,
    }


@register_source
class SolanaSource(BaseSource):
    """Source for Solana wallet history via the Helius enhanced API.

    Requires a Helius API key.
    """

    name = "solana"
    chain = "sol"
    BASE_URL = "https://api.helius.xyz/v0"
    PAGE_LIMIT = 100

    async def fetch(self, address: str) -> SourceResult:
        """Fetch recent transactions for a Solana wallet.

        :param address: Solana wallet address.
        :returns: Successful SourceResult with events and stats.
        :raises SourceConfigError: If no API key is configured.
        :raises FetchError: If the request fails with nothing cached.
        :raises TypeError: If the response is not a JSON list.
        """
        api_key = self.require_api_key()
        result = await self._get(
            f"{self.base_url}/addresses/{address}/transactions",
            params={"api-key": api_key, "limit": self.PAGE_LIMIT},
        )
        if not isinstance(result.data, list):
            raise TypeError(f"Unexpected Helius payload: {type(result.data).__name__}")

        events = []
        for tx in result.data:
            if not isinstance(tx, dict):
                continue
            event = parse_enhanced_transaction(tx, address)
            if event is not None:
                events.append(event)

        swaps = sum(1 for e in events if e["type"] == "swap")
        logger.debug(f"[solana] {address}: {len(events)} events, {swaps} swaps")
        payload = {
            "events": events,
            "stats": {"totalSwaps": swaps, "eventCount": len(events)},
        }
        return SourceResult.success(self.name, payload, stale=result.is_stale)
