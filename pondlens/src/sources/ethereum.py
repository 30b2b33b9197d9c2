"""Ethereum transfer source (Alchemy JSON-RPC).

Endpoint: https://eth-mainnet.g.alchemy.com/v2/{API_KEY}
Method: alchemy_getAssetTransfers
Rate Limit: Depends on plan (API key required)
"""

import logging
from datetime import datetime
from typing import Any

from .base import BaseSource, SourceResult, register_source

logger = logging.getLogger(__name__)

TRANSFER_CATEGORIES = ["external", "internal", "erc20", "erc721", "erc1155"]


def _timestamp_ms(value: str | None) -> int:
    if not value:
        return 0
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)


def parse_asset_transfer(transfer: dict[str, Any], index: int) -> dict[str, Any]:
    """Map one Alchemy asset transfer onto a timeline event.

    ERC-20 transfers are counted as swaps; everything else is a transfer.

    :param transfer: Transfer record from alchemy_getAssetTransfers.
    :param index: Position in the result list (keeps ids unique).
    :returns: Event dict.
    """
    category = str(transfer.get("category") or "external")
    asset = transfer.get("asset") or "ETH"
    value = transfer.get("value") or 0
    return {
        "id": f"eth_{transfer.get('hash')}_{index}",
        "type": "swap" if category == "erc20" else "transfer",
        "description": f"{category.upper()}: {value} {asset}",
        "timestamp": _timestamp_ms((transfer.get("metadata") or {}).get("blockTimestamp")),
        "hash": transfer.get("hash"),
        "chain": "eth",
        "amount": float(value),
        "token": asset,
        "tokenSymbol": asset,
        "tokenName": "Ethereum" if asset == "ETH" else asset,
    }


@register_source
class EthereumSource(BaseSource):
    """Source for Ethereum wallet history via Alchemy.

    Requires an Alchemy API key.
    """

    name = "ethereum"
    chain = "eth"
    BASE_URL = "https://eth-mainnet.g.alchemy.com/v2"
    MAX_COUNT = 100

    async def fetch(self, address: str) -> SourceResult:
        """Fetch outgoing asset transfers for an Ethereum wallet.

        :param address: Ethereum wallet address.
        :returns: Successful SourceResult with events and stats.
        :raises SourceConfigError: If no API key is configured.
        :raises FetchError: If the request fails with nothing cached.
        """
        api_key = self.require_api_key()
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "alchemy_getAssetTransfers",
            "params": [
                {
                    "fromBlock": "0x0",
                    "toBlock": "latest",
                    "fromAddress": address,
                    "category": TRANSFER_CATEGORIES,
                    "withMetadata": True,
                    "excludeZeroValue": True,
                    "maxCount": hex(self.MAX_COUNT),
                }
            ],
        }
        result = await self._post(f"{self.base_url}/{api_key}", json=body)
        transfers = (result.data.get("result") or {}).get("transfers") or []

        events = [parse_asset_transfer(t, i) for i, t in enumerate(transfers)]
        swaps = sum(1 for e in events if e["type"] == "swap")
        logger.debug(f"[ethereum] {address}: {len(events)} events, {swaps} swaps")
        payload = {
            "events": events,
            "stats": {"totalSwaps": swaps, "eventCount": len(events)},
        }
        return SourceResult.success(self.name, payload, stale=result.is_stale)
