"""Cary0x manifest source.

Endpoint: https://www.cary0x.com/api/manifest/{ADDRESS}
Authoritative for swap counts and Pro subscription status.
"""

import logging
from typing import Any

from .base import BaseSource, SourceResult, register_source

logger = logging.getLogger(__name__)


def parse_badges(badges: Any) -> list[str]:
    """Split a comma-separated badge string into a clean list.

    :param badges: Raw ``badges`` value (string, list or None).
    :returns: List of non-empty badge names.
    """
    if not badges:
        return []
    if isinstance(badges, list):
        return [str(b).strip() for b in badges if str(b).strip()]
    return [b.strip() for b in str(badges).split(",") if b.strip()]


def _to_int(value: Any, default: int | None = 0) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_manifest(data: dict[str, Any], address: str) -> dict[str, Any]:
    """Map a raw manifest response onto the dashboard's manifest shape.

    :param data: Raw JSON object from the manifest endpoint.
    :param address: Wallet address the manifest belongs to.
    :returns: Normalized manifest dict.
    """
    swaps = data.get("proSwapsSol")
    if swaps is None:
        swaps = data.get("swaps")
    return {
        "swaps": _to_int(swaps, default=None),
        "bxSwaps": _to_int(data.get("proSwapsBx")),
        "hasTwitter": bool(data.get("hasTwitter")),
        "badges": parse_badges(data.get("badges")),
        "cope": bool(data.get("cope")),
        "isPro": bool(data.get("isPro")),
        "proAgo": _to_int(data.get("proAgo"), default=None),
        "walletAddress": address,
    }


def synthesize_manifest(address: str, swap_count: int) -> dict[str, Any]:
    """Build a manifest-shaped dict from on-chain swap counts alone.

    Used when the manifest API is unavailable. Pro status is unknown, so
    isPro is false and proAgo is 999.

    :param address: Wallet address.
    :param swap_count: Swaps counted from blockchain data.
    :returns: Manifest dict.
    """
    return {
        "swaps": swap_count,
        "bxSwaps": 0,
        "hasTwitter": False,
        "badges": [],
        "cope": False,
        "isPro": False,
        "proAgo": 999,
        "walletAddress": address,
    }


@register_source
class ManifestSource(BaseSource):
    """Source for the community Cary0x manifest API.

    No API key required.
    """

    name = "manifest"
    chain = "sol"
    BASE_URL = "https://www.cary0x.com/api"

    async def fetch(self, address: str) -> SourceResult:
        """Fetch and normalize the manifest for a Solana wallet.

        :param address: Solana wallet address.
        :returns: Successful SourceResult with a normalized manifest.
        :raises FetchError: If the request fails with nothing cached.
        :raises TypeError: If the response is not a JSON object.
        """
        result = await self._get(f"{self.base_url}/manifest/{address}")
        if not isinstance(result.data, dict):
            raise TypeError(f"Unexpected manifest payload: {type(result.data).__name__}")

        manifest = normalize_manifest(result.data, address)
        logger.debug(
            f"[manifest] {address}: swaps={manifest['swaps']} isPro={manifest['isPro']}"
        )
        return SourceResult.success(self.name, manifest, stale=result.is_stale)
