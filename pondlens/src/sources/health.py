"""Mining health / stats source.

Endpoint: {BASE}/health/{ADDRESS}
Provides mining session counts, mempool/sent/failed/drifted counters and USD
claim estimates. Payload is passed through untouched.
"""

from .base import BaseSource, SourceResult, register_source


@register_source
class HealthSource(BaseSource):
    """Source for the mining health API (Cary0x by default)."""

    name = "health"
    chain = "sol"
    BASE_URL = "https://www.cary0x.com/api"

    async def fetch(self, address: str) -> SourceResult:
        """Fetch mining stats for a Solana wallet.

        :param address: Solana wallet address.
        :returns: Successful SourceResult with the raw health payload.
        :raises FetchError: If the request fails with nothing cached.
        :raises TypeError: If the response is not a JSON object.
        """
        result = await self._get(f"{self.base_url}/health/{address}")
        if not isinstance(result.data, dict):
            raise TypeError(f"Unexpected health payload: {type(result.data).__name__}")
        return SourceResult.success(self.name, result.data, stale=result.is_stale)
