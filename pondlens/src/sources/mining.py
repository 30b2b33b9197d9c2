"""Pond0x mining session source.

Endpoints:
    - {BASE}/solana/mining/session/{ADDRESS}: raw session signature (text)
    - {BASE}/user/minesession/{base64(SIGNATURE:ADDRESS)}: session detail
    - {BASE}/solana/mining/session/details/{SIGNATURE}: fallback detail

A signature longer than 40 characters means the wallet has an active
mining session.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from ..CachedFetcher import FetchError, TransportError
from .base import BaseSource, SourceResult, register_source

logger = logging.getLogger(__name__)

MIN_SIGNATURE_LENGTH = 40


def encode_session_param(signature: str, address: str) -> str:
    """Encode the session detail path parameter.

    :param signature: Mining session signature.
    :param address: Solana wallet address.
    :returns: base64 of ``signature:address``.
    """
    return base64.b64encode(f"{signature}:{address}".encode()).decode("ascii")


def inactive_session() -> dict[str, Any]:
    """Payload for a wallet with no active mining session."""
    return {"hasActiveMining": False, "miningSignature": None, "sessionDetails": None}


@register_source
class MiningSessionSource(BaseSource):
    """Source for the official Pond0x mining session API.

    No API key required. Requests carry pond0x.com Origin/Referer headers.
    """

    name = "mining"
    chain = "sol"
    BASE_URL = "https://www.pond0x.com/api"
    POND0X_HEADERS = {
        "Origin": "https://pond0x.com",
        "Referer": "https://pond0x.com/",
    }

    async def fetch(self, address: str) -> SourceResult:
        """Fetch the mining session state for a Solana wallet.

        :param address: Solana wallet address.
        :returns: Successful SourceResult with hasActiveMining,
            miningSignature and sessionDetails.
        :raises FetchError: If the signature request fails with nothing cached.
        """
        try:
            result = await self._get(
                f"{self.base_url}/solana/mining/session/{address}",
                headers=self.POND0X_HEADERS,
                parse="text",
            )
        except TransportError as e:
            # An error status means no session; network failures still propagate
            if e.status_code is None:
                raise
            logger.debug(f"[mining] Session lookup returned HTTP {e.status_code} for {address}")
            return SourceResult.success(self.name, inactive_session())
        signature = result.data if isinstance(result.data, str) else ""

        if len(signature) <= MIN_SIGNATURE_LENGTH:
            logger.debug(f"[mining] No active mining session for {address}")
            return SourceResult.success(self.name, inactive_session(), stale=result.is_stale)

        details, details_stale = await self._fetch_session_details(signature, address)
        payload = {
            "hasActiveMining": True,
            "miningSignature": signature,
            "sessionDetails": details,
        }
        return SourceResult.success(
            self.name, payload, stale=result.is_stale or details_stale
        )

    async def _fetch_session_details(
        self, signature: str, address: str
    ) -> tuple[dict[str, Any] | None, bool]:
        """Fetch session detail, trying the user endpoint then the basic one.

        :param signature: Active mining session signature.
        :param address: Solana wallet address.
        :returns: Tuple of (detail dict or None, stale flag).
        """
        urls = [
            f"{self.base_url}/user/minesession/{encode_session_param(signature, address)}",
            f"{self.base_url}/solana/mining/session/details/{signature}",
        ]
        for url in urls:
            try:
                result = await self._get(url, headers=self.POND0X_HEADERS)
            except FetchError as e:
                logger.warning(f"[mining] Session detail failed at {url}: {e}")
                continue
            if isinstance(result.data, dict):
                return result.data, result.is_stale
        return None, False
