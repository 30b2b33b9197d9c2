"""Tests for the HTTP API."""

from datetime import datetime, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient

from pondlens.src.ApiCache import ApiCache
from pondlens.src.CachedFetcher import CachedFetcher, TransportError
from pondlens.src.WalletAddress import classify_address, is_ethereum_address, is_solana_address
from pondlens.src.WalletAggregator import WalletAggregator
from pondlens.src.api import create_app
from pondlens.src.renewal_ics import build_renewal_ics
from pondlens.src.sources import BaseSource, SourceResult

SOL_ADDRESS = "So11111111111111111111111111111111111111112"
ETH_ADDRESS = "0x0000000000000000000000000000000000000001"
NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


class StubSource(BaseSource):
    """Source returning a canned payload or failing."""

    def __init__(self, name: str, payload=None, fail: bool = False, chain: str = "sol"):
        super().__init__(CachedFetcher(ApiCache()))
        self.name = name
        self.chain = chain
        self.payload = payload
        self.fail = fail
        self.calls: list[str] = []

    async def fetch(self, address: str) -> SourceResult:
        self.calls.append(address)
        if self.fail:
            raise TransportError("down")
        return SourceResult.success(self.name, self.payload)


def make_sources(failing: set[str] = frozenset(), manifest=None) -> dict[str, StubSource]:
    payloads = {
        "manifest": manifest or {"swaps": 42, "isPro": True, "proAgo": 10},
        "health": {"stats": {"mining_sessions": 3}},
        "mining": {"hasActiveMining": False, "miningSignature": None, "sessionDetails": None},
        "solana": {"events": [{"id": "s", "timestamp": 1000}], "stats": {"totalSwaps": 9}},
        "ethereum": {"events": [{"id": "e", "timestamp": 2000}], "stats": {"totalSwaps": 4}},
    }
    return {
        name: StubSource(
            name,
            payload=payload,
            fail=name in failing,
            chain="eth" if name == "ethereum" else "sol",
        )
        for name, payload in payloads.items()
    }


def make_client(sources: dict[str, StubSource], **kwargs) -> tuple[TestClient, WalletAggregator]:
    aggregator = WalletAggregator(list(sources.values()), clock=lambda: NOW)
    app = create_app(aggregator, CachedFetcher(ApiCache()))
    return TestClient(app, **kwargs), aggregator


class TestWalletAddress:
    """Test address classification."""

    def test_solana(self) -> None:
        """Base58 public keys are Solana addresses."""
        assert is_solana_address(SOL_ADDRESS)
        assert classify_address(SOL_ADDRESS) == "sol"

    def test_ethereum(self) -> None:
        """0x-prefixed 20-byte hex strings are Ethereum addresses."""
        assert is_ethereum_address(ETH_ADDRESS)
        assert classify_address(ETH_ADDRESS) == "eth"

    def test_invalid(self) -> None:
        """Garbage is neither."""
        assert classify_address("not-a-wallet") is None
        assert not is_solana_address("0OIl")
        assert not is_ethereum_address("0x1234")


class TestMultiEndpoint:
    """Test POST /api/wallet/multi."""

    def test_success_shape(self) -> None:
        """A Solana address should return the merged view."""
        client, _ = make_client(make_sources())
        response = client.post("/api/wallet/multi", json={"address": SOL_ADDRESS})

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"events", "stats", "pond0xData", "sources"}
        assert body["stats"]["totalSwaps"] == 42
        assert body["stats"]["pondProStatus"] is True
        assert body["pond0xData"]["manifest"]["swaps"] == 42
        assert "ethereum" not in body["sources"]

    def test_sol_and_eth_addresses(self) -> None:
        """Explicit chain addresses should both be queried."""
        sources = make_sources()
        client, _ = make_client(sources)
        response = client.post(
            "/api/wallet/multi", json={"solAddress": SOL_ADDRESS, "ethAddress": ETH_ADDRESS}
        )

        assert response.status_code == 200
        assert [e["id"] for e in response.json()["events"]] == ["e", "s"]
        assert sources["ethereum"].calls == [ETH_ADDRESS]

    def test_eth_address_routed_by_format(self) -> None:
        """A generic Ethereum address should only reach the Ethereum source."""
        sources = make_sources()
        client, _ = make_client(sources)
        response = client.post("/api/wallet/multi", json={"address": ETH_ADDRESS})

        assert response.status_code == 200
        assert sources["ethereum"].calls == [ETH_ADDRESS]
        assert sources["manifest"].calls == []
        assert response.json()["stats"]["totalSwaps"] == 4

    def test_include_ethereum_false(self) -> None:
        """includeEthereum=false should skip the Ethereum source."""
        sources = make_sources()
        client, _ = make_client(sources)
        client.post(
            "/api/wallet/multi",
            json={"solAddress": SOL_ADDRESS, "ethAddress": ETH_ADDRESS, "includeEthereum": False},
        )
        assert sources["ethereum"].calls == []

    def test_partial_failure_still_200(self) -> None:
        """Failed sources should be reported, not turned into errors."""
        client, _ = make_client(make_sources({"health", "mining"}))
        response = client.post("/api/wallet/multi", json={"address": SOL_ADDRESS})

        assert response.status_code == 200
        body = response.json()
        assert body["sources"]["health"]["ok"] is False
        assert body["pond0xData"]["health"] is None
        assert body["stats"]["miningSessions"] == 0

    def test_missing_address(self) -> None:
        """No address should be a 400."""
        client, _ = make_client(make_sources())
        response = client.post("/api/wallet/multi", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "Address is required"}

    def test_eth_only_with_ethereum_excluded(self) -> None:
        """Excluding Ethereum leaves nothing to query for an ETH-only body."""
        client, _ = make_client(make_sources())
        response = client.post(
            "/api/wallet/multi", json={"ethAddress": ETH_ADDRESS, "includeEthereum": False}
        )
        assert response.status_code == 400

    def test_invalid_address(self) -> None:
        """Unrecognized addresses should be a 400."""
        client, _ = make_client(make_sources())
        response = client.post("/api/wallet/multi", json={"address": "not-a-wallet"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_invalid_explicit_solana_address(self) -> None:
        """An Ethereum address passed as solAddress should be rejected."""
        client, _ = make_client(make_sources())
        response = client.post("/api/wallet/multi", json={"solAddress": ETH_ADDRESS})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid Solana address"}

    def test_malformed_body(self) -> None:
        """A body that is not JSON should be a 400."""
        client, _ = make_client(make_sources())
        response = client.post(
            "/api/wallet/multi",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_get_not_allowed(self) -> None:
        """GET should be a 405 with a JSON error."""
        client, _ = make_client(make_sources())
        response = client.get("/api/wallet/multi")
        assert response.status_code == 405
        assert "error" in response.json()

    def test_options(self) -> None:
        """OPTIONS should succeed, with CORS headers on preflight."""
        client, _ = make_client(make_sources())
        assert client.options("/api/wallet/multi").status_code == 200

        preflight = client.options(
            "/api/wallet/multi",
            headers={
                "Origin": "https://dashboard.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert preflight.status_code == 200
        assert preflight.headers["access-control-allow-origin"] == "*"

    def test_cors_header_on_post(self) -> None:
        """Simple requests should get the wildcard origin header."""
        client, _ = make_client(make_sources())
        response = client.post(
            "/api/wallet/multi",
            json={"address": SOL_ADDRESS},
            headers={"Origin": "https://dashboard.example.com"},
        )
        assert response.headers["access-control-allow-origin"] == "*"

    def test_unexpected_error_is_500(self) -> None:
        """Unhandled exceptions should be a JSON 500."""
        client, aggregator = make_client(make_sources(), raise_server_exceptions=False)
        with patch.object(aggregator, "aggregate", side_effect=RuntimeError("boom")):
            response = client.post(
                "/api/wallet/multi",
                json={"address": SOL_ADDRESS},
                headers={"Origin": "https://dashboard.example.com"},
            )

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "message": "boom"}
        assert response.headers["access-control-allow-origin"] == "*"


class TestChainEndpoint:
    """Test GET /api/wallet/{chain}/{address}."""

    def test_solana(self) -> None:
        """sol should return the Solana source's events and stats."""
        client, _ = make_client(make_sources())
        response = client.get(f"/api/wallet/sol/{SOL_ADDRESS}")

        assert response.status_code == 200
        assert response.json()["stats"]["totalSwaps"] == 9
        assert response.json()["freshness"] == "fresh"

    def test_ethereum(self) -> None:
        """eth should return the Ethereum source's view."""
        client, _ = make_client(make_sources())
        response = client.get(f"/api/wallet/eth/{ETH_ADDRESS}")
        assert response.json()["events"][0]["id"] == "e"

    def test_unsupported_chain(self) -> None:
        """Unknown chains should be a 400."""
        client, _ = make_client(make_sources())
        assert client.get(f"/api/wallet/btc/{SOL_ADDRESS}").status_code == 400

    def test_address_chain_mismatch(self) -> None:
        """An Ethereum address on the sol route should be a 400."""
        client, _ = make_client(make_sources())
        assert client.get(f"/api/wallet/sol/{ETH_ADDRESS}").status_code == 400

    def test_source_failure(self) -> None:
        """A failing source should be a 500."""
        client, _ = make_client(make_sources({"solana"}))
        response = client.get(f"/api/wallet/sol/{SOL_ADDRESS}")
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch wallet data"}


class TestManifestEndpoint:
    """Test GET /api/pond0x/manifest/{address}."""

    def test_manifest(self) -> None:
        """A working manifest source should be returned as-is."""
        client, _ = make_client(make_sources())
        response = client.get(f"/api/pond0x/manifest/{SOL_ADDRESS}")
        assert response.json()["swaps"] == 42

    def test_synthesized_fallback(self) -> None:
        """A failing manifest should be synthesized from chain swaps."""
        client, _ = make_client(make_sources({"manifest"}))
        body = client.get(f"/api/pond0x/manifest/{SOL_ADDRESS}").json()

        assert body["swaps"] == 9
        assert body["isPro"] is False
        assert body["proAgo"] == 999

    def test_everything_down(self) -> None:
        """With no manifest and no chain data the endpoint should 500."""
        client, _ = make_client(make_sources({"manifest", "solana"}))
        assert client.get(f"/api/pond0x/manifest/{SOL_ADDRESS}").status_code == 500


class TestRenewalCalendar:
    """Test the Pond Pro renewal ICS download."""

    def test_build_renewal_ics(self) -> None:
        """The document should contain one all-day event."""
        ics = build_renewal_ics("Renew", "Pro expires", NOW.date(), now=NOW)
        lines = ics.split("\r\n")

        assert lines[0] == "BEGIN:VCALENDAR"
        assert "DTSTART;VALUE=DATE:20250101" in lines
        assert "DTSTAMP:20250101T000000Z" in lines
        assert "SUMMARY:Renew" in lines
        assert lines[-2] == "END:VCALENDAR"

    def test_download(self) -> None:
        """Pro wallets should get a calendar file for the expiry date."""
        client, _ = make_client(make_sources())
        response = client.get(f"/api/wallet/{SOL_ADDRESS}/pro-renewal.ics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert "attachment" in response.headers["content-disposition"]
        assert "DTSTART;VALUE=DATE:20251222" in response.text

    def test_not_pro(self) -> None:
        """Wallets without Pro have no renewal date."""
        client, _ = make_client(make_sources(manifest={"swaps": 1, "isPro": False, "proAgo": None}))
        assert client.get(f"/api/wallet/{SOL_ADDRESS}/pro-renewal.ics").status_code == 404


class TestCacheStatsEndpoint:
    """Test GET /api/cache/stats."""

    def test_stats(self) -> None:
        """Stats should report cache size and fetch counters."""
        client, _ = make_client(make_sources())
        body = client.get("/api/cache/stats").json()

        assert body["cache"] == {"size": 0, "entries": []}
        assert body["fetch"]["cache_hits"] == 0
