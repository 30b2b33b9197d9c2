"""FastAPI application exposing the aggregated wallet view.

Routes:
    - POST /api/wallet/multi: merged view across every applicable source
    - GET  /api/wallet/{chain}/{address}: one chain's events and stats
    - GET  /api/pond0x/manifest/{address}: manifest, synthesized on failure
    - GET  /api/wallet/{address}/pro-renewal.ics: Pond Pro renewal reminder
    - GET  /api/cache/stats: cache and fetch counters

Every error response is a JSON object with an ``error`` field.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .CachedFetcher import CachedFetcher
from .WalletAddress import classify_address, is_ethereum_address, is_solana_address
from .WalletAggregator import WalletAggregator, pro_expiry
from .renewal_ics import build_renewal_ics
from .sources.manifest import synthesize_manifest

logger = logging.getLogger(__name__)

CHAIN_SOURCE_NAMES = {"sol": "solana", "eth": "ethereum"}

RENEWAL_TITLE = "Pond Pro Renewal"
RENEWAL_FILENAME = "pond-pro-renewal.ics"


class MultiWalletRequest(BaseModel):
    """Body of POST /api/wallet/multi.

    ``address`` is routed by format; ``solAddress`` and ``ethAddress`` take
    precedence for their chain.
    """

    address: str | None = None
    ethAddress: str | None = None
    solAddress: str | None = None
    includeEthereum: bool = True


def resolve_addresses(body: MultiWalletRequest) -> tuple[str | None, str | None]:
    """Work out which Solana and Ethereum addresses to query.

    :param body: Parsed request body.
    :returns: Tuple of (solana address or None, ethereum address or None).
    :raises HTTPException: 400 if an address is invalid or none is usable.
    """
    sol_address = (body.solAddress or "").strip() or None
    eth_address = (body.ethAddress or "").strip() or None
    address = (body.address or "").strip()

    if address:
        chain = classify_address(address)
        if chain is None:
            raise HTTPException(status_code=400, detail="Invalid wallet address")
        if chain == "sol":
            sol_address = sol_address or address
        else:
            eth_address = eth_address or address

    if sol_address and not is_solana_address(sol_address):
        raise HTTPException(status_code=400, detail="Invalid Solana address")
    if eth_address and not is_ethereum_address(eth_address):
        raise HTTPException(status_code=400, detail="Invalid Ethereum address")

    if not body.includeEthereum:
        eth_address = None
    if not sol_address and not eth_address:
        raise HTTPException(status_code=400, detail="Address is required")
    return sol_address, eth_address


def create_app(aggregator: WalletAggregator, fetcher: CachedFetcher) -> FastAPI:
    """Create the FastAPI application.

    :param aggregator: Aggregator wired with the enabled sources.
    :param fetcher: Fetch layer shared by those sources.
    :returns: Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await CachedFetcher.close_shared_client()

    app = FastAPI(
        title="Pondlens API",
        description="Pond0x wallet analytics aggregation",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            {"error": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.debug(f"Rejected request body for {request.url.path}: {exc.errors()}")
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}: {exc!r}")
        # Served by ServerErrorMiddleware, outside CORSMiddleware
        return JSONResponse(
            {"error": "Internal server error", "message": str(exc)},
            status_code=500,
            headers={"Access-Control-Allow-Origin": "*"},
        )

    @app.options("/api/wallet/multi")
    async def wallet_multi_options() -> Response:
        return Response(status_code=200)

    @app.post("/api/wallet/multi")
    async def wallet_multi(body: MultiWalletRequest) -> dict[str, Any]:
        """Aggregate every applicable source for a wallet."""
        sol_address, eth_address = resolve_addresses(body)
        logger.info(f"Aggregating wallet sol={sol_address} eth={eth_address}")
        result = await aggregator.aggregate(sol_address, eth_address=eth_address)
        return result.to_response()

    # Declared before /api/wallet/{chain}/{address}, which also matches it
    @app.get("/api/wallet/{address}/pro-renewal.ics")
    async def pro_renewal_calendar(address: str) -> Response:
        """Calendar reminder for the wallet's Pond Pro expiry date."""
        if not is_solana_address(address):
            raise HTTPException(status_code=400, detail="Invalid Solana address")

        source = aggregator.sources.get("manifest")
        expiry = None
        if source is not None:
            result = await source.load(address)
            if result.ok:
                expiry = pro_expiry(
                    bool(result.payload.get("isPro")),
                    result.payload.get("proAgo"),
                    aggregator.now(),
                )
        if expiry is None:
            raise HTTPException(status_code=404, detail="No Pond Pro expiry known for this wallet")

        content = build_renewal_ics(
            RENEWAL_TITLE,
            f"Pond Pro subscription for {address} expires today.",
            expiry.date(),
            now=aggregator.now(),
        )
        return Response(
            content,
            media_type="text/calendar",
            headers={"Content-Disposition": f'attachment; filename="{RENEWAL_FILENAME}"'},
        )

    @app.get("/api/wallet/{chain}/{address}")
    async def wallet_chain(chain: str, address: str) -> dict[str, Any]:
        """Events and stats from a single chain indexer."""
        name = CHAIN_SOURCE_NAMES.get(chain)
        if name is None:
            raise HTTPException(status_code=400, detail=f"Unsupported chain: {chain}")
        if classify_address(address) != chain:
            raise HTTPException(status_code=400, detail=f"Invalid {chain} address")

        source = aggregator.sources.get(name)
        if source is None:
            raise HTTPException(status_code=500, detail=f"{name} source is not enabled")
        result = await source.load(address)
        if not result.ok:
            raise HTTPException(status_code=500, detail="Failed to fetch wallet data")
        return {
            "events": result.payload["events"],
            "stats": result.payload["stats"],
            "freshness": result.freshness.value,
        }

    @app.get("/api/pond0x/manifest/{address}")
    async def pond0x_manifest(address: str) -> dict[str, Any]:
        """Manifest for a wallet, synthesized from chain data if unavailable."""
        if not is_solana_address(address):
            raise HTTPException(status_code=400, detail="Invalid Solana address")

        manifest_source = aggregator.sources.get("manifest")
        if manifest_source is not None:
            result = await manifest_source.load(address)
            if result.ok:
                return result.payload

        logger.info(f"Creating fallback manifest from blockchain data for {address}")
        chain_source = aggregator.sources.get("solana")
        if chain_source is not None:
            result = await chain_source.load(address)
            if result.ok:
                return synthesize_manifest(address, result.payload["stats"]["totalSwaps"])
        raise HTTPException(status_code=500, detail="Failed to fetch Pond0x manifest data")

    @app.get("/api/cache/stats")
    async def cache_stats() -> dict[str, Any]:
        """Cache contents and fetch counters."""
        return {"cache": fetcher.cache.get_stats(), "fetch": fetcher.stats.as_dict()}

    return app
