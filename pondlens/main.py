#!/usr/bin/env python3
"""Pondlens: Pond0x wallet analytics.

Aggregates wallet data from the Cary0x community API, the official Pond0x
mining API and blockchain indexers, and serves the merged view over HTTP.

Configure with CLI flags or environment variables (CLI takes precedence).
"""

import argparse
import logging
import os
import sys

import uvicorn

from .src.ApiCache import ApiCache
from .src.CachedFetcher import CachedFetcher
from .src.WalletAggregator import WalletAggregator
from .src.api import create_app
from .src.sources import BaseSource, get_available_sources, get_source

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_SOURCES = "manifest,health,mining,solana,ethereum"

# Sources that read their base URL / API key from a CLI option
BASE_URL_OPTIONS = {
    "manifest": "cary0x_base_url",
    "health": "health_base_url",
    "mining": "pond0x_base_url",
}
API_KEY_OPTIONS = {
    "solana": "helius_api_key",
    "ethereum": "alchemy_api_key",
}


def build_sources(
    names: list[str], fetcher: CachedFetcher, args: argparse.Namespace
) -> list[BaseSource]:
    """Instantiate the requested sources with their configured keys and URLs.

    :param names: Source names to enable.
    :param fetcher: Shared cached fetch layer.
    :param args: Parsed CLI arguments.
    :returns: Source instances in the given order.
    """
    sources = []
    for name in names:
        api_key = getattr(args, API_KEY_OPTIONS[name]) if name in API_KEY_OPTIONS else None
        base_url = getattr(args, BASE_URL_OPTIONS[name]) if name in BASE_URL_OPTIONS else None
        if name in API_KEY_OPTIONS and not api_key:
            logger.warning(f"[{name}] No API key configured; source will report failures")
        sources.append(get_source(name, fetcher, api_key=api_key, base_url=base_url))
    return sources


def main() -> None:
    """Main entry point for the Pondlens CLI."""
    available_sources = get_available_sources()

    parser = argparse.ArgumentParser(
        description="Pondlens: Pond0x wallet analytics aggregation service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available sources:
  {', '.join(available_sources)}

Examples:
  # Serve with the Pond0x sources only
  python -m pondlens.main --sources manifest,health,mining

  # Include chain indexers
  python -m pondlens.main --helius-api-key KEY --alchemy-api-key KEY

Environment variables (CLI args take precedence):
  HOST, PORT, SOURCES, CARY0X_BASE_URL, HEALTH_BASE_URL, POND0X_BASE_URL,
  HELIUS_API_KEY, ALCHEMY_API_KEY, CACHE_TTL, MAX_RETRIES,
  RETRY_BASE_DELAY, FETCH_TIMEOUT
""",
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Interface to bind (default: 0.0.0.0)",
        default=os.environ.get("HOST") or "0.0.0.0",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port to listen on (default: 5000)",
        default=int(os.environ.get("PORT") or "5000"),
    )

    parser.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated sources. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCES") or DEFAULT_SOURCES,
    )

    parser.add_argument(
        "--cary0x-base-url",
        dest="cary0x_base_url",
        type=str,
        help="Base URL of the Cary0x manifest API",
        default=os.environ.get("CARY0X_BASE_URL"),
    )

    parser.add_argument(
        "--health-base-url",
        dest="health_base_url",
        type=str,
        help="Base URL of the mining health API (default: Cary0x API)",
        default=os.environ.get("HEALTH_BASE_URL"),
    )

    parser.add_argument(
        "--pond0x-base-url",
        dest="pond0x_base_url",
        type=str,
        help="Base URL of the official Pond0x API",
        default=os.environ.get("POND0X_BASE_URL"),
    )

    parser.add_argument(
        "--helius-api-key",
        dest="helius_api_key",
        type=str,
        help="Helius API key for Solana transactions",
        default=os.environ.get("HELIUS_API_KEY"),
    )

    parser.add_argument(
        "--alchemy-api-key",
        dest="alchemy_api_key",
        type=str,
        help="Alchemy API key for Ethereum transfers",
        default=os.environ.get("ALCHEMY_API_KEY"),
    )

    parser.add_argument(
        "--cache-ttl",
        dest="cache_ttl",
        type=float,
        help="Seconds a cached response stays fresh (default: 300)",
        default=float(os.environ.get("CACHE_TTL") or "300"),
    )

    parser.add_argument(
        "--max-retries",
        dest="max_retries",
        type=int,
        help="Retries after the first attempt for rate-limited requests (default: 3)",
        default=int(os.environ.get("MAX_RETRIES") or "3"),
    )

    parser.add_argument(
        "--retry-base-delay",
        dest="retry_base_delay",
        type=float,
        help="Backoff delay after the first failure in seconds (default: 1.0)",
        default=float(os.environ.get("RETRY_BASE_DELAY") or "1.0"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual fetch requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if not 0 < args.port < 65536:
        parser.error("--port must be between 1 and 65535")

    if args.cache_ttl <= 0:
        parser.error("--cache-ttl must be positive")

    if args.max_retries < 0:
        parser.error("--max-retries must be non-negative")

    if args.retry_base_delay < 0:
        parser.error("--retry-base-delay must be non-negative")

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    sources = [s.strip().lower() for s in args.sources.split(",") if s.strip()]
    if not sources:
        parser.error("At least one source must be specified")

    invalid_sources = [s for s in sources if s not in available_sources]
    if invalid_sources:
        parser.error(
            f"Unknown sources: {invalid_sources}. "
            f"Available: {', '.join(available_sources)}"
        )

    # Log configuration
    logger.info("=" * 60)
    logger.info("Pondlens - Pond0x Wallet Analytics")
    logger.info("=" * 60)
    logger.info(f"Listen:            {args.host}:{args.port}")
    logger.info(f"Sources:           {', '.join(sources)}")
    logger.info(f"Cache TTL:         {args.cache_ttl}s")
    logger.info(f"Max Retries:       {args.max_retries}")
    logger.info(f"Retry Base Delay:  {args.retry_base_delay}s")
    logger.info(f"Fetch Timeout:     {args.fetch_timeout}s")
    configured_keys = [name for name, opt in API_KEY_OPTIONS.items() if getattr(args, opt)]
    if configured_keys:
        logger.info(f"API Keys:          {', '.join(configured_keys)}")
    logger.info("=" * 60)

    try:
        cache = ApiCache(default_ttl=args.cache_ttl)
        fetcher = CachedFetcher(
            cache,
            default_ttl=args.cache_ttl,
            max_retries=args.max_retries,
            base_delay=args.retry_base_delay,
            timeout=args.fetch_timeout,
        )
        aggregator = WalletAggregator(build_sources(sources, fetcher, args))
        app = create_app(aggregator, fetcher)
        uvicorn.run(app, host=args.host, port=args.port, log_level="debug" if args.verbose else "info")
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
