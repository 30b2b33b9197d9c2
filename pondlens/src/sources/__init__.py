"""
Wallet data sources for the Pond0x dashboard.

Each source turns a wallet address into a SourceResult using the shared
cached fetch layer.

Usage:
    from pondlens.src.sources import get_source, get_available_sources

    # Get list of available sources
    available = get_available_sources()
    # ['ethereum', 'health', 'manifest', 'mining', 'solana']

    # Create a source instance
    source = get_source("manifest", fetcher)
    result = await source.load("<solana address>")

    # For sources requiring API keys
    source = get_source("solana", fetcher, api_key="your-helius-key")
"""

# Import base classes and utilities
from .base import (
    SOURCE_REGISTRY,
    BaseSource,
    Freshness,
    SourceConfigError,
    SourceResult,
    get_available_sources,
    get_source,
    register_source,
)

# Import all source implementations to trigger registration
from .ethereum import EthereumSource
from .health import HealthSource
from .manifest import ManifestSource
from .mining import MiningSessionSource
from .solana import SolanaSource

__all__ = [
    # Base classes
    "BaseSource",
    "Freshness",
    "SourceConfigError",
    "SourceResult",
    # Registry functions
    "register_source",
    "get_source",
    "get_available_sources",
    "SOURCE_REGISTRY",
    # Source implementations
    "EthereumSource",
    "HealthSource",
    "ManifestSource",
    "MiningSessionSource",
    "SolanaSource",
]
