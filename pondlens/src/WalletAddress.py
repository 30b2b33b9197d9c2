"""Wallet address checks for Solana and Ethereum.

Decoding is left to solders (Solana public keys) and web3 (Ethereum
addresses, including EIP-55 checksum validation).
"""

from __future__ import annotations

from typing import Literal

from solders.pubkey import Pubkey
from web3 import Web3


def is_solana_address(address: str) -> bool:
    """Check for a canonical base58-encoded 32-byte Solana public key."""
    try:
        return str(Pubkey.from_string(address)) == address
    except ValueError:
        return False


def is_ethereum_address(address: str) -> bool:
    """Check for a 0x-prefixed 20-byte Ethereum address."""
    if not address.startswith("0x"):
        return False
    return Web3.is_address(address)


def classify_address(address: str) -> Literal["sol", "eth"] | None:
    """Tell which chain an address belongs to.

    :param address: Wallet address.
    :returns: "sol", "eth", or None if it is neither.
    """
    if is_ethereum_address(address):
        return "eth"
    if is_solana_address(address):
        return "sol"
    return None
