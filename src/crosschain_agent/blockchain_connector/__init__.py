"""Blockchain connector package for multi-chain EVM reads."""
from .provider import BlockchainProvider

__all__ = [
    "BlockchainProvider",
]
