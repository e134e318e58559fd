"""Agent-facing surface: contexts, their persistence and the action registry."""
from .contexts import (
    CONTEXTS,
    BlockchainMemory,
    ContextDefinition,
    ContextMemory,
    CrossChainMemory,
    DefiMemory,
    NftMemory,
    WalletMemory,
)
from .store import ContextStore
from .formatters import render
from .actions import ActionRegistry, ActionResult

__all__ = [
    "ActionRegistry",
    "ActionResult",
    "BlockchainMemory",
    "CONTEXTS",
    "ContextDefinition",
    "ContextMemory",
    "ContextStore",
    "CrossChainMemory",
    "DefiMemory",
    "NftMemory",
    "WalletMemory",
    "render",
]
