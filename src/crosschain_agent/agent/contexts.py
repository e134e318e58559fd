"""
Agent context definitions.

A context is a typed memory slot the hosting agent can read: one record per
tracked entity (a network, a wallet, a protocol, a collection, a cross-chain
analysis), keyed by a stable string and overwritten wholesale on update.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..opportunities.models import PoolInfo

MAX_RECENT_BLOCKS = 10


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContextMemory(BaseModel):
    """Base class for persisted context records."""

    model_config = ConfigDict(extra="ignore")


class BlockchainMemory(ContextMemory):
    network: str
    status: str = "disconnected"
    block_number: int = 0
    gas_price_gwei: Decimal = Decimal("0")
    recent_blocks: List[Dict[str, Any]] = Field(default_factory=list)
    monitoring: Optional[Dict[str, Any]] = None
    last_updated: str = Field(default_factory=utc_now)

    @field_validator("recent_blocks")
    @classmethod
    def _cap_recent_blocks(cls, blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return blocks[:MAX_RECENT_BLOCKS]

    def add_blocks(self, blocks: List[Dict[str, Any]]):
        """Prepend blocks (newest first) without duplicating known block numbers."""
        known = {block.get("number") for block in blocks}
        merged = list(blocks) + [b for b in self.recent_blocks if b.get("number") not in known]
        self.recent_blocks = merged[:MAX_RECENT_BLOCKS]


class WalletMemory(ContextMemory):
    address: str
    network: str = "ethereum"
    native_symbol: str = "ETH"
    native_balance: Optional[Decimal] = None
    token_balances: Dict[str, Decimal] = Field(default_factory=dict)
    last_updated: str = Field(default_factory=utc_now)


class DefiMemory(ContextMemory):
    protocol: str
    network: str = "ethereum"
    pools: List[PoolInfo] = Field(default_factory=list)
    metrics: Dict[str, Any] = Field(default_factory=dict)
    last_updated: str = Field(default_factory=utc_now)


class NftMemory(ContextMemory):
    collection: str
    network: str = "ethereum"
    name: str = "Unknown Collection"
    symbol: Optional[str] = None
    token_count: Optional[int] = None
    last_updated: str = Field(default_factory=utc_now)


class CrossChainMemory(ContextMemory):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    chains: List[str] = Field(default_factory=list)
    chain_data: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    opportunities: List[Dict[str, Any]] = Field(default_factory=list)
    analysis: Dict[str, Any] = Field(default_factory=dict)
    last_plan_execution: Optional[Dict[str, Any]] = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


@dataclass(frozen=True)
class ContextDefinition:
    """How one context type is keyed and which memory model it stores."""
    type: str
    memory_model: Type[ContextMemory]
    key: Callable[..., str]
    description: str


def blockchain_key(network: str) -> str:
    return network.lower()


def wallet_key(network: str, address: str) -> str:
    return f"{network.lower()}:{address}"


def defi_key(network: str, protocol: str) -> str:
    return f"{network.lower()}:{protocol}"


def nft_key(network: str, collection: str) -> str:
    return f"{network.lower()}:{collection}"


def cross_chain_key(analysis_id: str) -> str:
    return analysis_id


CONTEXTS: Dict[str, ContextDefinition] = {
    "blockchain": ContextDefinition("blockchain", BlockchainMemory, blockchain_key, "State of a blockchain network"),
    "wallet": ContextDefinition("wallet", WalletMemory, wallet_key, "Balances of a wallet on one network"),
    "defi": ContextDefinition("defi", DefiMemory, defi_key, "Pools and metrics of a DeFi protocol"),
    "nft": ContextDefinition("nft", NftMemory, nft_key, "An NFT collection"),
    "cross-chain": ContextDefinition("cross-chain", CrossChainMemory, cross_chain_key, "A cross-chain analysis"),
}
