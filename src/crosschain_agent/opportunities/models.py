"""
Cross-Chain Opportunity Data Models.

Defines the structures produced by opportunity detectors and consumed by the
ranking engine and the execution planner.
"""
import hashlib
import json
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OpportunityKind(str, Enum):
    """Strategies an opportunity can belong to."""
    ARBITRAGE = "arbitrage"     # Same token priced differently on two networks
    YIELD = "yield"             # Pool paying above the APY floor
    BRIDGE = "bridge"           # Bridge route cheaper than the fee ceiling


class RiskTier(str, Enum):
    """Risk tiers, ordered low < medium < high."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_ORDER[self]


_RISK_ORDER = {RiskTier.LOW: 0, RiskTier.MEDIUM: 1, RiskTier.HIGH: 2}


class Opportunity(BaseModel):
    """A detected, quantified chance for profit across one or more networks."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: OpportunityKind = Field(..., alias="type", description="Strategy that produced the opportunity")
    networks: List[str] = Field(..., alias="chains", min_length=1, description="Involved networks, in execution order")
    expected_return_percent: Decimal = Field(..., alias="expectedReturn", description="Expected return in percent")
    risk: RiskTier = Field(default=RiskTier.MEDIUM, description="Risk tier")
    description: str = Field(default="", description="Human readable summary")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Strategy-specific data")

    @field_validator("networks")
    @classmethod
    def _normalise_networks(cls, networks: List[str]) -> List[str]:
        return [network.strip().lower() for network in networks]

    @property
    def identity(self) -> str:
        """Stable hash of (kind, networks, metadata) used for deduplication."""
        canonical = json.dumps(
            [self.kind.value, list(self.networks), self.metadata],
            sort_keys=True,
            default=str,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def formatted_return(self) -> str:
        """Display string for the expected return, never parsed back."""
        suffix = {
            OpportunityKind.ARBITRAGE: "%",
            OpportunityKind.YIELD: "% APY",
            OpportunityKind.BRIDGE: "% fee savings",
        }[self.kind]
        return f"{self.expected_return_percent.normalize():f}{suffix}"

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe dict for action results and persisted contexts."""
        return self.model_dump(mode="json", by_alias=True)


class PoolInfo(BaseModel):
    """A yield-bearing pool as reported by a protocol yield table."""

    name: str = Field(..., description="Pool name, e.g. 'ETH/USDC'")
    protocol: str = Field(default="unknown", description="Protocol that owns the pool")
    tvl_usd: Decimal = Field(default=Decimal("0"), ge=0, description="Total value locked in USD")
    apy: Decimal = Field(..., description="Current APY in percent")
    token: str = Field(default="", description="Deposit token symbol")


class BridgeRoute(BaseModel):
    """A configured bridge between two networks."""

    from_network: str = Field(..., alias="from", description="Source network")
    to_network: str = Field(..., alias="to", description="Destination network")
    bridge: str = Field(..., description="Bridge name")
    token: str = Field(default="USDC", description="Token moved by the route")
    fee_percent: Decimal = Field(..., ge=0, description="Bridge fee in percent of amount")
    estimated_minutes: int = Field(default=10, ge=0, description="Typical settlement time")

    model_config = ConfigDict(populate_by_name=True)
