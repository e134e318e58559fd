"""
Opportunity Detectors.

Each detector is a stateless strategy: given a set of chain snapshots and the
detection parameters it returns candidate opportunities. Detectors never
perform I/O and never mutate their inputs, so several of them can run against
the same snapshot set at once. Data-quality problems (missing prices, stale
snapshots) drop candidates silently instead of raising.
"""
import itertools
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, DecimalException
from typing import Dict, List, Mapping, Optional, Sequence

from ..chain_data.snapshot import ChainSnapshot
from .models import BridgeRoute, Opportunity, OpportunityKind, PoolInfo, RiskTier

logger = logging.getLogger(__name__)

RETURN_QUANTUM = Decimal("0.0001")
GWEI = Decimal("0.000000001")


def to_return_percent(value: Decimal) -> Optional[Decimal]:
    """Quantize a return to 4 dp, or None when it has too many digits to represent."""
    try:
        return value.quantize(RETURN_QUANTUM)
    except DecimalException:
        return None


@dataclass(frozen=True)
class DetectionParams:
    """Inputs shared by all detectors for one scan."""
    networks: Sequence[str]
    min_profit_percent: Decimal = Decimal("1")
    now: float = field(default_factory=time.time)
    max_snapshot_age_seconds: float = 600.0

    # Arbitrage cost model
    trade_notional_usd: Decimal = Decimal("10000")
    swap_gas_units: int = 150_000
    native_tokens: Mapping[str, str] = field(default_factory=dict)

    # Yield
    pools: Mapping[str, Sequence[PoolInfo]] = field(default_factory=dict)
    yield_floor_apy: Decimal = Decimal("2")

    # Bridge
    bridge_routes: Sequence[BridgeRoute] = field(default_factory=tuple)
    max_bridge_fee_percent: Decimal = Decimal("0.25")


class OpportunityDetector(ABC):
    """Base class for strategy-specific detectors."""

    kind: OpportunityKind

    @abstractmethod
    def detect(self, snapshots: Mapping[str, ChainSnapshot], params: DetectionParams) -> List[Opportunity]:
        """Produce candidate opportunities from ``snapshots``."""

    def usable_snapshots(
        self,
        snapshots: Mapping[str, ChainSnapshot],
        params: DetectionParams
    ) -> Dict[str, ChainSnapshot]:
        """Requested networks whose snapshot exists and is under the hard age ceiling."""
        usable = {}
        for network in dict.fromkeys(n.lower() for n in params.networks):
            snapshot = snapshots.get(network)
            if snapshot is None:
                continue
            if snapshot.is_stale(params.max_snapshot_age_seconds, params.now):
                logger.debug(
                    f"{self.kind.value}: ignoring {network} snapshot "
                    f"({snapshot.age_seconds(params.now):.0f}s old)"
                )
                continue
            usable[network] = snapshot
        return usable


class ArbitrageDetector(OpportunityDetector):
    """Same token, different price on two networks, net of gas."""

    kind = OpportunityKind.ARBITRAGE

    def detect(self, snapshots: Mapping[str, ChainSnapshot], params: DetectionParams) -> List[Opportunity]:
        usable = self.usable_snapshots(snapshots, params)
        opportunities = []

        for first, second in itertools.combinations(list(usable), 2):
            snap_a, snap_b = usable[first], usable[second]
            shared = sorted(set(snap_a.token_prices) & set(snap_b.token_prices))

            for token in shared:
                opportunity = self._evaluate_token(token, snap_a, snap_b, params)
                if opportunity is not None:
                    opportunities.append(opportunity)

        return opportunities

    def _evaluate_token(
        self,
        token: str,
        snap_a: ChainSnapshot,
        snap_b: ChainSnapshot,
        params: DetectionParams
    ) -> Optional[Opportunity]:
        price_a, price_b = snap_a.token_prices[token], snap_b.token_prices[token]
        if price_a <= 0 or price_b <= 0 or price_a == price_b:
            return None

        buy, sell = (snap_a, snap_b) if price_a < price_b else (snap_b, snap_a)
        buy_price, sell_price = buy.token_prices[token], sell.token_prices[token]
        difference_percent = (sell_price - buy_price) / buy_price * 100

        cost_percent = Decimal("0")
        for snapshot in (buy, sell):
            leg_cost = self._gas_cost_percent(snapshot, params)
            if leg_cost is None:
                return None
            cost_percent += leg_cost

        expected = to_return_percent(difference_percent - cost_percent)
        gas_cost = to_return_percent(cost_percent)
        if expected is None or gas_cost is None:
            logger.debug(f"arbitrage: dropping {token} ({buy_price} vs {sell_price}), return not representable")
            return None
        if expected <= params.min_profit_percent:
            return None

        return Opportunity(
            kind=self.kind,
            networks=[buy.network, sell.network],
            expected_return_percent=expected,
            risk=RiskTier.HIGH if expected > 3 else RiskTier.MEDIUM,
            description=f"Price difference for {token} between {buy.network} and {sell.network}",
            metadata={
                "token": token,
                "buy_network": buy.network,
                "sell_network": sell.network,
                "buy_price": str(buy_price),
                "sell_price": str(sell_price),
                "gas_cost_percent": str(gas_cost),
            },
        )

    def _gas_cost_percent(self, snapshot: ChainSnapshot, params: DetectionParams) -> Optional[Decimal]:
        """Cost of one swap leg as a percentage of the trade notional."""
        native = params.native_tokens.get(snapshot.network, "ETH")
        native_price = snapshot.price(native)
        if native_price is None or params.trade_notional_usd <= 0:
            return None
        gas_cost_usd = snapshot.gas_price_gwei * GWEI * params.swap_gas_units * native_price
        return gas_cost_usd / params.trade_notional_usd * 100


class YieldDetector(OpportunityDetector):
    """Pools paying more than the APY floor."""

    kind = OpportunityKind.YIELD

    def detect(self, snapshots: Mapping[str, ChainSnapshot], params: DetectionParams) -> List[Opportunity]:
        opportunities = []

        for network in self.usable_snapshots(snapshots, params):
            for pool in params.pools.get(network, ()):
                if pool.apy <= params.yield_floor_apy:
                    continue
                apy = to_return_percent(pool.apy)
                if apy is None:
                    logger.debug(f"yield: dropping {pool.name} on {network}, APY {pool.apy} not representable")
                    continue
                opportunities.append(Opportunity(
                    kind=self.kind,
                    networks=[network],
                    expected_return_percent=apy,
                    risk=RiskTier.HIGH if apy > 10 else RiskTier.MEDIUM,
                    description=f"{pool.name} on {pool.protocol} ({network})",
                    metadata={
                        "pool": pool.name,
                        "protocol": pool.protocol,
                        "token": pool.token,
                        "tvl_usd": str(pool.tvl_usd),
                    },
                ))

        return opportunities


class BridgeDetector(OpportunityDetector):
    """Configured bridge routes charging less than the fee ceiling."""

    kind = OpportunityKind.BRIDGE

    def detect(self, snapshots: Mapping[str, ChainSnapshot], params: DetectionParams) -> List[Opportunity]:
        usable = self.usable_snapshots(snapshots, params)
        ceiling = params.max_bridge_fee_percent
        if ceiling <= 0:
            return []

        routes: Dict[tuple, List[BridgeRoute]] = {}
        for route in params.bridge_routes:
            routes.setdefault((route.from_network.lower(), route.to_network.lower()), []).append(route)

        opportunities = []
        for source, target in itertools.permutations(list(usable), 2):
            for route in routes.get((source, target), []):
                if route.fee_percent >= ceiling:
                    continue
                savings = to_return_percent((ceiling - route.fee_percent) / ceiling * 100)
                if savings is None:
                    continue
                opportunities.append(Opportunity(
                    kind=self.kind,
                    networks=[source, target],
                    expected_return_percent=savings,
                    risk=RiskTier.LOW,
                    description=f"Efficient bridge from {source} to {target} via {route.bridge}",
                    metadata={
                        "bridge": route.bridge,
                        "token": route.token,
                        "fee_percent": str(route.fee_percent),
                        "estimated_minutes": route.estimated_minutes,
                    },
                ))

        return opportunities


DETECTORS: Dict[OpportunityKind, OpportunityDetector] = {
    OpportunityKind.ARBITRAGE: ArbitrageDetector(),
    OpportunityKind.YIELD: YieldDetector(),
    OpportunityKind.BRIDGE: BridgeDetector(),
}


def detectors_for(strategy: str) -> List[OpportunityDetector]:
    """Detectors for a strategy name, or all of them for 'all'."""
    if strategy == "all":
        return list(DETECTORS.values())
    return [DETECTORS[OpportunityKind(strategy)]]
