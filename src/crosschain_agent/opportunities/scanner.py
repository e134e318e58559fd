"""Opportunity scanning: refresh, detect and rank in one call."""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from ..chain_data.chain_cache import ChainDataCache
from ..chain_data.snapshot import ChainSnapshot
from ..config.settings import Settings
from ..errors import NetworkUnavailable, ValidationError
from ..market_data.yield_table import YieldTable
from .detectors import DetectionParams, detectors_for
from .models import OpportunityKind, Opportunity, PoolInfo
from .ranking import rank

logger = logging.getLogger(__name__)

STRATEGIES = ("arbitrage", "yield", "bridge", "all")


@dataclass
class ScanResult:
    """Outcome of one scan across a set of networks."""
    networks: List[str]
    strategy: str
    min_profit_percent: Decimal
    opportunities: List[Opportunity] = field(default_factory=list)
    snapshots: Dict[str, ChainSnapshot] = field(default_factory=dict)
    stale_networks: List[str] = field(default_factory=list)
    unavailable_networks: Dict[str, str] = field(default_factory=dict)
    scanned_at: float = field(default_factory=time.time)


class OpportunityScanner:
    """Runs the detectors for a strategy over freshly refreshed snapshots."""

    def __init__(self, cache: ChainDataCache, yield_table: YieldTable, settings: Settings):
        self.cache = cache
        self.yield_table = yield_table
        self.settings = settings

        self.stats = {
            "scans": 0,
            "opportunities_found": 0,
        }

    async def scan(
        self,
        networks: Sequence[str],
        strategy: str = "all",
        min_profit_percent: Optional[Decimal] = None
    ) -> ScanResult:
        """
        Scan ``networks`` for opportunities of ``strategy``.

        ``min_profit_percent`` defaults to the MIN_PROFIT_PERCENT setting.
        Networks that cannot be refreshed fall back to their cached snapshot
        (detectors still apply the hard age ceiling); networks with no usable
        snapshot are reported in ``unavailable_networks``.

        Raises:
            ValidationError: For an empty network list or unknown strategy
        """
        requested = list(dict.fromkeys(n.strip().lower() for n in networks if n and n.strip()))
        if not requested:
            raise ValidationError("at least one network is required")
        if strategy not in STRATEGIES:
            raise ValidationError(f"unknown strategy '{strategy}', expected one of {', '.join(STRATEGIES)}")
        if min_profit_percent is None:
            min_profit_percent = self.settings.min_profit_percent
        min_profit = Decimal(str(min_profit_percent))

        result = ScanResult(networks=requested, strategy=strategy, min_profit_percent=min_profit)

        refreshed = await self.cache.refresh_many(requested)
        for network, outcome in refreshed.items():
            if isinstance(outcome, NetworkUnavailable):
                cached = self.cache.get(network)
                if cached is None:
                    result.unavailable_networks[network] = str(outcome)
                    continue
                logger.warning(f"Using cached snapshot for {network}: {outcome}")
                result.snapshots[network] = cached.snapshot
                if cached.stale:
                    result.stale_networks.append(network)
            else:
                result.snapshots[network] = outcome

        detectors = detectors_for(strategy)
        pools: Dict[str, List[PoolInfo]] = {}
        if any(d.kind == OpportunityKind.YIELD for d in detectors):
            pools = await self._load_pools(list(result.snapshots))

        params = DetectionParams(
            networks=requested,
            min_profit_percent=min_profit,
            now=time.time(),
            max_snapshot_age_seconds=self.settings.max_snapshot_age_seconds,
            trade_notional_usd=self.settings.trade_notional_usd,
            swap_gas_units=self.settings.swap_gas_units,
            native_tokens=self.settings.native_tokens,
            pools=pools,
            yield_floor_apy=self.settings.yield_floor_apy,
            bridge_routes=self.settings.bridge_routes,
            max_bridge_fee_percent=self.settings.max_bridge_fee_percent,
        )

        candidates: List[Opportunity] = []
        for detector in detectors:
            found = detector.detect(result.snapshots, params)
            logger.debug(f"{detector.kind.value} detector produced {len(found)} candidates")
            candidates.extend(found)

        result.opportunities = rank(candidates, min_profit)

        self.stats["scans"] += 1
        self.stats["opportunities_found"] += len(result.opportunities)
        logger.info(
            f"Scanned {len(requested)} networks for {strategy}: "
            f"{len(result.opportunities)} opportunities from {len(candidates)} candidates"
        )
        return result

    async def _load_pools(self, networks: List[str]) -> Dict[str, List[PoolInfo]]:
        results = await asyncio.gather(
            *(self.yield_table.get_pools(n) for n in networks), return_exceptions=True
        )
        pools = {}
        for network, outcome in zip(networks, results):
            if isinstance(outcome, Exception):
                logger.warning(f"Yield table lookup failed for {network}: {outcome}")
                continue
            pools[network] = outcome
        return pools
