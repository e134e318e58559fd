"""Protocol yield tables: pools, TVL and APY per network."""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..opportunities.models import PoolInfo
from .http_client import HttpJsonClient

logger = logging.getLogger(__name__)

# Network name -> chain label used by the DefiLlama yields API
DEFILLAMA_YIELD_CHAINS: Dict[str, str] = {
    "ethereum": "Ethereum",
    "arbitrum": "Arbitrum",
    "base": "Base",
    "optimism": "Optimism",
    "polygon": "Polygon",
    "bsc": "BSC",
    "avalanche": "Avalanche",
}


class YieldTable(ABC):
    """Read-only lookup of yield-bearing pools."""

    @abstractmethod
    async def get_pools(self, network: str) -> List[PoolInfo]:
        """Get the pools available on ``network``."""

    async def get_protocol_pools(self, network: str, protocol: str) -> List[PoolInfo]:
        """Pools on ``network`` owned by ``protocol`` (case-insensitive)."""
        wanted = protocol.strip().lower()
        return [pool for pool in await self.get_pools(network) if pool.protocol.lower() == wanted]

    async def close(self) -> None:
        """Release any held resources."""


class DefiLlamaYieldTable(YieldTable):
    """
    Yield table backed by the DefiLlama yields API.

    The full pool list is a single large document, so it is fetched once and
    reused for ``ttl_seconds`` across networks.
    """

    def __init__(
        self,
        base_url: str = "https://yields.llama.fi",
        ttl_seconds: float = 300.0,
        max_pools_per_network: int = 200,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        retry_delay: float = 1.0
    ):
        self.ttl_seconds = ttl_seconds
        self.max_pools_per_network = max_pools_per_network
        self._client = HttpJsonClient(base_url, timeout_seconds, max_retries, retry_delay)

        self._pools_by_chain: Dict[str, List[PoolInfo]] = {}
        self._fetched_at: Optional[float] = None
        self._fetch_lock = asyncio.Lock()

    async def get_pools(self, network: str) -> List[PoolInfo]:
        chain = DEFILLAMA_YIELD_CHAINS.get(network.lower())
        if chain is None:
            logger.warning(f"Network {network} has no yields API mapping")
            return []

        await self._ensure_fresh()
        return list(self._pools_by_chain.get(chain, []))

    async def _ensure_fresh(self) -> None:
        async with self._fetch_lock:
            if self._fetched_at is not None and time.time() - self._fetched_at < self.ttl_seconds:
                return

            data = await self._client.get_json("/pools")
            if not data or data.get("status") != "success":
                logger.error("Failed to fetch pool list from yields API")
                # Keep serving the previous table if there is one
                return

            self._pools_by_chain = self._parse_pools(data.get("data", []))
            self._fetched_at = time.time()
            logger.info(
                f"Yield table refreshed: {sum(len(p) for p in self._pools_by_chain.values())} pools "
                f"across {len(self._pools_by_chain)} chains"
            )

    def _parse_pools(self, rows: List[Dict[str, Any]]) -> Dict[str, List[PoolInfo]]:
        pools_by_chain: Dict[str, List[PoolInfo]] = {}
        for row in rows:
            try:
                if row.get("apy") is None:
                    continue
                pool = PoolInfo(
                    name=row.get("symbol") or row.get("pool") or "unknown",
                    protocol=row.get("project") or "unknown",
                    tvl_usd=Decimal(str(row.get("tvlUsd") or 0)),
                    apy=Decimal(str(row["apy"])),
                    token=(row.get("symbol") or "").split("-")[0],
                )
            except (ValueError, ArithmeticError) as e:
                logger.debug(f"Skipping malformed pool row {row.get('pool')}: {e}")
                continue
            pools_by_chain.setdefault(row.get("chain", ""), []).append(pool)

        # Largest pools first, capped per chain
        for chain, pools in pools_by_chain.items():
            pools.sort(key=lambda pool: pool.tvl_usd, reverse=True)
            pools_by_chain[chain] = pools[:self.max_pools_per_network]

        return pools_by_chain

    async def close(self) -> None:
        await self._client.close()
