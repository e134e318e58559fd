"""
Chain Data Cache.

Keeps one immutable ChainSnapshot per network. A refresh builds a complete new
snapshot and publishes it with a single dict assignment, so readers always see
either the previous or the new snapshot, never a mix of the two.
"""
import asyncio
import logging
import time
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union

from ..adapters.base import NetworkAdapter
from ..errors import AdapterError, NetworkUnavailable
from ..market_data.price_feed import PriceFeed
from .snapshot import CachedSnapshot, ChainSnapshot

logger = logging.getLogger(__name__)


class ChainDataCache:
    """Per-network snapshot cache with staleness tracking."""

    def __init__(
        self,
        adapter: NetworkAdapter,
        price_feed: PriceFeed,
        tracked_tokens: Iterable[str],
        stale_after_seconds: float = 60.0,
        refresh_timeout_seconds: float = 15.0
    ):
        """
        Initialize the chain data cache.

        Args:
            adapter: Network adapter used to read block height and gas price
            price_feed: Source of per-network token prices
            tracked_tokens: Token symbols priced on every refresh
            stale_after_seconds: Age after which reads are flagged stale
            refresh_timeout_seconds: Upper bound for a whole refresh
        """
        self.adapter = adapter
        self.price_feed = price_feed
        self.tracked_tokens: List[str] = [token.upper() for token in tracked_tokens]
        self.stale_after_seconds = stale_after_seconds
        self.refresh_timeout_seconds = refresh_timeout_seconds

        self._snapshots: Dict[str, ChainSnapshot] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

        self.stats = {
            "refreshes": 0,
            "refresh_failures": 0,
            "missing_prices": 0,
        }

    def _lock_for(self, network: str) -> asyncio.Lock:
        lock = self._locks.get(network)
        if lock is None:
            lock = self._locks[network] = asyncio.Lock()
        return lock

    async def refresh(self, network: str) -> ChainSnapshot:
        """
        Fetch current state for a network and publish a new snapshot.

        Raises:
            NetworkUnavailable: If the adapter times out or fails in any way
        """
        network = network.lower()
        async with self._lock_for(network):
            try:
                snapshot = await asyncio.wait_for(self._fetch(network), timeout=self.refresh_timeout_seconds)
            except asyncio.TimeoutError:
                self.stats["refresh_failures"] += 1
                logger.warning(f"Refresh of {network} timed out after {self.refresh_timeout_seconds}s")
                raise NetworkUnavailable(network, f"timed out after {self.refresh_timeout_seconds}s")
            except AdapterError as e:
                self.stats["refresh_failures"] += 1
                logger.warning(f"Refresh of {network} failed: {e}")
                raise NetworkUnavailable(network, e.reason) from e
            except Exception as e:
                self.stats["refresh_failures"] += 1
                logger.warning(f"Refresh of {network} failed with {type(e).__name__}: {e}")
                raise NetworkUnavailable(network, str(e) or type(e).__name__) from e

            # Atomic publish: one assignment replaces the whole snapshot
            self._snapshots[network] = snapshot
            self.stats["refreshes"] += 1

        logger.debug(
            f"Snapshot for {network}: block {snapshot.block_height}, "
            f"gas {snapshot.gas_price_gwei} gwei, {len(snapshot.token_prices)} prices"
        )
        return snapshot

    async def refresh_many(self, networks: Iterable[str]) -> Dict[str, Union[ChainSnapshot, NetworkUnavailable]]:
        """Refresh several networks concurrently; failures are returned, not raised."""
        ordered = list(dict.fromkeys(network.lower() for network in networks))
        results = await asyncio.gather(*(self.refresh(n) for n in ordered), return_exceptions=True)

        outcome: Dict[str, Union[ChainSnapshot, NetworkUnavailable]] = {}
        for network, result in zip(ordered, results):
            if isinstance(result, (ChainSnapshot, NetworkUnavailable)):
                outcome[network] = result
            elif isinstance(result, BaseException):
                raise result
        return outcome

    def get(self, network: str, now: Optional[float] = None) -> Optional[CachedSnapshot]:
        """
        Return the last successful snapshot without fetching.

        Returns:
            CachedSnapshot flagged stale when older than the threshold, or None
            when the network has never been refreshed successfully
        """
        snapshot = self._snapshots.get(network.lower())
        if snapshot is None:
            return None
        return CachedSnapshot(snapshot=snapshot, stale=snapshot.is_stale(self.stale_after_seconds, now))

    def snapshots(self, networks: Optional[Iterable[str]] = None) -> Dict[str, ChainSnapshot]:
        """Cached snapshots for ``networks`` (all networks when None)."""
        current = dict(self._snapshots)
        if networks is None:
            return current
        return {n.lower(): current[n.lower()] for n in networks if n.lower() in current}

    async def _fetch(self, network: str) -> ChainSnapshot:
        head = await self.adapter.connect(network)

        prices: Dict[str, Decimal] = {}
        try:
            quoted = await self.price_feed.get_prices(network, self.tracked_tokens)
        except Exception as e:
            # Prices are best effort; the chain head alone is still a valid snapshot
            logger.warning(f"Price lookup failed for {network}: {e}")
            quoted = {}

        for token in self.tracked_tokens:
            price = quoted.get(token)
            if price is None or price <= 0:
                self.stats["missing_prices"] += 1
                logger.debug(f"No price for {token} on {network}")
                continue
            prices[token] = price

        return ChainSnapshot(
            network=network,
            block_height=head.block_height,
            gas_price_gwei=head.gas_price_gwei,
            token_prices=prices,
            captured_at=time.time(),
        )
