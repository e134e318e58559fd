"""Composition root: wires providers, engines and the action registry together."""
import logging
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis

from .adapters.base import NetworkAdapter
from .adapters.simulated import SimulatedNetworkAdapter
from .agent.actions import ActionRegistry
from .agent.store import ContextStore
from .blockchain_connector.provider import BlockchainProvider
from .chain_data.chain_cache import ChainDataCache
from .config.settings import Settings
from .execution.executor import PlanExecutor
from .execution.planner import ExecutionPlanner
from .market_data.price_feed import DefiLlamaPriceFeed, PriceFeed
from .market_data.yield_table import DefiLlamaYieldTable, YieldTable
from .opportunities.scanner import OpportunityScanner

logger = logging.getLogger(__name__)


@dataclass
class AgentRuntime:
    """Everything a running service needs, built once at startup."""
    settings: Settings
    provider: BlockchainProvider
    price_feed: PriceFeed
    yield_table: YieldTable
    adapter: NetworkAdapter
    cache: ChainDataCache
    scanner: OpportunityScanner
    planner: ExecutionPlanner
    executor: PlanExecutor
    store: ContextStore
    actions: ActionRegistry

    async def close(self) -> None:
        await self.price_feed.close()
        await self.yield_table.close()
        await self.provider.close()
        logger.info("Runtime collaborators closed")


def build_runtime(
    settings: Settings,
    redis_client: redis.Redis,
    provider: Optional[BlockchainProvider] = None,
    price_feed: Optional[PriceFeed] = None,
    yield_table: Optional[YieldTable] = None,
    adapter: Optional[NetworkAdapter] = None
) -> AgentRuntime:
    """
    Build the runtime from settings.

    Any collaborator can be injected; the defaults are the web3 provider, the
    DefiLlama price feed and yield table, and the simulated network adapter.
    """
    provider = provider or BlockchainProvider(settings)
    price_feed = price_feed or DefiLlamaPriceFeed(
        settings.token_addresses,
        base_url=settings.defillama_coins_url,
        timeout_seconds=settings.rpc_timeout_seconds,
    )
    yield_table = yield_table or DefiLlamaYieldTable(
        base_url=settings.defillama_yields_url,
        ttl_seconds=settings.yield_table_ttl_seconds,
    )
    adapter = adapter or SimulatedNetworkAdapter(
        provider, price_feed, settings.bridge_routes, settings.swap_fee_percent
    )

    cache = ChainDataCache(
        adapter,
        price_feed,
        settings.tracked_tokens,
        stale_after_seconds=settings.snapshot_stale_seconds,
        refresh_timeout_seconds=settings.adapter_timeout_seconds,
    )
    scanner = OpportunityScanner(cache, yield_table, settings)
    planner = ExecutionPlanner(settings.quote_token, settings.default_trade_amount)
    executor = PlanExecutor(
        adapter,
        timeout_seconds=settings.adapter_timeout_seconds,
        max_attempts=settings.step_max_attempts,
        retry_delay_seconds=settings.step_retry_delay_seconds,
    )
    store = ContextStore(redis_client, settings.context_key_prefix)
    actions = ActionRegistry(settings, cache, scanner, planner, executor, provider, yield_table, store)

    logger.info(f"🚀 Runtime built with {adapter} adapter")
    return AgentRuntime(
        settings=settings,
        provider=provider,
        price_feed=price_feed,
        yield_table=yield_table,
        adapter=adapter,
        cache=cache,
        scanner=scanner,
        planner=planner,
        executor=executor,
        store=store,
        actions=actions,
    )
