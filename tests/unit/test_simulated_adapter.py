"""Unit tests for the simulated network adapter."""
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from crosschain_agent.adapters.base import AdapterError, ExecutionMode
from crosschain_agent.adapters.simulated import SimulatedNetworkAdapter
from crosschain_agent.opportunities import BridgeRoute

from fakes import StaticPriceFeed


@pytest.fixture
def provider():
    provider = Mock()
    provider.get_chain_head = AsyncMock(return_value=(19_000_000, 25_000_000_000))
    return provider


@pytest.fixture
def adapter(provider, price_feed):
    routes = [BridgeRoute(from_network="polygon", to_network="base", bridge="stargate", fee_percent=Decimal("0.10"))]
    return SimulatedNetworkAdapter(provider, price_feed, routes, swap_fee_percent=Decimal("0.3"))


class TestSimulatedConnect:

    @pytest.mark.asyncio
    async def test_connect_reads_chain_head(self, adapter, provider):
        result = await adapter.connect("ethereum")

        assert result.block_height == 19_000_000
        assert result.gas_price_gwei == Decimal("25")
        provider.get_chain_head.assert_awaited_once_with("ethereum")

    @pytest.mark.asyncio
    async def test_connect_without_head_raises(self, adapter, provider):
        provider.get_chain_head.return_value = None

        with pytest.raises(AdapterError) as exc_info:
            await adapter.connect("ethereum")

        assert exc_info.value.operation == "connect"
        assert adapter.get_call_stats()["connect"]["errors"] == 1


class TestSimulatedSwap:

    @pytest.mark.asyncio
    async def test_swap_prices_through_feed_with_fee(self, adapter):
        result = await adapter.swap("ethereum", "USDC", "ETH", Decimal("1000"), ExecutionMode.LIVE)

        # 1000 / 1800 less a 0.3% fee
        assert result.amount_out == Decimal("0.55388889")
        assert result.amount_in == Decimal("1000")

    @pytest.mark.asyncio
    async def test_swap_without_price_raises(self, adapter):
        with pytest.raises(AdapterError, match="no price for WBTC"):
            await adapter.swap("ethereum", "USDC", "WBTC", Decimal("10"), ExecutionMode.LIVE)

    @pytest.mark.asyncio
    async def test_swap_rejects_non_positive_amount(self, adapter):
        with pytest.raises(AdapterError):
            await adapter.swap("ethereum", "USDC", "ETH", Decimal("0"), ExecutionMode.LIVE)


class TestSimulatedBridge:

    @pytest.mark.asyncio
    async def test_bridge_deducts_route_fee(self, adapter):
        result = await adapter.bridge("polygon", "base", "USDC", Decimal("100"), ExecutionMode.LIVE)

        assert result.amount == Decimal("99.9")
        assert result.bridge_tx_ref.startswith("sim-stargate-")

    @pytest.mark.asyncio
    async def test_bridge_without_route_raises(self, adapter):
        with pytest.raises(AdapterError, match="no bridge route"):
            await adapter.bridge("base", "polygon", "USDC", Decimal("100"), ExecutionMode.LIVE)


class TestSimulatedPositions:

    @pytest.mark.asyncio
    async def test_live_deposit_can_be_withdrawn(self, adapter):
        position = await adapter.deposit("base", "aave-v3", Decimal("250"), ExecutionMode.LIVE)

        withdrawn = await adapter.withdraw("base", "aave-v3", position.position_ref, ExecutionMode.LIVE)

        assert withdrawn.amount == Decimal("250")
        assert adapter.positions == {}

    @pytest.mark.asyncio
    async def test_dry_run_deposit_is_not_held(self, adapter):
        position = await adapter.deposit("base", "aave-v3", Decimal("250"), ExecutionMode.DRY_RUN)

        assert position.position_ref not in adapter.positions

    @pytest.mark.asyncio
    async def test_withdraw_unknown_position(self, adapter):
        with pytest.raises(AdapterError, match="unknown position"):
            await adapter.withdraw("base", "aave-v3", "sim-pos-missing", ExecutionMode.LIVE)

    def test_adapter_name(self, provider):
        adapter = SimulatedNetworkAdapter(provider, StaticPriceFeed({}), [])

        assert str(adapter) == "simulatedAdapter"
