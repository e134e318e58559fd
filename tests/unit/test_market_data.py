"""Unit tests for the DefiLlama price feed, yield table and HTTP client."""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, Mock

import aiohttp
import pytest

from crosschain_agent.market_data import DefiLlamaPriceFeed, DefiLlamaYieldTable
from crosschain_agent.market_data.http_client import HttpJsonClient


def make_response(status, payload=None):
    """Async context manager wrapping a response with ``status``."""
    response = Mock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


class TestHttpJsonClient:
    """Test retry and backoff handling."""

    @pytest.fixture
    def client(self):
        client = HttpJsonClient("https://api.example.test/", timeout_seconds=5, max_retries=2, retry_delay=0)
        client.session = Mock()
        return client

    @pytest.mark.asyncio
    async def test_returns_json_on_success(self, client):
        client.session.get = Mock(return_value=make_response(200, {"ok": True}))

        assert await client.get_json("/status") == {"ok": True}
        client.session.get.assert_called_once_with("https://api.example.test/status", params=None)

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, client):
        client.session.get = Mock(side_effect=[
            make_response(503),
            make_response(429),
            make_response(200, {"ok": True}),
        ])

        assert await client.get_json("/status") == {"ok": True}
        assert client.session.get.call_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, client):
        client.session.get = Mock(side_effect=[make_response(500) for _ in range(3)])

        assert await client.get_json("/status") is None
        assert client.session.get.call_count == 3

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, client):
        client.session.get = Mock(return_value=make_response(404))

        assert await client.get_json("/missing") is None
        client.session.get.assert_called_once()

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self, client):
        client.session.get = Mock(side_effect=aiohttp.ClientConnectionError("refused"))

        assert await client.get_json("/status") is None
        assert client.session.get.call_count == 3


class TestDefiLlamaPriceFeed:
    """Test per-network price lookups."""

    @pytest.fixture
    def feed(self):
        feed = DefiLlamaPriceFeed({
            "ethereum": {"ETH": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "USDC": "0xA0b8"},
            "arbitrum": {"ETH": "0x82aF"},
        })
        feed._client.get_json = AsyncMock()
        return feed

    @pytest.mark.asyncio
    async def test_prices_in_one_request(self, feed):
        feed._client.get_json.return_value = {"coins": {
            "ethereum:0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2": {"price": 1800.5, "symbol": "WETH"},
            "ethereum:0xA0b8": {"price": 1.0},
        }}

        prices = await feed.get_prices("ethereum", ["ETH", "USDC"])

        assert prices == {"ETH": Decimal("1800.5"), "USDC": Decimal("1.0")}
        feed._client.get_json.assert_awaited_once_with(
            "/prices/current/ethereum:0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2,ethereum:0xA0b8"
        )

    @pytest.mark.asyncio
    async def test_unconfigured_token_is_none(self, feed):
        feed._client.get_json.return_value = {"coins": {"arbitrum:0x82aF": {"price": 1850}}}

        prices = await feed.get_prices("arbitrum", ["ETH", "WBTC"])

        assert prices == {"ETH": Decimal("1850"), "WBTC": None}

    @pytest.mark.asyncio
    async def test_unknown_network_makes_no_request(self, feed):
        assert await feed.get_price("solana", "SOL") is None
        feed._client.get_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_request_returns_no_prices(self, feed):
        feed._client.get_json.return_value = None

        assert await feed.get_prices("ethereum", ["ETH"]) == {"ETH": None}

    @pytest.mark.asyncio
    async def test_lowercased_coin_ids_are_matched(self, feed):
        feed._client.get_json.return_value = {"coins": {"arbitrum:0x82af": {"price": 1850}}}

        assert await feed.get_price("arbitrum", "ETH") == Decimal("1850")


class TestDefiLlamaYieldTable:
    """Test pool parsing, TTL reuse and protocol filtering."""

    ROWS = [
        {"chain": "Ethereum", "project": "aave-v3", "symbol": "USDC", "tvlUsd": 900_000_000, "apy": 3.1, "pool": "a"},
        {"chain": "Ethereum", "project": "uniswap-v3", "symbol": "WETH-USDC", "tvlUsd": 150_000_000, "apy": 12.4,
         "pool": "b"},
        {"chain": "Ethereum", "project": "lido", "symbol": "STETH", "tvlUsd": 20_000_000_000, "apy": None, "pool": "c"},
        {"chain": "Arbitrum", "project": "gmx", "symbol": "GLP", "tvlUsd": 400_000_000, "apy": 18.0, "pool": "d"},
    ]

    @pytest.fixture
    def table(self):
        table = DefiLlamaYieldTable(ttl_seconds=300)
        table._client.get_json = AsyncMock(return_value={"status": "success", "data": self.ROWS})
        return table

    @pytest.mark.asyncio
    async def test_pools_for_network_sorted_by_tvl(self, table):
        pools = await table.get_pools("ethereum")

        assert [pool.protocol for pool in pools] == ["aave-v3", "uniswap-v3"]
        assert pools[0].tvl_usd == Decimal("900000000")
        assert pools[1].apy == Decimal("12.4")
        assert pools[1].token == "WETH"

    @pytest.mark.asyncio
    async def test_pool_list_is_reused_within_ttl(self, table):
        await table.get_pools("ethereum")
        await table.get_pools("arbitrum")

        table._client.get_json.assert_awaited_once_with("/pools")

    @pytest.mark.asyncio
    async def test_pool_list_is_capped_per_network(self, table):
        table.max_pools_per_network = 1

        pools = await table.get_pools("ethereum")

        assert [pool.protocol for pool in pools] == ["aave-v3"]

    @pytest.mark.asyncio
    async def test_protocol_filter_is_case_insensitive(self, table):
        pools = await table.get_protocol_pools("arbitrum", "GMX")

        assert [pool.name for pool in pools] == ["GLP"]

    @pytest.mark.asyncio
    async def test_failed_fetch_returns_empty(self, table):
        table._client.get_json.return_value = {"status": "error"}

        assert await table.get_pools("ethereum") == []

    @pytest.mark.asyncio
    async def test_unmapped_network(self, table):
        assert await table.get_pools("solana") == []
        table._client.get_json.assert_not_awaited()
