"""Unit tests for blockchain provider."""
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest
from web3.exceptions import Web3Exception

from crosschain_agent.blockchain_connector import BlockchainProvider
from crosschain_agent.blockchain_connector.provider import ChainConfig
from crosschain_agent.config.settings import Settings


async def resolved(value):
    return value


async def raising(error):
    raise error


@pytest.fixture
def provider():
    """Provider with a mocked ethereum Web3 instance."""
    provider = BlockchainProvider(Settings(_env_file=None))
    w3 = Mock()
    provider.web3_instances["ethereum"] = w3
    provider.chain_configs["ethereum"] = ChainConfig("ethereum", 1, "https://eth.example")
    provider._initialized = True
    return provider


class TestBlockchainProviderInitialization:

    @pytest.mark.asyncio
    async def test_initialize_configured_networks(self):
        provider = BlockchainProvider(Settings(_env_file=None, arbitrum_rpc_url="https://arb.example"))

        await provider.initialize()

        assert "arbitrum" in await provider.get_supported_chains()
        assert provider.chain_configs["arbitrum"].chain_id == 42161

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self):
        provider = BlockchainProvider(Settings(_env_file=None, base_rpc_url="https://base.example"))

        await provider.initialize()
        first = provider.web3_instances["base"]
        await provider.initialize()

        assert provider.web3_instances["base"] is first


class TestChainReads:
    """Test reads against a mocked Web3 instance."""

    @pytest.mark.asyncio
    async def test_chain_head(self, provider):
        w3 = provider.web3_instances["ethereum"]
        w3.eth.block_number = resolved(19_000_000)
        w3.eth.gas_price = resolved(25_000_000_000)

        assert await provider.get_chain_head("ethereum") == (19_000_000, 25_000_000_000)

    @pytest.mark.asyncio
    async def test_chain_head_for_unconfigured_network(self, provider):
        assert await provider.get_chain_head("polygon") is None

    @pytest.mark.asyncio
    async def test_chain_head_rpc_error(self, provider):
        w3 = provider.web3_instances["ethereum"]
        w3.eth.block_number = raising(Web3Exception("boom"))
        w3.eth.gas_price = resolved(1)

        assert await provider.get_chain_head("ethereum") is None

    @pytest.mark.asyncio
    async def test_chain_head_rpc_error_response(self, provider):
        w3 = provider.web3_instances["ethereum"]
        w3.eth.block_number = raising(ValueError({"code": -32000, "message": "header not found"}))
        w3.eth.gas_price = resolved(1)

        assert await provider.get_chain_head("ethereum") is None

    @pytest.mark.asyncio
    async def test_native_balance(self, provider):
        w3 = provider.web3_instances["ethereum"]
        w3.eth.get_balance = AsyncMock(return_value=1_500_000_000_000_000_000)

        balance = await provider.get_native_balance("ethereum", "0x" + "ab" * 20)

        assert balance == Decimal("1.5")

    @pytest.mark.asyncio
    async def test_recent_blocks_newest_first(self, provider):
        w3 = provider.web3_instances["ethereum"]
        w3.eth.block_number = resolved(10)
        w3.eth.get_block = AsyncMock(side_effect=lambda number: {
            "number": number,
            "hash": bytes([number]) * 32,
            "timestamp": 1_700_000_000 + number,
            "transactions": [bytes([number + 100]) * 32],
        })

        blocks = await provider.get_recent_blocks("ethereum", count=3)

        assert [block["number"] for block in blocks] == [10, 9, 8]
        assert blocks[0]["hash"] == "0x" + "0a" * 32
        assert blocks[0]["transactions"] == ["0x" + "6e" * 32]


class TestChainHealth:

    @pytest.mark.asyncio
    async def test_unconfigured_network(self, provider):
        health = await provider.get_chain_health("polygon")

        assert health == {"chain": "polygon", "status": "not_configured", "connected": False}

    @pytest.mark.asyncio
    async def test_healthy_network(self, provider):
        w3 = provider.web3_instances["ethereum"]
        w3.eth.block_number = resolved(19_000_000)
        w3.eth.gas_price = resolved(25_000_000_000)

        health = await provider.get_all_chain_health()

        assert health["ethereum"]["status"] == "healthy"
        assert health["ethereum"]["chain_id"] == 1
        assert health["ethereum"]["block_number"] == 19_000_000
