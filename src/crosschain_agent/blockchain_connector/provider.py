"""Blockchain provider for multi-chain EVM reads."""
import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception
from web3.providers import AsyncHTTPProvider

from ..config.settings import Settings


logger = logging.getLogger(__name__)

# web3 6.x raises a bare ValueError for JSON-RPC error responses
RPC_ERRORS = (Web3Exception, ValueError, aiohttp.ClientError, asyncio.TimeoutError)

ERC20_ABI = [
    {"constant": True, "inputs": [{"name": "owner", "type": "address"}], "name": "balanceOf",
     "outputs": [{"name": "", "type": "uint256"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "decimals",
     "outputs": [{"name": "", "type": "uint8"}], "type": "function"},
]

ERC721_ABI = [
    {"constant": True, "inputs": [], "name": "name",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "symbol",
     "outputs": [{"name": "", "type": "string"}], "type": "function"},
    {"constant": True, "inputs": [], "name": "totalSupply",
     "outputs": [{"name": "", "type": "uint256"}], "type": "function"},
]

CHAIN_IDS: Dict[str, int] = {
    "ethereum": 1,
    "optimism": 10,
    "polygon": 137,
    "base": 8453,
    "arbitrum": 42161,
}


class ChainConfig:
    """Configuration for a blockchain network."""

    def __init__(self, name: str, chain_id: Optional[int], rpc_url: str):
        self.name = name
        self.chain_id = chain_id
        self.rpc_url = rpc_url


class BlockchainProvider:
    """Async read-only provider for the configured EVM networks."""

    def __init__(self, settings: Settings):
        """Initialize the blockchain provider."""
        self.settings = settings
        self.web3_instances: Dict[str, AsyncWeb3] = {}
        self.chain_configs: Dict[str, ChainConfig] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create Web3 instances for every network with an RPC URL."""
        async with self._init_lock:
            if self._initialized:
                return

            logger.info("🔗 Initializing blockchain connections...")

            for network, rpc_url in self.settings.rpc_urls().items():
                config = ChainConfig(network, CHAIN_IDS.get(network), rpc_url)
                provider = AsyncHTTPProvider(
                    rpc_url,
                    request_kwargs={"timeout": aiohttp.ClientTimeout(total=self.settings.rpc_timeout_seconds)}
                )
                self.chain_configs[network] = config
                self.web3_instances[network] = AsyncWeb3(provider)

            self._initialized = True
            logger.info(f"📋 Configured {len(self.chain_configs)} chains: {list(self.chain_configs.keys())}")

    async def get_web3(self, network: str) -> Optional[AsyncWeb3]:
        """Get Web3 instance for a specific network."""
        if not self._initialized:
            await self.initialize()

        return self.web3_instances.get(network.lower())

    async def get_supported_chains(self) -> List[str]:
        if not self._initialized:
            await self.initialize()

        return list(self.web3_instances.keys())

    async def get_chain_head(self, network: str) -> Optional[Tuple[int, int]]:
        """Get (block number, gas price in wei) for a network."""
        w3 = await self.get_web3(network)
        if not w3:
            logger.warning(f"No RPC configured for {network}")
            return None

        try:
            block_number, gas_price = await asyncio.gather(w3.eth.block_number, w3.eth.gas_price)
            return block_number, gas_price
        except RPC_ERRORS as e:
            logger.error(f"Failed to read chain head for {network}: {e}")
            return None

    async def get_native_balance(self, network: str, address: str) -> Optional[Decimal]:
        """Get native token balance for an address, in whole tokens."""
        w3 = await self.get_web3(network)
        if not w3:
            return None

        try:
            balance_wei = await w3.eth.get_balance(AsyncWeb3.to_checksum_address(address))
            return Decimal(balance_wei) / Decimal(10 ** 18)
        except RPC_ERRORS as e:
            logger.error(f"Failed to get balance for {address} on {network}: {e}")
            return None

    async def get_token_balances(
        self,
        network: str,
        address: str,
        tokens: Dict[str, str]
    ) -> Dict[str, Decimal]:
        """
        Get ERC-20 balances for an address.

        Args:
            network: Network name
            address: Holder address
            tokens: symbol -> token contract address

        Returns:
            symbol -> balance in whole tokens, omitting tokens that failed
        """
        w3 = await self.get_web3(network)
        if not w3 or not tokens:
            return {}

        holder = AsyncWeb3.to_checksum_address(address)

        async def read_balance(symbol: str, token_address: str) -> Optional[Tuple[str, Decimal]]:
            contract = w3.eth.contract(address=AsyncWeb3.to_checksum_address(token_address), abi=ERC20_ABI)
            try:
                raw, decimals = await asyncio.gather(
                    contract.functions.balanceOf(holder).call(),
                    contract.functions.decimals().call(),
                )
                return symbol, Decimal(raw) / Decimal(10 ** decimals)
            except RPC_ERRORS as e:
                logger.warning(f"Failed to read {symbol} balance on {network}: {e}")
                return None

        results = await asyncio.gather(*(read_balance(s, a) for s, a in tokens.items()))
        return dict(result for result in results if result is not None)

    async def get_collection_info(self, network: str, collection: str) -> Optional[Dict[str, Any]]:
        """Read name, symbol and total supply of an ERC-721 collection."""
        w3 = await self.get_web3(network)
        if not w3:
            return None

        contract = w3.eth.contract(address=AsyncWeb3.to_checksum_address(collection), abi=ERC721_ABI)
        info: Dict[str, Any] = {"address": collection}
        for field_name, call in (
            ("name", contract.functions.name()),
            ("symbol", contract.functions.symbol()),
            ("total_supply", contract.functions.totalSupply()),
        ):
            try:
                info[field_name] = await call.call()
            except RPC_ERRORS as e:
                # totalSupply is optional in ERC-721
                logger.debug(f"Collection {collection} on {network} has no {field_name}: {e}")
                info[field_name] = None

        if info["name"] is None and info["total_supply"] is None:
            return None
        return info

    async def get_recent_blocks(self, network: str, count: int = 3) -> List[Dict[str, Any]]:
        """Get the latest ``count`` block headers, newest first."""
        w3 = await self.get_web3(network)
        if not w3:
            return []

        try:
            latest = await w3.eth.block_number
            numbers = [n for n in range(latest, latest - count, -1) if n >= 0]
            blocks = await asyncio.gather(*(w3.eth.get_block(n) for n in numbers))
        except RPC_ERRORS as e:
            logger.error(f"Failed to read recent blocks for {network}: {e}")
            return []

        return [
            {
                "number": block["number"],
                "hash": AsyncWeb3.to_hex(block["hash"]),
                "timestamp": block["timestamp"],
                "transactions": [AsyncWeb3.to_hex(tx) for tx in block.get("transactions", [])],
            }
            for block in blocks
        ]

    async def get_block_logs(self, network: str, block_number: int, limit: int = 20) -> List[Dict[str, Any]]:
        """Get up to ``limit`` contract event logs emitted in one block."""
        w3 = await self.get_web3(network)
        if not w3:
            return []

        try:
            logs = await w3.eth.get_logs({"fromBlock": block_number, "toBlock": block_number})
        except RPC_ERRORS as e:
            logger.error(f"Failed to read logs for block {block_number} on {network}: {e}")
            return []

        return [
            {
                "address": log["address"],
                "topics": [AsyncWeb3.to_hex(topic) for topic in log.get("topics", [])],
                "transactionHash": AsyncWeb3.to_hex(log["transactionHash"]),
                "blockNumber": log["blockNumber"],
            }
            for log in logs[:limit]
        ]

    async def get_chain_health(self, network: str) -> Dict[str, Any]:
        """Get health information for a specific network."""
        config = self.chain_configs.get(network)
        if not config:
            return {"chain": network, "status": "not_configured", "connected": False}

        head = await self.get_chain_head(network)
        if head is None:
            return {"chain": network, "status": "unhealthy", "connected": False}

        block_number, gas_price = head
        return {
            "chain": network,
            "chain_id": config.chain_id,
            "status": "healthy",
            "connected": True,
            "block_number": block_number,
            "gas_price": gas_price,
        }

    async def get_all_chain_health(self) -> Dict[str, Dict[str, Any]]:
        """Get health information for all configured networks."""
        if not self._initialized:
            await self.initialize()

        networks = list(self.chain_configs.keys())
        results = await asyncio.gather(*(self.get_chain_health(n) for n in networks))
        return dict(zip(networks, results))

    async def close(self) -> None:
        """Close RPC sessions held by the providers."""
        for network, w3 in self.web3_instances.items():
            disconnect = getattr(w3.provider, "disconnect", None)
            if disconnect is None:
                continue
            try:
                await disconnect()
            except Exception as e:
                logger.warning(f"Error closing RPC session for {network}: {e}")
        self.web3_instances.clear()
        self._initialized = False
