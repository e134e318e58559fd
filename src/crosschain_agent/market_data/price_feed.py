"""Per-network token price feeds."""
import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from .http_client import HttpJsonClient

logger = logging.getLogger(__name__)

# Network name -> DefiLlama chain slug
DEFILLAMA_CHAINS: Dict[str, str] = {
    "ethereum": "ethereum",
    "arbitrum": "arbitrum",
    "base": "base",
    "optimism": "optimism",
    "polygon": "polygon",
    "bsc": "bsc",
    "avalanche": "avax",
}


class PriceFeed(ABC):
    """Abstract base class for per-network token price lookups."""

    @abstractmethod
    async def get_price(self, network: str, token: str) -> Optional[Decimal]:
        """Get the USD price of ``token`` on ``network``, or None if unknown."""

    async def get_prices(self, network: str, tokens: List[str]) -> Dict[str, Optional[Decimal]]:
        """Get prices for several tokens on one network."""
        prices = await asyncio.gather(*(self.get_price(network, token) for token in tokens))
        return dict(zip(tokens, prices))

    async def close(self) -> None:
        """Release any held resources."""


class DefiLlamaPriceFeed(PriceFeed):
    """
    Price feed backed by the DefiLlama coins API.

    Prices are looked up by ``{chain}:{token_address}`` so each network reports
    its own on-chain price for the same symbol.
    """

    def __init__(
        self,
        token_addresses: Mapping[str, Mapping[str, str]],
        base_url: str = "https://coins.llama.fi",
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 0.5
    ):
        """
        Initialize DefiLlama price feed.

        Args:
            token_addresses: network -> symbol -> contract address
            base_url: DefiLlama coins API base URL
            timeout_seconds: Total HTTP timeout per request
            max_retries: Retry attempts on rate limiting or server errors
            retry_delay: Base delay for exponential backoff
        """
        self.token_addresses = {
            network.lower(): {symbol.upper(): address for symbol, address in tokens.items()}
            for network, tokens in token_addresses.items()
        }
        self._client = HttpJsonClient(base_url, timeout_seconds, max_retries, retry_delay)

    def _coin_id(self, network: str, token: str) -> Optional[str]:
        chain = DEFILLAMA_CHAINS.get(network.lower())
        address = self.token_addresses.get(network.lower(), {}).get(token.upper())
        if not chain or not address:
            return None
        return f"{chain}:{address}"

    async def get_price(self, network: str, token: str) -> Optional[Decimal]:
        prices = await self.get_prices(network, [token])
        return prices.get(token)

    async def get_prices(self, network: str, tokens: List[str]) -> Dict[str, Optional[Decimal]]:
        """Get prices for several tokens on one network in a single request."""
        results: Dict[str, Optional[Decimal]] = {token: None for token in tokens}
        coin_ids = {}
        for token in tokens:
            coin_id = self._coin_id(network, token)
            if coin_id:
                coin_ids[coin_id] = token
            else:
                logger.debug(f"No contract address configured for {token} on {network}")

        if not coin_ids:
            return results

        data = await self._client.get_json(f"/prices/current/{','.join(coin_ids)}")
        if not data:
            return results

        coins = data.get("coins", {})
        for coin_id, token in coin_ids.items():
            # DefiLlama echoes addresses in the casing it was given, but not always
            entry = coins.get(coin_id) or coins.get(coin_id.lower())
            if entry and entry.get("price") is not None:
                results[token] = Decimal(str(entry["price"]))

        return results

    async def close(self) -> None:
        await self._client.close()
