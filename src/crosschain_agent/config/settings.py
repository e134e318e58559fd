"""Application settings and configuration."""
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from ..opportunities.models import BridgeRoute


DEFAULT_NATIVE_TOKENS: Dict[str, str] = {
    "ethereum": "ETH",
    "arbitrum": "ETH",
    "base": "ETH",
    "optimism": "ETH",
    "polygon": "POL",
    "bsc": "BNB",
    "avalanche": "AVAX",
}

# Wrapped native tokens stand in for the native asset when pricing.
DEFAULT_TOKEN_ADDRESSES: Dict[str, Dict[str, str]] = {
    "ethereum": {
        "ETH": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "USDC": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "WBTC": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
    },
    "arbitrum": {
        "ETH": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        "USDC": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "WBTC": "0x2f2a2543B76A4166549F7aaB2e75Bef0aefC5B0f",
    },
    "base": {
        "ETH": "0x4200000000000000000000000000000000000006",
        "USDC": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    },
    "optimism": {
        "ETH": "0x4200000000000000000000000000000000000006",
        "USDC": "0x0b2C639c533813f4Aa9D7837cAf62653d097Ff85",
    },
    "polygon": {
        "ETH": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
        "USDC": "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        "WBTC": "0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6",
    },
}

DEFAULT_BRIDGE_ROUTES: List[BridgeRoute] = [
    BridgeRoute(from_network="ethereum", to_network="arbitrum", bridge="across", fee_percent=Decimal("0.06"), estimated_minutes=3),
    BridgeRoute(from_network="arbitrum", to_network="ethereum", bridge="across", fee_percent=Decimal("0.08"), estimated_minutes=5),
    BridgeRoute(from_network="ethereum", to_network="base", bridge="across", fee_percent=Decimal("0.05"), estimated_minutes=3),
    BridgeRoute(from_network="base", to_network="ethereum", bridge="across", fee_percent=Decimal("0.08"), estimated_minutes=5),
    BridgeRoute(from_network="ethereum", to_network="optimism", bridge="across", fee_percent=Decimal("0.05"), estimated_minutes=3),
    BridgeRoute(from_network="optimism", to_network="ethereum", bridge="across", fee_percent=Decimal("0.08"), estimated_minutes=5),
    BridgeRoute(from_network="arbitrum", to_network="base", bridge="stargate", fee_percent=Decimal("0.04"), estimated_minutes=2),
    BridgeRoute(from_network="base", to_network="arbitrum", bridge="stargate", fee_percent=Decimal("0.04"), estimated_minutes=2),
    BridgeRoute(from_network="polygon", to_network="base", bridge="stargate", fee_percent=Decimal("0.10"), estimated_minutes=6),
    BridgeRoute(from_network="base", to_network="polygon", bridge="stargate", fee_percent=Decimal("0.10"), estimated_minutes=6),
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    host: str = Field(default="0.0.0.0", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level", alias="LOG_LEVEL")

    # Redis settings
    redis_url: Optional[str] = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for context records",
        alias="REDIS_URL"
    )
    redis_max_connections: int = Field(
        default=10,
        description="Connection pool size for the context store",
        alias="REDIS_MAX_CONNECTIONS"
    )

    context_key_prefix: str = Field(
        default="context",
        description="Key prefix for persisted context records",
        alias="CONTEXT_KEY_PREFIX"
    )

    # RPC URLs for different chains
    ethereum_rpc_url: Optional[str] = Field(default=None, description="Ethereum mainnet RPC URL", alias="ETHEREUM_RPC_URL")
    arbitrum_rpc_url: Optional[str] = Field(default=None, description="Arbitrum mainnet RPC URL", alias="ARBITRUM_RPC_URL")
    base_rpc_url: Optional[str] = Field(default=None, description="Base mainnet RPC URL", alias="BASE_RPC_URL")
    optimism_rpc_url: Optional[str] = Field(default=None, description="Optimism mainnet RPC URL", alias="OPTIMISM_RPC_URL")
    polygon_rpc_url: Optional[str] = Field(default=None, description="Polygon PoS RPC URL", alias="POLYGON_RPC_URL")

    rpc_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for individual RPC requests",
        alias="RPC_TIMEOUT_SECONDS"
    )

    # Market data
    defillama_coins_url: str = Field(
        default="https://coins.llama.fi",
        description="DefiLlama coins API base URL",
        alias="DEFILLAMA_COINS_URL"
    )

    defillama_yields_url: str = Field(
        default="https://yields.llama.fi",
        description="DefiLlama yields API base URL",
        alias="DEFILLAMA_YIELDS_URL"
    )

    yield_table_ttl_seconds: float = Field(
        default=300.0,
        description="How long a fetched pool list is reused",
        alias="YIELD_TABLE_TTL_SECONDS"
    )

    tracked_tokens: List[str] = Field(
        default_factory=lambda: ["ETH", "USDC", "WBTC"],
        description="Token symbols priced on every snapshot refresh",
        alias="TRACKED_TOKENS"
    )

    native_tokens: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_NATIVE_TOKENS),
        description="Native gas token symbol per network",
        alias="NATIVE_TOKENS"
    )

    token_addresses: Dict[str, Dict[str, str]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_TOKEN_ADDRESSES.items()},
        description="Token contract address per network and symbol",
        alias="TOKEN_ADDRESSES"
    )

    # Chain data cache
    snapshot_stale_seconds: float = Field(
        default=60.0,
        description="Age after which a cached snapshot is flagged stale",
        alias="SNAPSHOT_STALE_SECONDS"
    )

    max_snapshot_age_seconds: float = Field(
        default=600.0,
        description="Hard ceiling: detectors ignore snapshots older than this",
        alias="MAX_SNAPSHOT_AGE_SECONDS"
    )

    adapter_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout applied to every network adapter call",
        alias="ADAPTER_TIMEOUT_SECONDS"
    )

    # Detection settings
    min_profit_percent: Decimal = Field(
        default=Decimal("1"),
        description="Default minimum profit percentage",
        alias="MIN_PROFIT_PERCENT"
    )

    trade_notional_usd: Decimal = Field(
        default=Decimal("10000"),
        description="Notional used to express gas cost as a percentage",
        alias="TRADE_NOTIONAL_USD"
    )

    swap_gas_units: int = Field(
        default=150_000,
        description="Gas units assumed for a single swap leg",
        alias="SWAP_GAS_UNITS"
    )

    yield_floor_apy: Decimal = Field(
        default=Decimal("2"),
        description="Minimum APY for a pool to count as an opportunity",
        alias="YIELD_FLOOR_APY"
    )

    max_bridge_fee_percent: Decimal = Field(
        default=Decimal("0.25"),
        description="Bridge routes must charge less than this fee",
        alias="MAX_BRIDGE_FEE_PERCENT"
    )

    bridge_routes: List[BridgeRoute] = Field(
        default_factory=lambda: list(DEFAULT_BRIDGE_ROUTES),
        description="Configured bridge routes",
        alias="BRIDGE_ROUTES"
    )

    # Execution settings
    quote_token: str = Field(default="USDC", description="Token arbitrage legs are quoted in", alias="QUOTE_TOKEN")

    default_trade_amount: Decimal = Field(
        default=Decimal("1000"),
        description="Amount used when a plan request does not name one",
        alias="DEFAULT_TRADE_AMOUNT"
    )

    swap_fee_percent: Decimal = Field(
        default=Decimal("0.3"),
        description="Swap fee applied by the simulated adapter",
        alias="SWAP_FEE_PERCENT"
    )

    step_max_attempts: int = Field(
        default=2,
        ge=1,
        description="Attempts per plan step before it is marked failed",
        alias="STEP_MAX_ATTEMPTS"
    )

    step_retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay between attempts of the same step",
        alias="STEP_RETRY_DELAY_SECONDS"
    )

    allow_live_execution: bool = Field(
        default=False,
        description="Permit plans to run in live mode",
        alias="ALLOW_LIVE_EXECUTION"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "populate_by_name": True,
        "extra": "ignore"
    }

    def rpc_urls(self) -> Dict[str, str]:
        """Configured RPC URL per network."""
        urls = {
            "ethereum": self.ethereum_rpc_url,
            "arbitrum": self.arbitrum_rpc_url,
            "base": self.base_rpc_url,
            "optimism": self.optimism_rpc_url,
            "polygon": self.polygon_rpc_url,
        }
        return {network: url for network, url in urls.items() if url}


# Global settings instance
settings = Settings()
