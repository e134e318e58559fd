"""Immutable point-in-time capture of a network's observable state."""
import time
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class ChainSnapshot:
    """Block height, gas price and token prices for one network."""
    network: str
    block_height: int
    gas_price_gwei: Decimal
    token_prices: Mapping[str, Decimal] = field(default_factory=dict)
    captured_at: float = field(default_factory=time.time)

    def __post_init__(self):
        object.__setattr__(self, "gas_price_gwei", Decimal(str(self.gas_price_gwei)))
        if self.block_height < 0:
            raise ValueError(f"block_height must be non-negative, got {self.block_height}")
        if self.gas_price_gwei < 0:
            raise ValueError(f"gas_price_gwei must be non-negative, got {self.gas_price_gwei}")
        # Freeze the price table so a published snapshot can never change
        prices = {symbol.upper(): Decimal(str(price)) for symbol, price in dict(self.token_prices).items()}
        object.__setattr__(self, "network", self.network.lower())
        object.__setattr__(self, "token_prices", MappingProxyType(prices))

    def age_seconds(self, now: Optional[float] = None) -> float:
        """Seconds since the snapshot was captured."""
        now = time.time() if now is None else now
        return max(0.0, now - self.captured_at)

    def is_stale(self, max_age_seconds: float, now: Optional[float] = None) -> bool:
        return self.age_seconds(now) > max_age_seconds

    def price(self, symbol: str) -> Optional[Decimal]:
        return self.token_prices.get(symbol.upper())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "blockNumber": self.block_height,
            "gasPrice": str(self.gas_price_gwei),
            "tokenPrices": {symbol: str(price) for symbol, price in self.token_prices.items()},
            "capturedAt": self.captured_at,
        }


@dataclass(frozen=True)
class CachedSnapshot:
    """A cached snapshot together with its staleness at read time."""
    snapshot: ChainSnapshot
    stale: bool
