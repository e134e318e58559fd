"""Market data package: token prices and protocol yield tables."""
from .price_feed import DefiLlamaPriceFeed, PriceFeed
from .yield_table import DefiLlamaYieldTable, YieldTable

__all__ = [
    "DefiLlamaPriceFeed",
    "DefiLlamaYieldTable",
    "PriceFeed",
    "YieldTable",
]
