"""Shared fixtures."""
import pytest

from fakes import FakeNetworkAdapter, FakeRedis, StaticPriceFeed


@pytest.fixture
def fake_adapter():
    return FakeNetworkAdapter(heads={"ethereum": (19_000_000, "25"), "arbitrum": (200_000_000, "0.1")})


@pytest.fixture
def price_feed():
    """ETH at 1800 on ethereum and 1850 on arbitrum."""
    return StaticPriceFeed({
        "ethereum": {"ETH": 1800, "USDC": 1},
        "arbitrum": {"ETH": 1850, "USDC": 1},
        "polygon": {"ETH": 1800, "USDC": 1, "POL": "0.5"},
        "base": {"ETH": 1800, "USDC": 1},
    })


@pytest.fixture
def fake_redis():
    return FakeRedis()
