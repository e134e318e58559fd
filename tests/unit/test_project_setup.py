"""Test basic project setup and settings loading."""
import sys
from decimal import Decimal
from pathlib import Path

from crosschain_agent.config.settings import DEFAULT_BRIDGE_ROUTES, Settings


def test_python_version():
    """Test that Python version is 3.11+."""
    assert sys.version_info >= (3, 11), f"Python version is {sys.version_info}, expected >= 3.11"


def test_project_structure():
    """Test that basic project structure exists."""
    project_root = Path(__file__).parent.parent.parent
    src_dir = project_root / "src" / "crosschain_agent"

    assert src_dir.exists(), "Source directory should exist"

    expected_modules = [
        "adapters",
        "agent",
        "api",
        "blockchain_connector",
        "cache",
        "chain_data",
        "config",
        "execution",
        "market_data",
        "opportunities",
    ]

    for module in expected_modules:
        module_dir = src_dir / module
        assert module_dir.exists(), f"Module {module} should exist"
        assert (module_dir / "__init__.py").exists(), f"Module {module} should have __init__.py"


def test_imports():
    import crosschain_agent

    assert crosschain_agent.__version__ == "0.1.0"


class TestSettings:
    """Test environment-driven configuration."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.min_profit_percent == Decimal("1")
        assert settings.allow_live_execution is False
        assert settings.step_max_attempts == 2
        assert settings.native_tokens["polygon"] == "POL"
        assert all(route.fee_percent < settings.max_bridge_fee_percent for route in DEFAULT_BRIDGE_ROUTES)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MIN_PROFIT_PERCENT", "2.5")
        monkeypatch.setenv("ALLOW_LIVE_EXECUTION", "true")
        monkeypatch.setenv("TRACKED_TOKENS", '["ETH", "WBTC"]')

        settings = Settings(_env_file=None)

        assert settings.min_profit_percent == Decimal("2.5")
        assert settings.allow_live_execution is True
        assert settings.tracked_tokens == ["ETH", "WBTC"]

    def test_bridge_routes_from_environment(self, monkeypatch):
        monkeypatch.setenv(
            "BRIDGE_ROUTES",
            '[{"from": "base", "to": "optimism", "bridge": "hop", "fee_percent": "0.07"}]',
        )

        settings = Settings(_env_file=None)

        assert len(settings.bridge_routes) == 1
        assert settings.bridge_routes[0].to_network == "optimism"
        assert settings.bridge_routes[0].fee_percent == Decimal("0.07")

    def test_rpc_urls_skip_unconfigured_networks(self):
        settings = Settings(_env_file=None, ethereum_rpc_url="https://eth.example", base_rpc_url=None)

        urls = settings.rpc_urls()

        assert urls["ethereum"] == "https://eth.example"
        assert "base" not in urls
