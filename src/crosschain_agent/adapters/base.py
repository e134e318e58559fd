"""Base adapter class for network integrations."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict

from ..errors import AdapterError

logger = logging.getLogger(__name__)


class ExecutionMode(str, Enum):
    """Whether adapter calls may mutate external state."""
    DRY_RUN = "dry-run"
    LIVE = "live"


@dataclass(frozen=True)
class ConnectResult:
    """Chain head observed while connecting."""
    network: str
    block_height: int
    gas_price_gwei: Decimal


@dataclass(frozen=True)
class SwapResult:
    network: str
    from_token: str
    to_token: str
    amount_in: Decimal
    amount_out: Decimal


@dataclass(frozen=True)
class BridgeResult:
    from_network: str
    to_network: str
    token: str
    amount: Decimal
    bridge_tx_ref: str


@dataclass(frozen=True)
class DepositResult:
    network: str
    protocol: str
    amount: Decimal
    position_ref: str


@dataclass(frozen=True)
class WithdrawResult:
    network: str
    protocol: str
    position_ref: str
    amount: Decimal


class NetworkAdapter(ABC):
    """
    Abstract base class for network adapters.

    A network adapter performs the I/O behind every plan step. Implementations
    are injected into the chain data cache and the plan executor, so real
    signing adapters and test doubles are interchangeable.

    Every operation may raise AdapterError.
    """

    name: str = "network"

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._call_stats: Dict[str, Dict[str, Any]] = {}

    @abstractmethod
    async def connect(self, network: str) -> ConnectResult:
        """
        Connect to a network and read its head.

        Args:
            network: Network name (e.g. 'ethereum', 'arbitrum')

        Returns:
            ConnectResult with block height and gas price in gwei
        """

    @abstractmethod
    async def swap(
        self,
        network: str,
        from_token: str,
        to_token: str,
        amount: Decimal,
        mode: ExecutionMode
    ) -> SwapResult:
        """Swap ``amount`` of ``from_token`` into ``to_token`` on one network."""

    @abstractmethod
    async def bridge(
        self,
        from_network: str,
        to_network: str,
        token: str,
        amount: Decimal,
        mode: ExecutionMode
    ) -> BridgeResult:
        """Move ``amount`` of ``token`` from one network to another."""

    @abstractmethod
    async def deposit(
        self,
        network: str,
        protocol: str,
        amount: Decimal,
        mode: ExecutionMode
    ) -> DepositResult:
        """Deposit into a protocol pool, returning a position reference."""

    @abstractmethod
    async def withdraw(
        self,
        network: str,
        protocol: str,
        position_ref: str,
        mode: ExecutionMode
    ) -> WithdrawResult:
        """Withdraw a position created by deposit (compensation for deposit)."""

    def get_call_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get per-operation call statistics for monitoring."""
        return {operation: stats.copy() for operation, stats in self._call_stats.items()}

    def _record_call(self, operation: str, success: bool):
        """Record the outcome of an adapter call."""
        stats = self._call_stats.setdefault(operation, {"calls": 0, "errors": 0, "last_call": None})
        stats["calls"] += 1
        if not success:
            stats["errors"] += 1
        stats["last_call"] = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"{self.name}Adapter"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


__all__ = [
    "AdapterError",
    "BridgeResult",
    "ConnectResult",
    "DepositResult",
    "ExecutionMode",
    "NetworkAdapter",
    "SwapResult",
    "WithdrawResult",
]
