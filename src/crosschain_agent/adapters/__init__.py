"""
Network adapters: the I/O boundary behind cache refreshes and plan steps.

Concrete adapters live in their own modules (``adapters.simulated``) and are
injected at construction time.
"""
from .base import (
    AdapterError,
    BridgeResult,
    ConnectResult,
    DepositResult,
    ExecutionMode,
    NetworkAdapter,
    SwapResult,
    WithdrawResult,
)

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
