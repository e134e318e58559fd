"""Exception taxonomy shared by the cache, planner, executor and actions."""
from typing import Optional


class CrossChainError(Exception):
    """Base class for all errors raised by the engine."""

    code = "cross_chain_error"


class NetworkUnavailable(CrossChainError):
    """Raised when a snapshot refresh cannot reach a network in time."""

    code = "network_unavailable"

    def __init__(self, network: str, reason: Optional[str] = None):
        """
        Initialize network-unavailable error.

        Args:
            network: Network that could not be reached
            reason: Underlying failure description
        """
        self.network = network
        self.reason = reason
        message = f"Network {network} is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnsupportedKind(CrossChainError):
    """Raised when the planner has no step template for an opportunity kind."""

    code = "unsupported_kind"

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"No execution template for opportunity kind '{kind}'")


class AdapterError(CrossChainError):
    """Raised by network adapters for any step-level I/O failure."""

    code = "adapter_error"

    def __init__(self, reason: str, network: Optional[str] = None, operation: Optional[str] = None):
        """
        Initialize adapter error.

        Args:
            reason: Failure description
            network: Network the call targeted
            operation: Adapter operation that failed (connect, swap, ...)
        """
        self.reason = reason
        self.network = network
        self.operation = operation
        super().__init__(reason)

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.operation and self.network:
            return f"[{self.operation}@{self.network}] {base_msg}"
        elif self.network:
            return f"[{self.network}] {base_msg}"
        return base_msg


class ValidationError(CrossChainError):
    """Raised for malformed request parameters before any state changes."""

    code = "validation_error"


class InvalidTransition(CrossChainError):
    """Raised when a plan is moved to a status its current status cannot reach."""

    code = "invalid_transition"
