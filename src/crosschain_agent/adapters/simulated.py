"""
Simulated network adapter for paper execution.

Reads real chain heads through the blockchain provider but settles swaps,
bridges and deposits in memory, priced from the price feed and the configured
bridge routes. Nothing is signed or broadcast.
"""
import logging
import uuid
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from ..blockchain_connector.provider import BlockchainProvider
from ..market_data.price_feed import PriceFeed
from ..opportunities.models import BridgeRoute
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

logger = logging.getLogger(__name__)

AMOUNT_QUANTUM = Decimal("0.00000001")
WEI_PER_GWEI = Decimal(10 ** 9)


class SimulatedNetworkAdapter(NetworkAdapter):
    """Paper-trading implementation of the network adapter interface."""

    name = "simulated"

    def __init__(
        self,
        provider: BlockchainProvider,
        price_feed: PriceFeed,
        bridge_routes: List[BridgeRoute],
        swap_fee_percent: Decimal = Decimal("0.3")
    ):
        super().__init__()
        self.provider = provider
        self.price_feed = price_feed
        self.swap_fee_percent = swap_fee_percent
        self.routes: Dict[Tuple[str, str], BridgeRoute] = {
            (route.from_network.lower(), route.to_network.lower()): route for route in bridge_routes
        }
        self.positions: Dict[str, DepositResult] = {}

    async def connect(self, network: str) -> ConnectResult:
        head = await self.provider.get_chain_head(network)
        if head is None:
            self._record_call("connect", False)
            raise AdapterError("could not read chain head", network=network, operation="connect")

        block_number, gas_price_wei = head
        self._record_call("connect", True)
        return ConnectResult(
            network=network,
            block_height=block_number,
            gas_price_gwei=(Decimal(gas_price_wei) / WEI_PER_GWEI).quantize(Decimal("0.0001")),
        )

    async def swap(
        self,
        network: str,
        from_token: str,
        to_token: str,
        amount: Decimal,
        mode: ExecutionMode
    ) -> SwapResult:
        if amount <= 0:
            raise AdapterError(f"swap amount must be positive, got {amount}", network=network, operation="swap")

        from_price = await self._price(network, from_token)
        to_price = await self._price(network, to_token)
        fee_multiplier = 1 - self.swap_fee_percent / 100
        amount_out = (amount * from_price / to_price * fee_multiplier).quantize(AMOUNT_QUANTUM)

        self._record_call("swap", True)
        logger.info(f"[{mode.value}] swap {amount} {from_token} -> {amount_out} {to_token} on {network}")
        return SwapResult(network, from_token, to_token, amount, amount_out)

    async def bridge(
        self,
        from_network: str,
        to_network: str,
        token: str,
        amount: Decimal,
        mode: ExecutionMode
    ) -> BridgeResult:
        route = self.routes.get((from_network.lower(), to_network.lower()))
        if route is None:
            self._record_call("bridge", False)
            raise AdapterError(
                f"no bridge route to {to_network}", network=from_network, operation="bridge"
            )

        received = (amount * (1 - route.fee_percent / 100)).quantize(AMOUNT_QUANTUM)
        tx_ref = f"sim-{route.bridge}-{uuid.uuid4().hex[:16]}"

        self._record_call("bridge", True)
        logger.info(f"[{mode.value}] bridge {amount} {token} {from_network} -> {to_network} via {route.bridge}")
        return BridgeResult(from_network, to_network, token, received, tx_ref)

    async def deposit(
        self,
        network: str,
        protocol: str,
        amount: Decimal,
        mode: ExecutionMode
    ) -> DepositResult:
        if amount <= 0:
            raise AdapterError(f"deposit amount must be positive, got {amount}", network=network, operation="deposit")

        position = DepositResult(network, protocol, amount, f"sim-pos-{uuid.uuid4().hex[:16]}")
        if mode == ExecutionMode.LIVE:
            self.positions[position.position_ref] = position

        self._record_call("deposit", True)
        return position

    async def withdraw(
        self,
        network: str,
        protocol: str,
        position_ref: str,
        mode: ExecutionMode
    ) -> WithdrawResult:
        position = self.positions.pop(position_ref, None)
        if position is None:
            self._record_call("withdraw", False)
            raise AdapterError(f"unknown position {position_ref}", network=network, operation="withdraw")

        self._record_call("withdraw", True)
        return WithdrawResult(network, protocol, position_ref, position.amount)

    async def _price(self, network: str, token: str) -> Decimal:
        price: Optional[Decimal] = await self.price_feed.get_price(network, token)
        if price is None or price <= 0:
            self._record_call("swap", False)
            raise AdapterError(f"no price for {token}", network=network, operation="swap")
        return price
