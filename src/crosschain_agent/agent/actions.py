"""
Agent Actions.

The invocation surface consumed by the hosting agent. Each action takes a
structured request, validated by a pydantic model with camelCase aliases, and
returns an ActionResult. Failures are reported as ``success: false`` results
and never raised to the caller.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from web3 import Web3

from ..adapters.base import ExecutionMode
from ..blockchain_connector.provider import BlockchainProvider
from ..chain_data.chain_cache import ChainDataCache
from ..config.settings import Settings
from ..errors import CrossChainError, NetworkUnavailable, UnsupportedKind, ValidationError
from ..execution.executor import PlanExecutor
from ..execution.plan_models import PlanStatus
from ..execution.planner import ExecutionPlanner
from ..market_data.yield_table import YieldTable
from ..opportunities.models import Opportunity, OpportunityKind, RiskTier
from ..opportunities.scanner import OpportunityScanner
from .contexts import (
    BlockchainMemory,
    CrossChainMemory,
    DefiMemory,
    NftMemory,
    WalletMemory,
    blockchain_key,
    defi_key,
    nft_key,
    utc_now,
    wallet_key,
)
from .formatters import summarize_opportunities
from .store import ContextStore

logger = logging.getLogger(__name__)

MONITOR_BLOCK_COUNT = 3
MONITOR_EVENT_LIMIT = 5


class ActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class ConnectBlockchainRequest(ActionRequest):
    network: str = Field(..., min_length=1, description="The blockchain network to connect to")

    @field_validator("network")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()


class GetWalletBalanceRequest(ActionRequest):
    address: str = Field(..., description="Wallet address")
    network: str = Field(default="ethereum", description="Blockchain network")
    include_tokens: bool = Field(default=True, alias="includeTokens", description="Whether to include token balances")

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError(f"'{value}' is not a valid address")
        return value

    @field_validator("network")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()


class GetDeFiProtocolDataRequest(ActionRequest):
    protocol: str = Field(..., min_length=1, description="DeFi protocol name")
    network: str = Field(default="ethereum", description="Blockchain network")

    @field_validator("network")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()


class GetNFTCollectionDataRequest(ActionRequest):
    collection: str = Field(..., description="NFT collection contract address")
    network: str = Field(default="ethereum", description="Blockchain network")

    @field_validator("collection")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError(f"'{value}' is not a valid contract address")
        return value

    @field_validator("network")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()


class AnalyzeCrossChainRequest(ActionRequest):
    chains: List[str] = Field(..., min_length=1, description="Chains to include in analysis")
    strategy: Literal["arbitrage", "yield", "bridge", "all"] = Field(default="all", description="Strategy to scan for")
    min_profit_percent: Optional[Decimal] = Field(
        default=None, ge=0, le=100, alias="minProfitPercent",
        description="Minimum profit percentage, MIN_PROFIT_PERCENT when omitted"
    )
    analysis_id: Optional[str] = Field(default=None, alias="analysisId", description="Existing analysis to update")


class OpportunityRequest(ActionRequest):
    """An opportunity as passed back by the agent, possibly partial."""
    type: str
    chains: List[str] = Field(..., min_length=1)
    description: str = ""
    expected_return: Decimal = Field(default=Decimal("0"), alias="expectedReturn")
    risk: RiskTier = RiskTier.MEDIUM
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_opportunity(self) -> Opportunity:
        try:
            kind = OpportunityKind(self.type.lower())
        except ValueError:
            raise UnsupportedKind(self.type)
        return Opportunity(
            kind=kind,
            networks=self.chains,
            expected_return_percent=self.expected_return,
            risk=self.risk,
            description=self.description,
            metadata=self.metadata,
        )


class ExecuteCrossChainPlanRequest(ActionRequest):
    opportunity: OpportunityRequest = Field(..., description="The opportunity to execute")
    dry_run: bool = Field(default=True, alias="dryRun", description="Whether to perform a dry run or live execution")
    amount: Optional[Decimal] = Field(default=None, gt=0, description="Starting amount")
    analysis_id: Optional[str] = Field(default=None, alias="analysisId", description="Analysis to record the plan on")


class MonitorBlockchainRequest(ActionRequest):
    network: str = Field(..., min_length=1, description="Blockchain network to monitor")
    event_types: List[Literal["block", "transaction", "contract"]] = Field(
        default_factory=lambda: ["block"], alias="eventTypes", description="Event types to monitor"
    )
    duration: int = Field(default=10, ge=1, le=60, description="Duration to monitor in minutes")

    @field_validator("network")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()


class CancelPlanRequest(ActionRequest):
    plan_id: str = Field(..., min_length=1, alias="planId", description="Plan to cancel")


class ActionResult(BaseModel):
    """Structured result returned for every action call."""
    success: bool
    message: str
    error: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **data) -> "ActionResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failed(cls, error: str, message: str, **data) -> "ActionResult":
        return cls(success=False, error=error, message=message, data=data)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


@dataclass(frozen=True)
class ActionSpec:
    name: str
    description: str
    request_model: Type[ActionRequest]
    handler: Callable[[Any], Awaitable[ActionResult]]
    failure_message: str


def _format_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


class ActionRegistry:
    """Named actions the hosting agent can call, with uniform error reporting."""

    def __init__(
        self,
        settings: Settings,
        cache: ChainDataCache,
        scanner: OpportunityScanner,
        planner: ExecutionPlanner,
        executor: PlanExecutor,
        provider: BlockchainProvider,
        yield_table: YieldTable,
        store: ContextStore
    ):
        self.settings = settings
        self.cache = cache
        self.scanner = scanner
        self.planner = planner
        self.executor = executor
        self.provider = provider
        self.yield_table = yield_table
        self.store = store

        self._actions: Dict[str, ActionSpec] = {}
        self._register_defaults()

        self.stats = {
            "calls": 0,
            "failures": 0,
        }

    def register(self, spec: ActionSpec):
        self._actions[spec.name] = spec

    def list_actions(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": spec.name,
                "description": spec.description,
                "schema": spec.request_model.model_json_schema(by_alias=True),
            }
            for spec in self._actions.values()
        ]

    async def dispatch(self, name: str, payload: Optional[Dict[str, Any]] = None) -> ActionResult:
        """
        Validate ``payload`` and run the named action.

        Never raises: validation errors, engine errors and unexpected errors
        all come back as ``success=False`` results.
        """
        self.stats["calls"] += 1
        spec = self._actions.get(name)
        if spec is None:
            self.stats["failures"] += 1
            return ActionResult.failed(f"Unknown action '{name}'", f"Action {name} does not exist")

        try:
            request = spec.request_model.model_validate(payload or {})
            result = await spec.handler(request)
        except PydanticValidationError as e:
            error = _format_validation_error(e)
            logger.info(f"Rejected {name} request: {error}")
            result = ActionResult.failed(error, f"{spec.failure_message}: {error}")
        except CrossChainError as e:
            logger.warning(f"{name} failed ({e.code}): {e}")
            result = ActionResult.failed(str(e), f"{spec.failure_message}: {e}", code=e.code)
        except Exception as e:
            logger.error(f"Unexpected error in {name}: {e}", exc_info=True)
            result = ActionResult.failed(str(e), f"{spec.failure_message}: {e}")

        if not result.success:
            self.stats["failures"] += 1
        return result

    def _register_defaults(self):
        for spec in (
            ActionSpec("connectBlockchain", "Connect to a blockchain network",
                       ConnectBlockchainRequest, self.connect_blockchain, "Failed to connect to blockchain"),
            ActionSpec("getWalletBalance", "Get the balance of a wallet",
                       GetWalletBalanceRequest, self.get_wallet_balance, "Failed to get wallet balance"),
            ActionSpec("getDeFiProtocolData", "Get data about a DeFi protocol",
                       GetDeFiProtocolDataRequest, self.get_defi_protocol_data, "Failed to get DeFi protocol data"),
            ActionSpec("getNFTCollectionData", "Get data about an NFT collection",
                       GetNFTCollectionDataRequest, self.get_nft_collection_data, "Failed to get NFT collection data"),
            ActionSpec("analyzeCrossChainOpportunities", "Analyze opportunities across multiple blockchains",
                       AnalyzeCrossChainRequest, self.analyze_cross_chain_opportunities,
                       "Failed to analyze cross-chain opportunities"),
            ActionSpec("executeCrossChainPlan", "Execute a plan across multiple blockchains",
                       ExecuteCrossChainPlanRequest, self.execute_cross_chain_plan,
                       "Failed to execute cross-chain plan"),
            ActionSpec("monitorBlockchain", "Monitor a blockchain for events",
                       MonitorBlockchainRequest, self.monitor_blockchain, "Failed to monitor blockchain"),
            ActionSpec("cancelPlan", "Cancel an executing cross-chain plan",
                       CancelPlanRequest, self.cancel_plan, "Failed to cancel plan"),
        ):
            self.register(spec)

    async def connect_blockchain(self, request: ConnectBlockchainRequest) -> ActionResult:
        snapshot = await self.cache.refresh(request.network)
        blocks = await self.provider.get_recent_blocks(request.network, count=1)

        key = blockchain_key(request.network)
        memory = await self.store.load_or_create("blockchain", key, BlockchainMemory, network=request.network)
        memory.status = "connected"
        memory.block_number = snapshot.block_height
        memory.gas_price_gwei = snapshot.gas_price_gwei
        memory.add_blocks([_block_summary(b) for b in blocks] or [{"number": snapshot.block_height}])
        memory.last_updated = utc_now()
        await self.store.save("blockchain", key, memory)

        return ActionResult.ok(
            f"Connected to {request.network} network",
            network=request.network,
            status=memory.status,
            blockNumber=snapshot.block_height,
            gasPrice=str(snapshot.gas_price_gwei),
            tokenPrices={symbol: str(price) for symbol, price in snapshot.token_prices.items()},
        )

    async def get_wallet_balance(self, request: GetWalletBalanceRequest) -> ActionResult:
        native = await self.provider.get_native_balance(request.network, request.address)
        if native is None:
            raise NetworkUnavailable(request.network, "could not read native balance")

        tokens = {}
        if request.include_tokens:
            addresses = self.settings.token_addresses.get(request.network, {})
            tokens = await self.provider.get_token_balances(request.network, request.address, addresses)

        key = wallet_key(request.network, request.address)
        memory = WalletMemory(
            address=request.address,
            network=request.network,
            native_symbol=self.settings.native_tokens.get(request.network, "ETH"),
            native_balance=native,
            token_balances=tokens,
        )
        await self.store.save("wallet", key, memory)

        return ActionResult.ok(
            f"Retrieved balance for {request.address}",
            address=request.address,
            network=request.network,
            balance={
                "native": str(native),
                "tokens": {symbol: str(amount) for symbol, amount in tokens.items()},
            },
        )

    async def get_defi_protocol_data(self, request: GetDeFiProtocolDataRequest) -> ActionResult:
        pools = await self.yield_table.get_protocol_pools(request.network, request.protocol)

        metrics: Dict[str, Any] = {"pool_count": len(pools)}
        if pools:
            metrics["tvl_usd"] = str(sum((pool.tvl_usd for pool in pools), Decimal("0")).quantize(Decimal("1")))
            average = sum((pool.apy for pool in pools), Decimal("0")) / len(pools)
            metrics["average_apy"] = str(average.quantize(Decimal("0.01")))

        key = defi_key(request.network, request.protocol)
        memory = DefiMemory(protocol=request.protocol, network=request.network, pools=pools, metrics=metrics)
        await self.store.save("defi", key, memory)

        message = (
            f"Retrieved data for {request.protocol}" if pools
            else f"No pools found for {request.protocol} on {request.network}"
        )
        return ActionResult.ok(
            message,
            protocol=request.protocol,
            network=request.network,
            pools=[pool.model_dump(mode="json") for pool in pools],
            metrics=metrics,
        )

    async def get_nft_collection_data(self, request: GetNFTCollectionDataRequest) -> ActionResult:
        info = await self.provider.get_collection_info(request.network, request.collection)
        if info is None:
            raise ValidationError(f"{request.collection} is not a readable ERC-721 collection on {request.network}")

        key = nft_key(request.network, request.collection)
        memory = NftMemory(
            collection=request.collection,
            network=request.network,
            name=info.get("name") or "Unknown Collection",
            symbol=info.get("symbol"),
            token_count=info.get("total_supply"),
        )
        await self.store.save("nft", key, memory)

        return ActionResult.ok(
            f"Retrieved data for NFT collection {request.collection}",
            collection=request.collection,
            network=request.network,
            name=memory.name,
            symbol=memory.symbol,
            tokenCount=memory.token_count,
        )

    async def analyze_cross_chain_opportunities(self, request: AnalyzeCrossChainRequest) -> ActionResult:
        min_profit = request.min_profit_percent
        if min_profit is None:
            min_profit = self.settings.min_profit_percent
        scan = await self.scanner.scan(request.chains, request.strategy, min_profit)

        analysis_id = request.analysis_id or str(uuid.uuid4())
        memory = await self.store.load_or_create("cross-chain", analysis_id, CrossChainMemory, id=analysis_id)
        memory.chains = scan.networks

        chain_data = {}
        for network in scan.networks:
            snapshot = scan.snapshots.get(network)
            if snapshot is None:
                chain_data[network] = {"status": "unavailable", "error": scan.unavailable_networks.get(network)}
                continue
            chain_data[network] = {
                "status": "stale" if network in scan.stale_networks else "connected",
                **snapshot.to_dict(),
            }
        memory.chain_data = chain_data

        opportunities = [opportunity.to_payload() for opportunity in scan.opportunities]
        summary = summarize_opportunities(scan.opportunities, len(scan.networks), min_profit)
        memory.opportunities = opportunities
        memory.analysis = {
            "summary": summary,
            "strategy": request.strategy,
            "minProfitPercent": str(min_profit),
            "unavailableChains": sorted(scan.unavailable_networks),
            "timestamp": utc_now(),
        }
        memory.updated_at = utc_now()
        await self.store.save("cross-chain", analysis_id, memory)

        return ActionResult.ok(
            f"Analyzed {len(scan.networks)} chains for {request.strategy} opportunities",
            analysisId=analysis_id,
            opportunities=opportunities,
            analysis={"summary": summary, "timestamp": memory.analysis["timestamp"]},
            unavailableChains=scan.unavailable_networks,
        )

    async def execute_cross_chain_plan(self, request: ExecuteCrossChainPlanRequest) -> ActionResult:
        mode = ExecutionMode.DRY_RUN if request.dry_run else ExecutionMode.LIVE
        if mode == ExecutionMode.LIVE and not self.settings.allow_live_execution:
            raise ValidationError("live execution is disabled; set ALLOW_LIVE_EXECUTION to enable it")

        opportunity = request.opportunity.to_opportunity()
        plan = self.planner.plan(opportunity, mode, request.amount)
        plan = await self.executor.execute(plan)
        payload = plan.to_payload()

        if request.analysis_id:
            memory = await self.store.load_or_create(
                "cross-chain", request.analysis_id, CrossChainMemory,
                id=request.analysis_id, chains=opportunity.networks,
            )
            memory.last_plan_execution = payload
            memory.updated_at = utc_now()
            await self.store.save("cross-chain", request.analysis_id, memory)

        data = {"planId": plan.plan_id, "dryRun": request.dry_run, "status": plan.status.value, "steps": payload["steps"]}

        if plan.status == PlanStatus.SUCCEEDED:
            if request.dry_run:
                message = f"Dry run completed for {opportunity.kind.value} opportunity"
            else:
                message = f"Executed {opportunity.kind.value} opportunity across {' and '.join(opportunity.networks)}"
            return ActionResult.ok(message, **data)

        return ActionResult.failed(
            plan.error or "plan did not complete",
            f"Plan {plan.plan_id} ended {plan.status.value}: {plan.error}",
            **data,
        )

    async def monitor_blockchain(self, request: MonitorBlockchainRequest) -> ActionResult:
        blocks = await self.provider.get_recent_blocks(request.network, count=MONITOR_BLOCK_COUNT)
        if not blocks:
            raise NetworkUnavailable(request.network, "could not read recent blocks")

        events: List[Dict[str, Any]] = []
        newest = blocks[0]

        if "block" in request.event_types:
            for block in blocks:
                events.append({
                    "type": "block",
                    "network": request.network,
                    "blockNumber": block["number"],
                    "timestamp": block["timestamp"],
                    "transactions": len(block.get("transactions", [])),
                })

        if "transaction" in request.event_types:
            for tx_hash in newest.get("transactions", [])[:MONITOR_EVENT_LIMIT]:
                events.append({
                    "type": "transaction",
                    "network": request.network,
                    "hash": tx_hash,
                    "blockNumber": newest["number"],
                })

        if "contract" in request.event_types:
            logs = await self.provider.get_block_logs(request.network, newest["number"], limit=MONITOR_EVENT_LIMIT)
            for log in logs:
                events.append({
                    "type": "contract",
                    "network": request.network,
                    "address": log["address"],
                    "topic": log["topics"][0] if log.get("topics") else None,
                    "transactionHash": log["transactionHash"],
                    "blockNumber": log["blockNumber"],
                })

        monitor_id = str(uuid.uuid4())
        started = datetime.now(timezone.utc)

        key = blockchain_key(request.network)
        memory = await self.store.load_or_create("blockchain", key, BlockchainMemory, network=request.network)
        memory.add_blocks([_block_summary(b) for b in blocks])
        memory.monitoring = {
            "id": monitor_id,
            "event_types": list(request.event_types),
            "start_time": started.isoformat(),
            "end_time": (started + timedelta(minutes=request.duration)).isoformat(),
            "events": events,
        }
        memory.last_updated = utc_now()
        await self.store.save("blockchain", key, memory)

        return ActionResult.ok(
            f"Monitored {request.network} for {len(events)} events",
            monitorId=monitor_id,
            events=events,
        )

    async def cancel_plan(self, request: CancelPlanRequest) -> ActionResult:
        if not self.executor.cancel(request.plan_id):
            return ActionResult.failed(
                f"Plan {request.plan_id} is not executing",
                f"Failed to cancel plan: {request.plan_id} is not executing",
            )
        return ActionResult.ok(f"Cancellation requested for plan {request.plan_id}", planId=request.plan_id)


def _block_summary(block: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "number": block["number"],
        "hash": block.get("hash"),
        "timestamp": block.get("timestamp"),
        "transactions": len(block.get("transactions", [])),
    }
