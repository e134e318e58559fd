"""
Execution Planner.

Expands an opportunity into an ordered list of steps from a fixed template
per opportunity kind. Planning is pure construction: no network I/O.
"""
import logging
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from ..adapters.base import ExecutionMode
from ..errors import UnsupportedKind, ValidationError
from ..opportunities.models import Opportunity, OpportunityKind
from .plan_models import Plan, Step, StepAction

logger = logging.getLogger(__name__)

StepTemplate = Callable[[Opportunity, Decimal, str], List[Step]]


def arbitrage_template(opportunity: Opportunity, amount: Decimal, quote_token: str) -> List[Step]:
    """connect -> buy on the cheap network -> bridge -> sell on the dear one."""
    source, target = opportunity.networks[0], opportunity.networks[1]
    token = opportunity.metadata.get("token", "ETH")
    return [
        Step(1, f"Connect to {source}", source, StepAction.CONNECT),
        Step(
            2, f"Swap {quote_token} for {token} on {source}", source, StepAction.SWAP,
            params={"from_token": quote_token, "to_token": token, "amount": amount},
        ),
        Step(
            3, f"Bridge {token} from {source} to {target}", source, StepAction.BRIDGE,
            params={"to_network": target, "token": token},
        ),
        Step(
            4, f"Swap {token} for {quote_token} on {target}", target, StepAction.SWAP,
            params={"from_token": token, "to_token": quote_token},
        ),
    ]


def yield_template(opportunity: Opportunity, amount: Decimal, quote_token: str) -> List[Step]:
    network = opportunity.networks[0]
    protocol = opportunity.metadata.get("protocol", "unknown")
    pool = opportunity.metadata.get("pool", protocol)
    return [
        Step(1, f"Connect to {network}", network, StepAction.CONNECT),
        Step(
            2, f"Deposit into {pool} on {protocol}", network, StepAction.DEPOSIT,
            params={"protocol": protocol, "pool": pool, "amount": amount},
        ),
    ]


def bridge_template(opportunity: Opportunity, amount: Decimal, quote_token: str) -> List[Step]:
    source, target = opportunity.networks[0], opportunity.networks[1]
    token = opportunity.metadata.get("token", quote_token)
    bridge = opportunity.metadata.get("bridge", "bridge")
    return [
        Step(1, f"Connect to {source}", source, StepAction.CONNECT),
        Step(
            2, f"Bridge {token} from {source} to {target} via {bridge}", source, StepAction.BRIDGE,
            params={"to_network": target, "token": token, "amount": amount},
        ),
    ]


DEFAULT_TEMPLATES: Dict[OpportunityKind, StepTemplate] = {
    OpportunityKind.ARBITRAGE: arbitrage_template,
    OpportunityKind.YIELD: yield_template,
    OpportunityKind.BRIDGE: bridge_template,
}

REQUIRED_NETWORKS = {
    OpportunityKind.ARBITRAGE: 2,
    OpportunityKind.YIELD: 1,
    OpportunityKind.BRIDGE: 2,
}


class ExecutionPlanner:
    """Builds plans from opportunities using per-kind step templates."""

    def __init__(
        self,
        quote_token: str = "USDC",
        default_amount: Decimal = Decimal("1000"),
        templates: Optional[Dict[OpportunityKind, StepTemplate]] = None
    ):
        self.quote_token = quote_token
        self.default_amount = Decimal(str(default_amount))
        self.templates = dict(DEFAULT_TEMPLATES if templates is None else templates)

    def plan(
        self,
        opportunity: Opportunity,
        mode: ExecutionMode = ExecutionMode.DRY_RUN,
        amount: Optional[Decimal] = None
    ) -> Plan:
        """
        Expand ``opportunity`` into a pending plan.

        Args:
            opportunity: Opportunity to execute
            mode: Dry-run or live
            amount: Starting amount, defaults to the planner's default amount

        Returns:
            Plan in ``pending`` status

        Raises:
            UnsupportedKind: If no template is registered for the kind
            ValidationError: If the amount is not positive or the opportunity
                lists too few networks for its template
        """
        template = self.templates.get(opportunity.kind)
        if template is None:
            raise UnsupportedKind(opportunity.kind.value)

        required = REQUIRED_NETWORKS.get(opportunity.kind, 1)
        if len(opportunity.networks) < required:
            raise ValidationError(
                f"{opportunity.kind.value} plans need {required} networks, "
                f"got {len(opportunity.networks)}"
            )

        amount = self.default_amount if amount is None else Decimal(str(amount))
        if amount <= 0:
            raise ValidationError(f"amount must be positive, got {amount}")

        steps = template(opportunity, amount, self.quote_token)
        plan = Plan(opportunity=opportunity, steps=steps, mode=ExecutionMode(mode), amount=amount)

        logger.info(
            f"Planned {opportunity.kind.value} {plan.plan_id} ({plan.mode.value}): "
            f"{len(steps)} steps across {', '.join(opportunity.networks)}"
        )
        return plan
