"""
Plan Executor.

Runs a plan's steps in sequence against a network adapter. Dry-run plans are
simulated without any adapter I/O. When a live step fails, every previously
succeeded step is compensated in reverse order and the plan ends rolled-back.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from ..adapters.base import ExecutionMode, NetworkAdapter
from ..errors import AdapterError
from .plan_models import Plan, PlanStatus, Step, StepAction, StepStatus

logger = logging.getLogger(__name__)


class PlanExecutor:
    """Executes plans step by step with retries, cancellation and rollback."""

    def __init__(
        self,
        adapter: NetworkAdapter,
        timeout_seconds: float = 15.0,
        max_attempts: int = 2,
        retry_delay_seconds: float = 1.0
    ):
        """
        Initialize plan executor.

        Args:
            adapter: Network adapter that performs live step I/O
            timeout_seconds: Bound applied to every adapter call
            max_attempts: Attempts per step before it is marked failed
            retry_delay_seconds: Delay between attempts of the same step
        """
        self.adapter = adapter
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds

        self.active_plans: Dict[str, Plan] = {}
        self._cancel_requests: Set[str] = set()

        self.stats = {
            "plans_executed": 0,
            "plans_succeeded": 0,
            "plans_failed": 0,
            "plans_rolled_back": 0,
            "steps_executed": 0,
            "step_retries": 0,
            "compensations_failed": 0,
            "cancellations": 0,
        }

    async def execute(self, plan: Plan) -> Plan:
        """
        Run ``plan`` to completion and return it.

        The plan ends ``succeeded``, ``failed`` (dry-run) or ``rolled-back``
        (live). Step failures never propagate out of this method.

        Raises:
            InvalidTransition: If the plan is not pending
        """
        plan.transition(PlanStatus.IN_PROGRESS)
        self.active_plans[plan.plan_id] = plan
        self.stats["plans_executed"] += 1

        logger.info(
            f"Executing plan {plan.plan_id} ({plan.mode.value}): "
            f"{len(plan.steps)} steps for {plan.opportunity.kind.value}"
        )

        try:
            failure = await self._run_steps(plan)
        finally:
            self.active_plans.pop(plan.plan_id, None)
            self._cancel_requests.discard(plan.plan_id)

        if failure is None:
            plan.transition(PlanStatus.SUCCEEDED)
            self.stats["plans_succeeded"] += 1
            logger.info(f"✅ Plan {plan.plan_id} succeeded")
            return plan

        plan.error = failure
        for step in plan.steps:
            if step.status == StepStatus.PENDING:
                step.transition(StepStatus.SKIPPED, "Not executed: an earlier step failed")

        plan.transition(PlanStatus.FAILED)
        self.stats["plans_failed"] += 1
        logger.warning(f"❌ Plan {plan.plan_id} failed: {failure}")

        if plan.mode == ExecutionMode.LIVE:
            await self._compensate(plan)
            plan.transition(PlanStatus.ROLLED_BACK)
            self.stats["plans_rolled_back"] += 1
            logger.info(f"Plan {plan.plan_id} rolled back")

        return plan

    def cancel(self, plan_id: str) -> bool:
        """
        Request cancellation of an in-progress plan.

        Takes effect before the plan's next step starts.

        Returns:
            True if the plan is currently executing
        """
        if plan_id not in self.active_plans:
            return False
        self._cancel_requests.add(plan_id)
        self.stats["cancellations"] += 1
        logger.info(f"Cancellation requested for plan {plan_id}")
        return True

    def get_plan_status(self, plan_id: str) -> Optional[Dict[str, Any]]:
        plan = self.active_plans.get(plan_id)
        if plan is None:
            return None
        return {
            "plan_id": plan.plan_id,
            "status": plan.status.value,
            "steps_completed": sum(1 for s in plan.steps if s.status == StepStatus.SUCCESS),
            "total_steps": len(plan.steps),
            "cancel_requested": plan_id in self._cancel_requests,
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            "active_plans": len(self.active_plans),
        }

    async def _run_steps(self, plan: Plan) -> Optional[str]:
        """Run steps in order; return the failure message or None."""
        amount: Optional[Decimal] = plan.amount

        for step in sorted(plan.steps, key=lambda s: s.sequence):
            if plan.plan_id in self._cancel_requests:
                message = f"Cancelled before step {step.sequence}"
                step.transition(StepStatus.FAILED, message)
                return message

            if plan.mode == ExecutionMode.DRY_RUN:
                step.transition(StepStatus.SUCCESS, f"Dry run: would {self._describe(step, amount)}")
                continue

            try:
                result, amount = await self._run_with_retries(plan, step, amount)
            except AdapterError as e:
                step.transition(StepStatus.FAILED, str(e))
                return f"Step {step.sequence} ({step.action.value}) failed: {e}"

            step.result = result
            step.transition(StepStatus.SUCCESS, self._summarise(step, result))
            self.stats["steps_executed"] += 1

        return None

    async def _run_with_retries(
        self,
        plan: Plan,
        step: Step,
        amount: Optional[Decimal]
    ) -> Tuple[Dict[str, Any], Optional[Decimal]]:
        last_error: Optional[AdapterError] = None

        for attempt in range(1, self.max_attempts + 1):
            step.attempts = attempt
            try:
                return await self._bounded(self._perform(plan, step, amount), step.network, step.action.value)
            except AdapterError as e:
                last_error = e

            logger.warning(
                f"Step {step.sequence} of plan {plan.plan_id} failed "
                f"(attempt {attempt}/{self.max_attempts}): {last_error}"
            )
            if attempt < self.max_attempts:
                self.stats["step_retries"] += 1
                await asyncio.sleep(self.retry_delay_seconds)

        raise last_error

    async def _bounded(self, call, network: str, operation: str):
        """Await an adapter call under the per-call timeout."""
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise AdapterError(
                f"timed out after {self.timeout_seconds}s", network=network, operation=operation
            )
        except AdapterError:
            raise
        except Exception as e:
            logger.error(f"Unexpected adapter error during {operation} on {network}: {e}")
            raise AdapterError(f"unexpected error: {e}", network=network, operation=operation)

    async def _perform(
        self,
        plan: Plan,
        step: Step,
        amount: Optional[Decimal]
    ) -> Tuple[Dict[str, Any], Optional[Decimal]]:
        """Delegate one step to the adapter; return its result and the amount carried forward."""
        params = step.params
        amount = Decimal(str(params["amount"])) if "amount" in params else amount

        if step.action == StepAction.CONNECT:
            head = await self.adapter.connect(step.network)
            return {"block_height": head.block_height, "gas_price_gwei": str(head.gas_price_gwei)}, amount

        if amount is None:
            raise AdapterError("no amount available for step", network=step.network, operation=step.action.value)

        if step.action == StepAction.SWAP:
            swap = await self.adapter.swap(
                step.network, params["from_token"], params["to_token"], amount, plan.mode
            )
            return {"amount_in": str(swap.amount_in), "amount_out": str(swap.amount_out)}, swap.amount_out

        if step.action == StepAction.BRIDGE:
            bridged = await self.adapter.bridge(
                step.network, params["to_network"], params["token"], amount, plan.mode
            )
            return {
                "amount_sent": str(amount),
                "amount": str(bridged.amount),
                "bridge_tx_ref": bridged.bridge_tx_ref,
            }, bridged.amount

        if step.action == StepAction.DEPOSIT:
            position = await self.adapter.deposit(step.network, params["protocol"], amount, plan.mode)
            return {"amount": str(position.amount), "position_ref": position.position_ref}, amount

        raise AdapterError(f"unknown step action {step.action}", network=step.network)

    async def _compensate(self, plan: Plan):
        """Undo succeeded steps in reverse order, recording each outcome."""
        succeeded: List[Step] = [s for s in plan.steps if s.status == StepStatus.SUCCESS]

        for step in reversed(succeeded):
            if step.action == StepAction.CONNECT:
                step.compensation_status = "not-required"
                step.compensation_detail = "Connecting has no external effect"
                continue

            try:
                detail = await self._bounded(
                    self._reverse(plan, step), step.network, f"compensate-{step.action.value}"
                )
            except AdapterError as e:
                # Left for operator review; non-idempotent actions are not retried.
                self.stats["compensations_failed"] += 1
                step.compensation_status = "failed"
                step.compensation_detail = str(e)
                logger.error(f"Compensation of step {step.sequence} in plan {plan.plan_id} failed: {e}")
                continue

            step.compensation_status = "success"
            step.compensation_detail = detail
            logger.info(f"Compensated step {step.sequence} of plan {plan.plan_id}: {detail}")

    async def _reverse(self, plan: Plan, step: Step) -> str:
        params, result = step.params, step.result or {}

        if step.action == StepAction.SWAP:
            amount = Decimal(result["amount_out"])
            await self.adapter.swap(step.network, params["to_token"], params["from_token"], amount, plan.mode)
            return f"Swapped {amount} {params['to_token']} back to {params['from_token']} on {step.network}"

        if step.action == StepAction.BRIDGE:
            amount = Decimal(result["amount"])
            await self.adapter.bridge(params["to_network"], step.network, params["token"], amount, plan.mode)
            return f"Bridged {amount} {params['token']} back from {params['to_network']} to {step.network}"

        if step.action == StepAction.DEPOSIT:
            withdrawn = await self.adapter.withdraw(
                step.network, params["protocol"], result["position_ref"], plan.mode
            )
            return f"Withdrew position {withdrawn.position_ref} ({withdrawn.amount}) from {params['protocol']}"

        return "Nothing to undo"

    @staticmethod
    def _describe(step: Step, amount: Optional[Decimal]) -> str:
        params = step.params
        if step.action == StepAction.CONNECT:
            return f"connect to {step.network}"
        if step.action == StepAction.SWAP:
            quantity = f"{params['amount']} " if "amount" in params else ""
            return f"swap {quantity}{params['from_token']} for {params['to_token']} on {step.network}"
        if step.action == StepAction.BRIDGE:
            quantity = f"{params['amount']} " if "amount" in params else ""
            return f"bridge {quantity}{params['token']} from {step.network} to {params['to_network']}"
        if step.action == StepAction.DEPOSIT:
            return f"deposit {params.get('amount', amount)} into {params.get('pool', params['protocol'])} on {step.network}"
        return step.description

    @staticmethod
    def _summarise(step: Step, result: Dict[str, Any]) -> str:
        if step.action == StepAction.CONNECT:
            return f"Connected at block {result['block_height']}, gas {result['gas_price_gwei']} gwei"
        if step.action == StepAction.SWAP:
            return f"Swapped {result['amount_in']} {step.params['from_token']} for {result['amount_out']} {step.params['to_token']}"
        if step.action == StepAction.BRIDGE:
            return f"Bridged {result['amount']} {step.params['token']} ({result['bridge_tx_ref']})"
        return f"Deposited {result['amount']} as {result['position_ref']}"
