"""Unit tests for the plan executor."""
import asyncio
from decimal import Decimal

import pytest

from crosschain_agent.adapters.base import ExecutionMode
from crosschain_agent.errors import InvalidTransition
from crosschain_agent.execution import ExecutionPlanner, PlanExecutor, PlanStatus, Step, StepAction, StepStatus
from crosschain_agent.opportunities import Opportunity, OpportunityKind

from fakes import FakeNetworkAdapter


def make_opportunity(kind: str, networks, **metadata) -> Opportunity:
    return Opportunity(
        kind=OpportunityKind(kind),
        networks=networks,
        expected_return_percent=Decimal("2"),
        metadata=metadata,
    )


@pytest.fixture
def adapter():
    return FakeNetworkAdapter()


@pytest.fixture
def executor(adapter):
    return PlanExecutor(adapter, timeout_seconds=0.5, max_attempts=2, retry_delay_seconds=0)


@pytest.fixture
def planner():
    return ExecutionPlanner(quote_token="USDC", default_amount=Decimal("1000"))


@pytest.fixture
def arbitrage(planner):
    def build(mode=ExecutionMode.LIVE):
        return planner.plan(make_opportunity("arbitrage", ["ethereum", "arbitrum"], token="ETH"), mode)
    return build


class TestDryRun:
    """Dry-run plans never touch the adapter."""

    @pytest.mark.asyncio
    async def test_bridge_example(self, executor, adapter, planner):
        plan = planner.plan(make_opportunity("bridge", ["polygon", "base"], token="USDC"), ExecutionMode.DRY_RUN)

        result = await executor.execute(plan)

        assert result.status == PlanStatus.SUCCEEDED
        assert len(result.steps) == 2
        assert all(s.status == StepStatus.SUCCESS for s in result.steps)
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_every_kind_succeeds_without_adapter_calls(self, executor, adapter, planner):
        opportunities = [
            make_opportunity("arbitrage", ["ethereum", "arbitrum"], token="ETH"),
            make_opportunity("yield", ["base"], protocol="aave-v3"),
            make_opportunity("bridge", ["ethereum", "base"]),
        ]

        for opportunity in opportunities:
            plan = await executor.execute(planner.plan(opportunity, ExecutionMode.DRY_RUN))
            assert plan.status == PlanStatus.SUCCEEDED
            assert all(s.detail.startswith("Dry run: would ") for s in plan.steps)

        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_dry_run_ignores_failing_adapter(self, executor, adapter, arbitrage):
        adapter.fail("connect")
        adapter.fail("swap")

        plan = await executor.execute(arbitrage(ExecutionMode.DRY_RUN))

        assert plan.status == PlanStatus.SUCCEEDED
        assert adapter.calls == []


class TestLiveExecution:
    """Live plans delegate to the adapter and roll back on failure."""

    @pytest.mark.asyncio
    async def test_success_chains_amounts(self, executor, adapter, arbitrage):
        adapter.swap_rates[("USDC", "ETH")] = Decimal("0.0005")
        adapter.swap_rates[("ETH", "USDC")] = Decimal("1850")

        plan = await executor.execute(arbitrage())

        assert plan.status == PlanStatus.SUCCEEDED
        assert adapter.operations() == ["connect", "swap", "bridge", "swap"]
        bridge_call, sell_call = adapter.calls[2], adapter.calls[3]
        assert bridge_call[4] == Decimal("0.5")
        assert sell_call[4] == Decimal("0.5")
        assert Decimal(plan.steps[3].result["amount_out"]) == Decimal("925")
        assert plan.error is None

    @pytest.mark.asyncio
    async def test_failure_compensates_in_reverse_order(self, executor, adapter, arbitrage):
        adapter.swap_rates[("USDC", "ETH")] = Decimal("0.0005")
        adapter.fail("swap", after=1)

        plan = await executor.execute(arbitrage())

        assert plan.status == PlanStatus.ROLLED_BACK
        statuses = [s.status for s in plan.steps]
        assert statuses == [StepStatus.SUCCESS, StepStatus.SUCCESS, StepStatus.SUCCESS, StepStatus.FAILED]

        # step 4 fails twice (retry), then bridge and swap are undone newest first
        assert adapter.operations() == ["connect", "swap", "bridge", "swap", "swap", "bridge", "swap"]
        undo_bridge, undo_swap = adapter.calls[5], adapter.calls[6]
        assert undo_bridge[1:4] == ("arbitrum", "ethereum", "ETH")
        assert undo_swap[1:5] == ("ethereum", "ETH", "USDC", Decimal("0.5"))
        assert plan.steps[0].compensation_status == "not-required"
        assert plan.steps[2].compensation_status == "success"

    @pytest.mark.asyncio
    async def test_later_steps_never_execute(self, executor, adapter, arbitrage):
        adapter.fail("bridge", times=2)

        plan = await executor.execute(arbitrage())

        assert plan.status == PlanStatus.ROLLED_BACK
        assert [s.status for s in plan.steps] == [
            StepStatus.SUCCESS, StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED,
        ]
        # connect, buy swap, two bridge attempts, then only the buy swap is undone
        assert adapter.operations() == ["connect", "swap", "bridge", "bridge", "swap"]
        assert adapter.calls[-1][2:4] == ("ETH", "USDC")
        assert "bridge rejected" in plan.error

    @pytest.mark.asyncio
    async def test_retry_recovers_from_single_failure(self, executor, adapter, arbitrage):
        adapter.fail("bridge", times=1)

        plan = await executor.execute(arbitrage())

        assert plan.status == PlanStatus.SUCCEEDED
        assert plan.steps[2].attempts == 2
        assert executor.stats["step_retries"] == 1

    @pytest.mark.asyncio
    async def test_compensation_failure_is_recorded_not_raised(self, executor, adapter, planner):
        plan = planner.plan(make_opportunity("arbitrage", ["ethereum", "arbitrum"], token="ETH"), ExecutionMode.LIVE)
        adapter.fail("bridge", times=2)
        adapter.fail("swap", after=1)

        result = await executor.execute(plan)

        assert result.status == PlanStatus.ROLLED_BACK
        assert result.steps[1].compensation_status == "failed"
        assert "swap rejected" in result.steps[1].compensation_detail
        assert executor.stats["compensations_failed"] == 1

    @pytest.mark.asyncio
    async def test_deposit_is_compensated_by_withdraw(self, adapter, planner):
        executor = PlanExecutor(adapter, timeout_seconds=0.5, max_attempts=1, retry_delay_seconds=0)
        plan = planner.plan(make_opportunity("yield", ["base"], protocol="aave-v3"), ExecutionMode.LIVE)
        # a trailing step that fails once the deposit has gone through
        plan.steps.append(Step(3, "Reconnect to base", "base", StepAction.CONNECT))
        adapter.hooks["deposit"] = lambda: adapter.fail("connect")

        rolled = await executor.execute(plan)

        assert rolled.status == PlanStatus.ROLLED_BACK
        assert adapter.operations() == ["connect", "deposit", "connect", "withdraw"]
        assert adapter.calls[-1][3] == rolled.steps[1].result["position_ref"]
        assert rolled.steps[1].compensation_status == "success"

    @pytest.mark.asyncio
    async def test_timeout_is_an_adapter_error(self, adapter, arbitrage):
        executor = PlanExecutor(adapter, timeout_seconds=0.05, max_attempts=1, retry_delay_seconds=0)
        adapter.delays["bridge"] = 1

        plan = await executor.execute(arbitrage())

        assert plan.status == PlanStatus.ROLLED_BACK
        assert "timed out" in plan.steps[2].detail

    @pytest.mark.asyncio
    async def test_plan_cannot_run_twice(self, executor, arbitrage):
        plan = await executor.execute(arbitrage(ExecutionMode.DRY_RUN))

        with pytest.raises(InvalidTransition):
            await executor.execute(plan)


class TestCancellation:
    """Cancellation is checked before each step."""

    @pytest.mark.asyncio
    async def test_cancel_between_steps_rolls_back(self, executor, adapter, arbitrage):
        plan = arbitrage()
        adapter.hooks["swap"] = lambda: executor.cancel(plan.plan_id)

        result = await executor.execute(plan)

        assert result.status == PlanStatus.ROLLED_BACK
        assert result.steps[2].status == StepStatus.FAILED
        assert result.steps[2].detail == "Cancelled before step 3"
        assert result.steps[3].status == StepStatus.SKIPPED
        assert adapter.operations() == ["connect", "swap", "swap"]

    @pytest.mark.asyncio
    async def test_cancel_unknown_plan(self, executor):
        assert executor.cancel("missing") is False

    @pytest.mark.asyncio
    async def test_active_plan_is_tracked(self, executor, adapter, arbitrage):
        plan = arbitrage()
        adapter.delays["connect"] = 0.1

        task = asyncio.create_task(executor.execute(plan))
        await asyncio.sleep(0.02)

        status = executor.get_plan_status(plan.plan_id)
        assert status["status"] == "in-progress"
        assert executor.get_stats()["active_plans"] == 1

        await task
        assert executor.get_plan_status(plan.plan_id) is None

    @pytest.mark.asyncio
    async def test_independent_plans_run_concurrently(self, executor, adapter, planner):
        adapter.delays["connect"] = 0.1
        plans = [
            planner.plan(make_opportunity("bridge", ["ethereum", "base"]), ExecutionMode.LIVE)
            for _ in range(3)
        ]

        results = await asyncio.gather(*(executor.execute(p) for p in plans))

        assert all(p.status == PlanStatus.SUCCEEDED for p in results)
        assert executor.stats["plans_succeeded"] == 3
