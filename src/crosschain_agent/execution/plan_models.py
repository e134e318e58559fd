"""
Plan and Step models.

A Plan is created by the ExecutionPlanner from exactly one Opportunity and is
mutated only by the PlanExecutor as its steps complete.
"""
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..adapters.base import ExecutionMode
from ..errors import InvalidTransition
from ..opportunities.models import Opportunity


class PlanStatus(str, Enum):
    """Overall plan status."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled-back"


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepAction(str, Enum):
    """Adapter operation a step performs."""
    CONNECT = "connect"
    SWAP = "swap"
    BRIDGE = "bridge"
    DEPOSIT = "deposit"


_PLAN_TRANSITIONS = {
    PlanStatus.PENDING: {PlanStatus.IN_PROGRESS},
    PlanStatus.IN_PROGRESS: {PlanStatus.SUCCEEDED, PlanStatus.FAILED},
    PlanStatus.FAILED: {PlanStatus.ROLLED_BACK},
    PlanStatus.SUCCEEDED: set(),
    PlanStatus.ROLLED_BACK: set(),
}

_STEP_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED},
    StepStatus.SUCCESS: set(),
    StepStatus.FAILED: set(),
    StepStatus.SKIPPED: set(),
}


@dataclass
class Step:
    """One atomic action inside a plan."""
    sequence: int
    description: str
    network: str
    action: StepAction
    params: Dict[str, Any] = field(default_factory=dict)
    status: StepStatus = StepStatus.PENDING
    detail: str = ""
    result: Optional[Dict[str, Any]] = None
    attempts: int = 0

    # Compensation outcome, set only when a live plan is rolled back
    compensation_status: Optional[str] = None
    compensation_detail: Optional[str] = None

    def transition(self, status: StepStatus, detail: str = ""):
        if status not in _STEP_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Step {self.sequence} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        if detail:
            self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "description": self.description,
            "network": self.network,
            "action": self.action.value,
            "status": self.status.value,
            "detail": self.detail,
            "params": {k: str(v) if not isinstance(v, (int, bool)) else v for k, v in self.params.items()},
            "result": self.result,
            "attempts": self.attempts,
            "compensation": {
                "status": self.compensation_status,
                "detail": self.compensation_detail,
            } if self.compensation_status else None,
        }


@dataclass
class Plan:
    """An ordered, executable expansion of one opportunity."""
    opportunity: Opportunity
    steps: List[Step]
    mode: ExecutionMode = ExecutionMode.DRY_RUN
    amount: Optional[Any] = None
    plan_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: PlanStatus = PlanStatus.PENDING
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def transition(self, status: PlanStatus):
        """
        Move the plan to ``status``.

        Raises:
            InvalidTransition: If the current status cannot reach ``status``,
                or when rolling back a dry-run plan
        """
        if status not in _PLAN_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Plan {self.plan_id} cannot move from {self.status.value} to {status.value}"
            )
        if status == PlanStatus.ROLLED_BACK and self.mode != ExecutionMode.LIVE:
            raise InvalidTransition(f"Plan {self.plan_id} is not live and cannot be rolled back")

        self.status = status
        if status == PlanStatus.IN_PROGRESS:
            self.started_at = time.time()
        else:
            self.finished_at = time.time()

    @property
    def is_finished(self) -> bool:
        return self.status in (PlanStatus.SUCCEEDED, PlanStatus.FAILED, PlanStatus.ROLLED_BACK)

    @property
    def failed_step(self) -> Optional[Step]:
        return next((s for s in self.steps if s.status == StepStatus.FAILED), None)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe dict for action results and persisted contexts."""
        return {
            "planId": self.plan_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "amount": str(self.amount) if self.amount is not None else None,
            "error": self.error,
            "opportunity": self.opportunity.to_payload(),
            "steps": [step.to_dict() for step in self.steps],
            "createdAt": self.created_at,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }
