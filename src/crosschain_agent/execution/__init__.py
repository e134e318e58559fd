"""Execution planning and plan execution."""
from .plan_models import Plan, PlanStatus, Step, StepAction, StepStatus
from .planner import DEFAULT_TEMPLATES, ExecutionPlanner
from .executor import PlanExecutor

__all__ = [
    "DEFAULT_TEMPLATES",
    "ExecutionPlanner",
    "Plan",
    "PlanExecutor",
    "PlanStatus",
    "Step",
    "StepAction",
    "StepStatus",
]
