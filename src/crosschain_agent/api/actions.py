"""HTTP routes exposing the agent action registry."""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends

from ..runtime import AgentRuntime
from .deps import get_runtime

router = APIRouter()


@router.get("")
def list_actions(runtime: AgentRuntime = Depends(get_runtime)) -> List[Dict[str, Any]]:
    return runtime.actions.list_actions()


@router.post("/{name}")
async def call_action(
    name: str,
    payload: Optional[Dict[str, Any]] = Body(default=None),
    runtime: AgentRuntime = Depends(get_runtime)
) -> Dict[str, Any]:
    """Run one action. Failures are reported in the body, not as HTTP errors."""
    result = await runtime.actions.dispatch(name, payload)
    return result.to_payload()
