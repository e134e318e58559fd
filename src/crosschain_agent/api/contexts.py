"""HTTP routes for reading persisted agent contexts."""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from ..agent.contexts import CONTEXTS
from ..agent.formatters import render
from ..runtime import AgentRuntime
from .deps import get_runtime

router = APIRouter()


@router.get("")
def list_context_types() -> List[Dict[str, str]]:
    return [{"type": d.type, "description": d.description} for d in CONTEXTS.values()]


@router.get("/{context_type}/{key:path}")
async def get_context(
    context_type: str,
    key: str,
    runtime: AgentRuntime = Depends(get_runtime)
) -> Dict[str, Any]:
    """A context record as rendered markdown plus its raw memory."""
    if context_type not in CONTEXTS:
        raise HTTPException(status_code=404, detail=f"Unknown context type '{context_type}'")

    memory = await runtime.store.load(context_type, key)
    if memory is None:
        raise HTTPException(status_code=404, detail=f"No {context_type} context for '{key}'")

    return {
        "type": context_type,
        "key": key,
        "rendered": render(memory),
        "memory": memory.model_dump(mode="json"),
    }
