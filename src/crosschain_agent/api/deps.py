"""Shared FastAPI dependencies."""
from fastapi import HTTPException, Request

from ..runtime import AgentRuntime


def get_runtime(request: Request) -> AgentRuntime:
    """The runtime built during application startup."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Runtime not initialized")
    return runtime
