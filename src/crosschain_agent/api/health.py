"""Health check API endpoints for monitoring and load balancer integration."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..runtime import AgentRuntime
from .deps import get_runtime

logger = logging.getLogger(__name__)

router = APIRouter()


async def _redis_status(runtime: AgentRuntime) -> Dict[str, Any]:
    try:
        await runtime.store.redis.ping()
        return {"status": "healthy", "message": "Connected"}
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
        return {"status": "unhealthy", "message": str(e)}


@router.get("/health")
def basic_health_check() -> Dict[str, Any]:
    """Basic health check that returns system status."""
    return {
        "status": "healthy",
        "service": "crosschain-agent",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/health/live")
def liveness_probe() -> Dict[str, Any]:
    """Kubernetes liveness probe."""
    return {
        "status": "alive",
        "message": "Application is responsive"
    }


@router.get("/health/ready")
async def readiness_probe(request: Request):
    """Ready once the runtime is built and Redis answers."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        return JSONResponse(status_code=503, content={"status": "not_ready", "message": "Runtime not initialized"})

    redis_status = await _redis_status(runtime)
    if redis_status["status"] != "healthy":
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "checks": {"redis": redis_status}}
        )

    return {
        "status": "ready",
        "checks": {"redis": redis_status}
    }


@router.get("/health/detailed")
async def detailed_health_check(runtime: AgentRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    """Detailed health check with per-component status."""
    redis_status = await _redis_status(runtime)
    chains = await runtime.provider.get_all_chain_health()

    checks = {"redis": redis_status}
    for network, health in chains.items():
        checks[f"chain:{network}"] = health

    healthy = sum(1 for check in checks.values() if check["status"] == "healthy")
    unhealthy = len(checks) - healthy

    return {
        "status": "healthy" if unhealthy == 0 else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
        "summary": {
            "total": len(checks),
            "healthy": healthy,
            "unhealthy": unhealthy
        },
        "engine": {
            "cache": dict(runtime.cache.stats),
            "scanner": dict(runtime.scanner.stats),
            "executor": runtime.executor.get_stats(),
            "actions": dict(runtime.actions.stats),
            "adapter": {op: {**s, "last_call": s["last_call"].isoformat() if s["last_call"] else None}
                        for op, s in runtime.adapter.get_call_stats().items()},
        }
    }
