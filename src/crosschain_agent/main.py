"""Main FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from .api.actions import router as actions_router
from .api.contexts import router as contexts_router
from .api.health import router as health_router
from .cache import close_redis, get_redis
from .config.settings import settings
from .runtime import AgentRuntime, build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the runtime on startup and release it on shutdown."""
    owns_runtime = getattr(app.state, "runtime", None) is None

    if owns_runtime:
        logger.info("🚀 Starting cross-chain agent service...")
        redis_client = await get_redis()
        runtime = build_runtime(settings, redis_client)
        await runtime.provider.initialize()
        app.state.runtime = runtime
        logger.info("✅ System startup complete!")

    yield

    if owns_runtime:
        logger.info("🛑 Shutting down cross-chain agent service...")
        await app.state.runtime.close()
        await close_redis()
        app.state.runtime = None
        logger.info("✅ System shutdown complete!")


def create_app(runtime: Optional[AgentRuntime] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        runtime: Prebuilt runtime; when omitted one is built from settings at startup
    """
    app = FastAPI(
        title="Cross-Chain Agent API",
        description="Blockchain contexts and actions with cross-chain opportunity scanning and execution planning",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    app.include_router(health_router, tags=["health"])
    app.include_router(actions_router, prefix="/actions", tags=["actions"])
    app.include_router(contexts_router, prefix="/contexts", tags=["contexts"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    uvicorn.run(
        "crosschain_agent.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug",
    )
