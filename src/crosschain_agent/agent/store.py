"""Redis-backed persistence for context records."""
import logging
from typing import Optional, Type, TypeVar

import redis.asyncio as redis

from .contexts import CONTEXTS, ContextMemory

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=ContextMemory)


class ContextStore:
    """
    One JSON record per context under ``{prefix}:{type}:{key}``.

    Records are overwritten wholesale on every save; there is no history.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "context"):
        self.redis = redis_client
        self.prefix = prefix

    def record_key(self, context_type: str, key: str) -> str:
        return f"{self.prefix}:{context_type}:{key}"

    async def load(self, context_type: str, key: str, model: Optional[Type[M]] = None) -> Optional[M]:
        """Load a record, or None if nothing has been saved under ``key``."""
        model = model or CONTEXTS[context_type].memory_model
        raw = await self.redis.get(self.record_key(context_type, key))
        if raw is None:
            return None
        return model.model_validate_json(raw)

    async def load_or_create(self, context_type: str, key: str, model: Type[M], **defaults) -> M:
        memory = await self.load(context_type, key, model)
        if memory is None:
            memory = model(**defaults)
        return memory

    async def save(self, context_type: str, key: str, memory: ContextMemory) -> None:
        await self.redis.set(self.record_key(context_type, key), memory.model_dump_json())
        logger.debug(f"Saved {context_type} context {key}")

    async def delete(self, context_type: str, key: str) -> bool:
        return bool(await self.redis.delete(self.record_key(context_type, key)))
