import logging
import math
from typing import Optional

from pydantic import ValidationError

from portal_verdict.app.errors import PersistenceError
from portal_verdict.orchestration.state import FlowContext
from portal_verdict.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class SessionStore:
    """Persists one FlowContext per key on top of a KeyValueStore.

    Never raises: read failures behave like a miss and write failures are
    logged and dropped, so the in-memory flow keeps going.
    """

    def __init__(self, kv: KeyValueStore, ttl_ms: int = 3_600_000):
        self.kv = kv
        self.ttl_ms = ttl_ms

    async def get(self, key: str) -> Optional[FlowContext]:
        try:
            raw = await self.kv.get(key)
        except PersistenceError as exc:
            logger.warning("session read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return FlowContext.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("discarding unreadable session %s: %s", key, exc.error_count())
            return None

    async def set(self, key: str, ctx: FlowContext) -> None:
        try:
            await self.kv.set(key, ctx.model_dump_json(), ttl_seconds=math.ceil(self.ttl_ms / 1000))
        except PersistenceError as exc:
            logger.warning("session write failed for %s: %s", key, exc)

    async def clear(self, key: str) -> None:
        try:
            await self.kv.delete(key)
        except PersistenceError as exc:
            logger.warning("session clear failed for %s: %s", key, exc)
