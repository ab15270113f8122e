"""Stateful wrapper around the pure transition table.

Every ``send`` runs under one lock: apply the transition, stamp ``last_updated``,
await the write, then notify subscribers. Persistence problems are logged and
never block progress.
"""
import asyncio
import logging
import time
from typing import Callable, Optional, Tuple

from portal_verdict.app.settings import Settings, settings as default_settings
from portal_verdict.orchestration.graph import active_step, transition
from portal_verdict.orchestration.nodes.trace import trace_transition
from portal_verdict.orchestration.state import (
    FlowContext,
    FlowEvent,
    FlowState,
    ResetFlow,
    initial_context,
    now_ms,
)
from portal_verdict.storage.session_store import SessionStore
from portal_verdict.tools.event_bus import EventBus, InMemoryEventBus, Listener, Unsubscribe

logger = logging.getLogger(__name__)


class FlowStateMachine:
    def __init__(
        self,
        store: SessionStore,
        bus: Optional[EventBus[FlowContext]] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings or default_settings
        self.store = store
        self.bus: EventBus[FlowContext] = bus if bus is not None else InMemoryEventBus()
        self.session_key = self.settings.session_key
        self.ttl_ms = self.settings.session_ttl_ms
        self._clock = clock
        self._lock = asyncio.Lock()
        self._ctx = initial_context(clock())

    async def init(self) -> FlowContext:
        """Adopt the persisted context if it is younger than the TTL, else start fresh."""
        persisted = await self.store.get(self.session_key)
        now = self._clock()
        async with self._lock:
            if persisted is not None and now - persisted.last_updated < self.ttl_ms:
                self._ctx = persisted
                logger.info("restored session %s in %s", persisted.session_id, persisted.state.value)
            else:
                if persisted is not None:
                    logger.info("persisted session is %s ms old; starting fresh", now - persisted.last_updated)
                    await self.store.clear(self.session_key)
                self._ctx = initial_context(now)
            return self._ctx

    async def send(self, event: FlowEvent) -> FlowContext:
        _, ctx = await self.apply(event)
        return ctx

    async def apply(self, event: FlowEvent) -> Tuple[FlowState, FlowContext]:
        """Like ``send`` but also returns the state the event was applied in."""
        async with self._lock:
            start = time.perf_counter()
            prev = self._ctx
            result = transition(prev.state, event, prev)
            update = dict(result.patch)
            update["state"] = result.new_state
            update["last_updated"] = max(self._clock(), prev.last_updated)
            self._ctx = prev.model_copy(update=update)

            await self._persist(self._ctx)
            await self.bus.publish(self._ctx)
            trace_transition(event.type, prev.state, self._ctx, start)
            return prev.state, self._ctx

    async def _persist(self, ctx: FlowContext) -> None:
        try:
            await self.store.set(self.session_key, ctx)
        except Exception:  # noqa: BLE001
            logger.warning("could not persist flow context", exc_info=True)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self.bus.subscribe(listener)

    def get_context(self) -> FlowContext:
        return self._ctx

    def get_state(self) -> FlowState:
        return self._ctx.state

    def get_active_step(self) -> int:
        return active_step(self._ctx.state, self._ctx.portal_confirmed, self._ctx.direct_confirmed)

    async def reset(self) -> None:
        await self.send(ResetFlow())
