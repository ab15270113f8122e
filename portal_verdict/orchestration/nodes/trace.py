import logging
import time

from portal_verdict.orchestration.state import FlowContext, FlowState

logger = logging.getLogger(__name__)


def trace_transition(event_type: str, from_state: FlowState, ctx: FlowContext, start: float) -> int:
    latency = int((time.perf_counter() - start) * 1000)
    logger.info(
        "event=%s from=%s to=%s latency_ms=%s session=%s",
        event_type,
        from_state.value,
        ctx.state.value,
        latency,
        ctx.session_id,
    )
    return latency
