"""Transition table for the compare flow.

``transition`` is total: any (state, event) cell not registered in the table
returns ``(state, {})`` unchanged.
"""
import logging
from typing import Any, Callable, Dict, FrozenSet, NamedTuple, Tuple

from portal_verdict.app.schemas import DetectedSite
from portal_verdict.orchestration.state import FlowContext, FlowState, reset_patch

logger = logging.getLogger(__name__)


class TransitionResult(NamedTuple):
    new_state: FlowState
    patch: Dict[str, Any]


Handler = Callable[[Any, FlowContext], TransitionResult]

S = FlowState


def _stay(state: FlowState) -> TransitionResult:
    return TransitionResult(state, {})


# Handlers


def _idle_page_context(event, ctx: FlowContext) -> TransitionResult:
    page = event.payload
    if page.site == DetectedSite.PORTAL and page.is_review_page:
        return TransitionResult(S.WAITING_FOR_PORTAL_REVIEW, {"page_context": page})
    return TransitionResult(S.IDLE, {"page_context": page})


def _portal_captured(event, ctx: FlowContext) -> TransitionResult:
    patch: Dict[str, Any] = {"portal_capture": event.payload, "portal_confirmed": False}
    if ctx.session_id is None:
        patch["session_id"] = f"cmp_{event.payload.captured_at}"
    return TransitionResult(S.PORTAL_CAPTURED, patch)


def _waiting_portal_page_context(event, ctx: FlowContext) -> TransitionResult:
    if event.payload.site != DetectedSite.PORTAL:
        return TransitionResult(S.IDLE, {"page_context": event.payload})
    return TransitionResult(S.WAITING_FOR_PORTAL_REVIEW, {"page_context": event.payload})


def _confirm_portal(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(S.WAITING_FOR_DIRECT_CAPTURE, {"portal_confirmed": True})


def _recapture_portal(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(
        S.WAITING_FOR_PORTAL_REVIEW,
        {"portal_capture": None, "portal_confirmed": False},
    )


def _direct_captured(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(S.DIRECT_CAPTURED, {"direct_capture": event.payload, "direct_confirmed": False})


def _direct_page_context(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(S.WAITING_FOR_DIRECT_CAPTURE, {"page_context": event.payload})


def _confirm_direct(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(S.COMPUTING_VERDICT, {"direct_confirmed": True})


def _recapture_direct(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(
        S.WAITING_FOR_DIRECT_CAPTURE,
        {"direct_capture": None, "direct_confirmed": False},
    )


def _verdict_computed(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(S.VERDICT_READY, {"verdict": event.payload})


def _verdict_recapture_portal(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(
        S.WAITING_FOR_PORTAL_REVIEW,
        {
            "portal_capture": None,
            "portal_confirmed": False,
            "direct_capture": None,
            "direct_confirmed": False,
            "verdict": None,
        },
    )


def _verdict_recapture_direct(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(
        S.WAITING_FOR_DIRECT_CAPTURE,
        {"direct_capture": None, "direct_confirmed": False, "verdict": None},
    )


def _error_page_context(event, ctx: FlowContext) -> TransitionResult:
    if ctx.error is not None and ctx.error.recoverable:
        return TransitionResult(S.IDLE, {"page_context": event.payload, "error": None})
    return _stay(S.ERROR)


def _error_occurred(event, ctx: FlowContext) -> TransitionResult:
    # a verdict only survives in VERDICT_READY
    return TransitionResult(S.ERROR, {"error": event.payload, "verdict": None})


def _reset(event, ctx: FlowContext) -> TransitionResult:
    return TransitionResult(S.IDLE, reset_patch())


def build_transition_table() -> Dict[Tuple[FlowState, str], Handler]:
    table: Dict[Tuple[FlowState, str], Handler] = {}

    def add(state: FlowState, event_type: str, handler: Handler) -> None:
        table[(state, event_type)] = handler

    add(S.IDLE, "PAGE_CONTEXT_UPDATED", _idle_page_context)
    add(S.IDLE, "PORTAL_CAPTURE_RECEIVED", _portal_captured)

    add(S.WAITING_FOR_PORTAL_REVIEW, "PORTAL_CAPTURE_RECEIVED", _portal_captured)
    add(S.WAITING_FOR_PORTAL_REVIEW, "PAGE_CONTEXT_UPDATED", _waiting_portal_page_context)

    add(S.PORTAL_CAPTURED, "PORTAL_CONFIRMED", _confirm_portal)
    add(S.PORTAL_CAPTURED, "RECAPTURE_PORTAL", _recapture_portal)
    add(S.PORTAL_CAPTURED, "PORTAL_CAPTURE_RECEIVED", _portal_captured)

    add(S.WAITING_FOR_DIRECT_CAPTURE, "DIRECT_CAPTURE_RECEIVED", _direct_captured)
    add(S.WAITING_FOR_DIRECT_CAPTURE, "PAGE_CONTEXT_UPDATED", _direct_page_context)
    add(S.WAITING_FOR_DIRECT_CAPTURE, "RECAPTURE_PORTAL", _recapture_portal)

    add(S.DIRECT_CAPTURED, "DIRECT_CONFIRMED", _confirm_direct)
    add(S.DIRECT_CAPTURED, "RECAPTURE_DIRECT", _recapture_direct)
    add(S.DIRECT_CAPTURED, "DIRECT_CAPTURE_RECEIVED", _direct_captured)

    add(S.COMPUTING_VERDICT, "VERDICT_COMPUTED", _verdict_computed)

    add(S.VERDICT_READY, "RECAPTURE_PORTAL", _verdict_recapture_portal)
    add(S.VERDICT_READY, "RECAPTURE_DIRECT", _verdict_recapture_direct)

    add(S.ERROR, "PAGE_CONTEXT_UPDATED", _error_page_context)

    for state in FlowState:
        add(state, "ERROR_OCCURRED", _error_occurred)
        add(state, "RESET_FLOW", _reset)

    return table


TRANSITIONS = build_transition_table()


def defined_events(state: FlowState) -> FrozenSet[str]:
    """Event types with an explicit cell for ``state``."""
    return frozenset(event_type for (s, event_type) in TRANSITIONS if s == state)


def transition(state: FlowState, event, context: FlowContext) -> TransitionResult:
    handler = TRANSITIONS.get((state, getattr(event, "type", None)))
    if handler is None:
        return _stay(state)
    try:
        return handler(event, context)
    except Exception:  # noqa: BLE001
        logger.exception("transition handler failed for %s in %s; treating as no-op", event.type, state.value)
        return _stay(state)


def active_step(state: FlowState, portal_confirmed: bool, direct_confirmed: bool) -> int:
    """Project the flow onto the three-step progress indicator."""
    if state in (S.IDLE, S.WAITING_FOR_PORTAL_REVIEW, S.PORTAL_CAPTURED):
        return 1
    if state in (S.WAITING_FOR_DIRECT_CAPTURE, S.DIRECT_CAPTURED):
        return 2
    if state in (S.COMPUTING_VERDICT, S.VERDICT_READY):
        return 3
    if portal_confirmed:
        return 3 if direct_confirmed else 2
    return 1
