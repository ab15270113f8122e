import itertools

import pytest

from conftest import T0, direct_snapshot, portal_snapshot
from portal_verdict.app.schemas import DetectedSite, FlowError, PageContext
from portal_verdict.compute.verdict import calculate_verdict
from portal_verdict.orchestration.graph import active_step, defined_events, transition
from portal_verdict.orchestration.state import (
    EVENT_TYPES,
    DirectCaptureReceived,
    DirectConfirmed,
    ErrorOccurred,
    FlowContext,
    FlowState,
    PageContextUpdated,
    PortalCaptureReceived,
    PortalConfirmed,
    RecaptureDirect,
    RecapturePortal,
    ResetFlow,
    VerdictComputed,
    initial_context,
)

REVIEW_PAGE = PageContext(
    site=DetectedSite.PORTAL,
    url="https://travel.capitalone.com/flights/review",
    is_review_page=True,
    has_itinerary=True,
)
OTHER_PAGE = PageContext(site=DetectedSite.UNKNOWN, url="https://example.com")


def sample_events():
    portal = portal_snapshot()
    direct = direct_snapshot()
    return {
        "PAGE_CONTEXT_UPDATED": PageContextUpdated(payload=REVIEW_PAGE),
        "PORTAL_CAPTURE_RECEIVED": PortalCaptureReceived(payload=portal),
        "PORTAL_CONFIRMED": PortalConfirmed(),
        "DIRECT_CAPTURE_RECEIVED": DirectCaptureReceived(payload=direct),
        "DIRECT_CONFIRMED": DirectConfirmed(),
        "RECAPTURE_PORTAL": RecapturePortal(),
        "RECAPTURE_DIRECT": RecaptureDirect(),
        "VERDICT_COMPUTED": VerdictComputed(payload=calculate_verdict(portal, direct, now=T0)),
        "RESET_FLOW": ResetFlow(),
        "ERROR_OCCURRED": ErrorOccurred(payload=FlowError(message="boom")),
    }


def busy_context(state: FlowState) -> FlowContext:
    return FlowContext(
        state=state,
        page_context=REVIEW_PAGE,
        portal_capture=portal_snapshot(),
        portal_confirmed=True,
        direct_capture=direct_snapshot(),
        direct_confirmed=True,
        session_id="cmp_1",
        last_updated=T0,
    )


def test_sample_events_cover_taxonomy():
    assert set(sample_events()) == set(EVENT_TYPES)


@pytest.mark.parametrize("state", list(FlowState))
def test_undefined_cells_are_no_ops(state):
    ctx = busy_context(state)
    events = sample_events()
    undefined = set(EVENT_TYPES) - defined_events(state)
    assert undefined, "every state ignores at least one event"
    for event_type in undefined:
        new_state, patch = transition(state, events[event_type], ctx)
        assert new_state == state
        assert patch == {}


@pytest.mark.parametrize("state", list(FlowState))
def test_reset_returns_exact_initial_context(state):
    ctx = busy_context(state)
    new_state, patch = transition(state, ResetFlow(), ctx)
    merged = ctx.model_copy(update={**patch, "state": new_state, "last_updated": 0})
    assert merged == initial_context(0)


@pytest.mark.parametrize("state", list(FlowState))
def test_error_reachable_from_every_state_and_clears_verdict(state):
    new_state, patch = transition(state, ErrorOccurred(payload=FlowError(message="x")), busy_context(state))
    assert new_state == FlowState.ERROR
    assert patch["error"].message == "x"
    assert patch["verdict"] is None


def test_active_step_always_in_range():
    for state, portal_ok, direct_ok in itertools.product(FlowState, (True, False), (True, False)):
        assert active_step(state, portal_ok, direct_ok) in (1, 2, 3)


@pytest.mark.parametrize(
    "state,portal_ok,direct_ok,expected",
    [
        (FlowState.IDLE, False, False, 1),
        (FlowState.PORTAL_CAPTURED, False, False, 1),
        (FlowState.WAITING_FOR_DIRECT_CAPTURE, True, False, 2),
        (FlowState.DIRECT_CAPTURED, True, False, 2),
        (FlowState.VERDICT_READY, True, True, 3),
        (FlowState.ERROR, False, False, 1),
        (FlowState.ERROR, True, False, 2),
        (FlowState.ERROR, True, True, 3),
    ],
)
def test_active_step_projection(state, portal_ok, direct_ok, expected):
    assert active_step(state, portal_ok, direct_ok) == expected


def test_review_page_starts_portal_wait():
    new_state, patch = transition(FlowState.IDLE, PageContextUpdated(payload=REVIEW_PAGE), initial_context(T0))
    assert new_state == FlowState.WAITING_FOR_PORTAL_REVIEW
    assert patch == {"page_context": REVIEW_PAGE}


def test_non_review_page_stays_idle_but_stores_context():
    new_state, patch = transition(FlowState.IDLE, PageContextUpdated(payload=OTHER_PAGE), initial_context(T0))
    assert new_state == FlowState.IDLE
    assert patch["page_context"] == OTHER_PAGE


def test_leaving_portal_while_waiting_returns_to_idle():
    ctx = initial_context(T0).model_copy(update={"state": FlowState.WAITING_FOR_PORTAL_REVIEW})
    new_state, _ = transition(ctx.state, PageContextUpdated(payload=OTHER_PAGE), ctx)
    assert new_state == FlowState.IDLE


def test_portal_capture_assigns_session_id_once():
    snapshot = portal_snapshot(captured_at=42)
    new_state, patch = transition(FlowState.IDLE, PortalCaptureReceived(payload=snapshot), initial_context(T0))
    assert new_state == FlowState.PORTAL_CAPTURED
    assert patch["session_id"] == "cmp_42"
    assert patch["portal_confirmed"] is False

    ctx = initial_context(T0).model_copy(update={**patch, "state": new_state})
    _, second = transition(ctx.state, PortalCaptureReceived(payload=portal_snapshot(captured_at=99)), ctx)
    assert "session_id" not in second


def test_happy_path_sequence():
    ctx = initial_context(T0)
    portal, direct = portal_snapshot(), direct_snapshot()
    steps = [
        (PageContextUpdated(payload=REVIEW_PAGE), FlowState.WAITING_FOR_PORTAL_REVIEW),
        (PortalCaptureReceived(payload=portal), FlowState.PORTAL_CAPTURED),
        (PortalConfirmed(), FlowState.WAITING_FOR_DIRECT_CAPTURE),
        (DirectCaptureReceived(payload=direct), FlowState.DIRECT_CAPTURED),
        (DirectConfirmed(), FlowState.COMPUTING_VERDICT),
        (VerdictComputed(payload=calculate_verdict(portal, direct, now=T0)), FlowState.VERDICT_READY),
    ]
    for event, expected in steps:
        new_state, patch = transition(ctx.state, event, ctx)
        ctx = ctx.model_copy(update={**patch, "state": new_state})
        assert ctx.state == expected
    assert ctx.portal_confirmed and ctx.direct_confirmed
    assert ctx.verdict is not None


def test_recapture_portal_from_verdict_clears_everything():
    ctx = busy_context(FlowState.VERDICT_READY)
    new_state, patch = transition(ctx.state, RecapturePortal(), ctx)
    assert new_state == FlowState.WAITING_FOR_PORTAL_REVIEW
    assert patch["portal_capture"] is None and patch["direct_capture"] is None
    assert patch["verdict"] is None


def test_recapture_direct_from_verdict_keeps_portal():
    ctx = busy_context(FlowState.VERDICT_READY)
    new_state, patch = transition(ctx.state, RecaptureDirect(), ctx)
    assert new_state == FlowState.WAITING_FOR_DIRECT_CAPTURE
    assert "portal_capture" not in patch
    assert patch["direct_confirmed"] is False


def test_recoverable_error_clears_on_page_context():
    ctx = initial_context(T0).model_copy(
        update={"state": FlowState.ERROR, "error": FlowError(message="x", recoverable=True)}
    )
    new_state, patch = transition(ctx.state, PageContextUpdated(payload=OTHER_PAGE), ctx)
    assert new_state == FlowState.IDLE
    assert patch["error"] is None


def test_unrecoverable_error_needs_reset():
    ctx = initial_context(T0).model_copy(
        update={"state": FlowState.ERROR, "error": FlowError(message="x", recoverable=False)}
    )
    assert transition(ctx.state, PageContextUpdated(payload=OTHER_PAGE), ctx) == (FlowState.ERROR, {})
