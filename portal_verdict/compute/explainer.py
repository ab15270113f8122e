"""Deterministic, template-based explanations of a verdict and of the flow state."""
from typing import List, Optional

from portal_verdict.app.schemas import (
    AssistantMessage,
    ComparisonResult,
    ConfidenceLevel,
    Explanation,
    FlightFingerprint,
    HotelFingerprint,
    QuickReply,
    RentalFingerprint,
    Winner,
)
from portal_verdict.data.currency import format_price
from portal_verdict.orchestration.state import FlowContext, FlowState
from portal_verdict.prompts.flow_prompt import (
    CLOSE_PRICES_CAVEAT,
    COMPUTING_MESSAGE,
    DIRECT_CAPTURED_MESSAGE,
    DIRECT_WINS_HEADLINE,
    DIRECT_WINS_TIP,
    GENERIC_ERROR_MESSAGE,
    HIGH_PREMIUM_CAVEAT,
    IDLE_MESSAGE,
    LOW_CONFIDENCE_CAVEAT,
    PORTAL_CAPTURED_MESSAGE,
    PORTAL_WINS_HEADLINE,
    PORTAL_WINS_TIP,
    TIE_HEADLINE,
    TIE_TIP,
    VERDICT_READY_MESSAGE,
    WAITING_FOR_DIRECT_MESSAGE,
    WAITING_FOR_PORTAL_MESSAGE,
)

CLOSE_PRICE_BAND = 10.0
HIGH_PREMIUM_RATIO = 1.3


def summarize_itinerary(itinerary) -> Optional[str]:
    """One-line human summary of a fingerprint, or None when it has nothing to say."""
    if isinstance(itinerary, FlightFingerprint):
        parts: List[str] = []
        if itinerary.origin and itinerary.destination:
            parts.append(f"{itinerary.origin} → {itinerary.destination}")
        if itinerary.depart_date:
            dates = itinerary.depart_date.isoformat()
            if itinerary.return_date:
                dates += f" to {itinerary.return_date.isoformat()}"
            parts.append(dates)
        if itinerary.cabin:
            parts.append(itinerary.cabin)
        return ", ".join(parts) or None
    if isinstance(itinerary, HotelFingerprint):
        parts = [p for p in (itinerary.hotel_name, itinerary.city) if p]
        if itinerary.nights:
            parts.append(f"{itinerary.nights} night{'s' if itinerary.nights != 1 else ''}")
        elif itinerary.checkin_date and itinerary.checkout_date:
            parts.append(f"{itinerary.checkin_date.isoformat()} to {itinerary.checkout_date.isoformat()}")
        return ", ".join(parts) or None
    if isinstance(itinerary, RentalFingerprint):
        parts = [p for p in (itinerary.company, itinerary.car_class, itinerary.pickup_location) if p]
        if itinerary.pickup_date and itinerary.dropoff_date:
            parts.append(f"{itinerary.pickup_date.isoformat()} to {itinerary.dropoff_date.isoformat()}")
        return ", ".join(parts) or None
    return None


def build_explanation(verdict: ComparisonResult) -> Explanation:
    def money(amount: float) -> str:
        return format_price(amount, verdict.currency)

    extra_miles = verdict.portal_points_earned - verdict.direct_points_earned
    portal_line = f"Portal: {money(verdict.portal_price)} → {verdict.portal_points_earned:,} miles"
    direct_line = f"Direct: {money(verdict.direct_price)} → {verdict.direct_points_earned:,} miles"

    if verdict.winner == Winner.PORTAL:
        headline = PORTAL_WINS_HEADLINE.format(amount=money(verdict.net_difference))
        if verdict.delta > 0:
            trade = f"the {money(verdict.delta)} premium"
        else:
            trade = "the lower direct price" if verdict.delta < 0 else "an equal price"
        body = [
            portal_line,
            direct_line,
            f"The extra {extra_miles:,} miles from the portal are worth more than {trade}.",
        ]
        pro_tip = PORTAL_WINS_TIP.format(amount=money(max(verdict.break_even_premium, 0)))
    elif verdict.winner == Winner.DIRECT:
        headline = DIRECT_WINS_HEADLINE.format(amount=money(verdict.net_difference))
        body = [
            direct_line,
            portal_line,
            f"The {money(verdict.delta)} portal premium exceeds the value of {extra_miles:,} extra miles "
            f"({money(verdict.break_even_premium)}).",
        ]
        pro_tip = DIRECT_WINS_TIP
    else:
        headline = TIE_HEADLINE
        body = [
            portal_line,
            direct_line,
            f"Net difference is {format_price(verdict.net_difference, verdict.currency, 2)}, not material.",
        ]
        pro_tip = TIE_TIP

    caveats: List[str] = []
    if abs(verdict.delta) < CLOSE_PRICE_BAND:
        caveats.append(CLOSE_PRICES_CAVEAT)
    if verdict.portal_price > verdict.direct_price * HIGH_PREMIUM_RATIO:
        caveats.append(HIGH_PREMIUM_CAVEAT)
    if verdict.confidence == ConfidenceLevel.LOW:
        caveats.append(LOW_CONFIDENCE_CAVEAT)

    return Explanation(headline=headline, body=body, pro_tip=pro_tip, caveats=caveats)


def system_message_for_state(ctx: FlowContext) -> AssistantMessage:
    """Assistant chat line and quick replies shown for the current flow state."""
    state = ctx.state
    if state == FlowState.IDLE:
        return AssistantMessage(state=state.value, content=IDLE_MESSAGE)
    if state == FlowState.WAITING_FOR_PORTAL_REVIEW:
        return AssistantMessage(state=state.value, content=WAITING_FOR_PORTAL_MESSAGE, status="capturing")
    if state == FlowState.PORTAL_CAPTURED:
        summary = None
        if ctx.portal_capture is not None and ctx.portal_capture.itinerary is not None:
            summary = summarize_itinerary(ctx.portal_capture.itinerary)
        return AssistantMessage(
            state=state.value,
            content=PORTAL_CAPTURED_MESSAGE.format(summary=f" ({summary})" if summary else ""),
            quick_replies=[
                QuickReply(id="confirm-portal", label="Confirm", action="CONFIRM_PORTAL"),
                QuickReply(id="recapture-portal", label="Recapture", action="REQUEST_RECAPTURE:portal"),
            ],
        )
    if state == FlowState.WAITING_FOR_DIRECT_CAPTURE:
        return AssistantMessage(state=state.value, content=WAITING_FOR_DIRECT_MESSAGE)
    if state == FlowState.DIRECT_CAPTURED:
        price = "unknown"
        if ctx.direct_capture is not None:
            price = format_price(ctx.direct_capture.total_price.amount, ctx.direct_capture.total_price.currency, 2)
        return AssistantMessage(
            state=state.value,
            content=DIRECT_CAPTURED_MESSAGE.format(price=price),
            quick_replies=[
                QuickReply(id="confirm-direct", label="Looks right", action="CONFIRM_DIRECT"),
                QuickReply(id="not-right", label="Not right", action="REQUEST_RECAPTURE:direct"),
            ],
        )
    if state == FlowState.COMPUTING_VERDICT:
        return AssistantMessage(state=state.value, content=COMPUTING_MESSAGE, status="analyzing")
    if state == FlowState.VERDICT_READY:
        content = VERDICT_READY_MESSAGE
        if ctx.verdict is not None:
            content = f"{content} {build_explanation(ctx.verdict).headline}."
        return AssistantMessage(
            state=state.value,
            content=content,
            quick_replies=[QuickReply(id="new-comparison", label="New Comparison", action="RESET_FLOW")],
        )

    error = ctx.error
    recoverable = error is None or error.recoverable
    return AssistantMessage(
        state=state.value,
        content=error.message if error is not None else GENERIC_ERROR_MESSAGE,
        status="error",
        quick_replies=[
            QuickReply(id="retry", label="Retry", action="PAGE_CONTEXT")
            if recoverable
            else QuickReply(id="reset", label="Start Over", action="RESET_FLOW")
        ],
    )
