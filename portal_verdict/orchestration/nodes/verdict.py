import logging
from typing import Union

from portal_verdict.app.errors import InvalidPriceError
from portal_verdict.app.schemas import CurrencyMismatch, FlowError
from portal_verdict.app.settings import Settings
from portal_verdict.compute.earn_rates import EarnRates
from portal_verdict.compute.matcher import match_snapshots
from portal_verdict.compute.verdict import calculate_verdict
from portal_verdict.orchestration.state import ErrorOccurred, FlowContext, VerdictComputed, now_ms

logger = logging.getLogger(__name__)


def verdict_node(ctx: FlowContext, settings: Settings) -> Union[VerdictComputed, ErrorOccurred]:
    """Run matcher and calculator over the confirmed captures and wrap the outcome as an event."""
    portal, direct = ctx.portal_capture, ctx.direct_capture
    if portal is None or direct is None or not (ctx.portal_confirmed and ctx.direct_confirmed):
        return ErrorOccurred(payload=FlowError(message="Both prices must be captured and confirmed first."))

    match = match_snapshots(portal, direct)
    try:
        result = calculate_verdict(
            portal,
            direct,
            match,
            miles_valuation_cents=settings.miles_valuation_cents,
            earn_rates=EarnRates.from_settings(settings),
            tie_epsilon=settings.tie_epsilon,
            session_id=ctx.session_id,
            now=now_ms(),
        )
    except InvalidPriceError as exc:
        logger.warning("verdict rejected: %s", exc)
        return ErrorOccurred(payload=FlowError(message=str(exc)))

    if isinstance(result, CurrencyMismatch):
        return ErrorOccurred(payload=FlowError(message=result.message, recoverable=result.recoverable))
    return VerdictComputed(payload=result)
