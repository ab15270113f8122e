"""Portal vs direct verdict: break-even premium under a miles valuation.

Booking through the portal earns more miles per dollar than booking direct.
The break-even premium is the extra the portal may charge before those extra
miles stop paying for it:

    break_even_premium = (portal_points - direct_points) * valuation

The portal wins while ``portal_price - direct_price`` stays below that premium.
"""
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Union

from portal_verdict.app.errors import InvalidPriceError
from portal_verdict.app.schemas import (
    BookingType,
    ComparisonResult,
    CurrencyMismatch,
    DirectSnapshot,
    FlightFingerprint,
    HotelFingerprint,
    MatchResult,
    PortalSnapshot,
    PriceLabel,
    RentalFingerprint,
    Winner,
    min_confidence,
)
from portal_verdict.compute.earn_rates import EarnRates
from portal_verdict.compute.explainer import summarize_itinerary
from portal_verdict.data.currency import format_price
from portal_verdict.orchestration.state import now_ms

logger = logging.getLogger(__name__)

DEFAULT_MILES_VALUATION_CENTS = 1.7
DEFAULT_TIE_EPSILON = 1.0
DELTA_COMMENTARY_THRESHOLD = 50.0


@dataclass(frozen=True)
class BreakEven:
    delta: float
    delta_percent: float
    portal_points: int
    direct_points: int
    portal_points_value: float
    direct_points_value: float
    break_even_premium: float
    winner: Winner
    net_difference: float


def points_earned(price: float, multiplier: int) -> int:
    # Decimal keeps 0.29 * 100 from flooring to 28
    return math.floor(Decimal(str(price)) * multiplier)


def compute_break_even(
    portal_price: float,
    direct_price: float,
    portal_multiplier: int,
    direct_multiplier: int,
    miles_valuation_cents: float = DEFAULT_MILES_VALUATION_CENTS,
    tie_epsilon: float = DEFAULT_TIE_EPSILON,
) -> BreakEven:
    if portal_price <= 0 or direct_price <= 0:
        raise InvalidPriceError(f"prices must be positive (portal={portal_price}, direct={direct_price})")

    dollars_per_mile = miles_valuation_cents / 100
    delta = portal_price - direct_price
    portal_points = points_earned(portal_price, portal_multiplier)
    direct_points = points_earned(direct_price, direct_multiplier)
    break_even_premium = (portal_points - direct_points) * dollars_per_mile

    gap = delta - break_even_premium
    if abs(gap) <= tie_epsilon:
        winner = Winner.TIE
    elif gap < 0:
        winner = Winner.PORTAL
    else:
        winner = Winner.DIRECT

    return BreakEven(
        delta=round(delta, 2),
        delta_percent=round(delta / direct_price * 100, 2),
        portal_points=portal_points,
        direct_points=direct_points,
        portal_points_value=round(portal_points * dollars_per_mile, 2),
        direct_points_value=round(direct_points * dollars_per_mile, 2),
        break_even_premium=round(break_even_premium, 2),
        winner=winner,
        net_difference=round(abs(gap), 2),
    )


def resolve_booking_type(portal: PortalSnapshot) -> tuple[BookingType, Optional[str]]:
    """Booking type plus an assumption note when it had to be inferred."""
    if portal.booking_type is not None:
        return portal.booking_type, None
    inferred = {
        FlightFingerprint: BookingType.FLIGHT,
        HotelFingerprint: BookingType.HOTEL,
        RentalFingerprint: BookingType.RENTAL,
    }.get(type(portal.itinerary))
    if inferred is not None:
        return inferred, f"Booking type not captured; inferred {inferred.value} from the itinerary"
    return BookingType.OTHER, "Booking type not captured; using the baseline portal earn rate"


def calculate_verdict(
    portal: PortalSnapshot,
    direct: DirectSnapshot,
    match: Optional[MatchResult] = None,
    *,
    miles_valuation_cents: float = DEFAULT_MILES_VALUATION_CENTS,
    earn_rates: EarnRates | None = None,
    tie_epsilon: float = DEFAULT_TIE_EPSILON,
    session_id: Optional[str] = None,
    now: Optional[int] = None,
) -> Union[ComparisonResult, CurrencyMismatch]:
    """Turn two confirmed captures into a recommendation.

    Returns a ``CurrencyMismatch`` instead of a verdict when the captures are
    priced in different currencies. Raises ``InvalidPriceError`` for
    non-positive prices.
    """
    if portal.total_price.currency != direct.total_price.currency:
        logger.warning(
            "currency mismatch: portal=%s direct=%s",
            portal.total_price.currency,
            direct.total_price.currency,
        )
        return CurrencyMismatch(
            portal_currency=portal.total_price.currency,
            direct_currency=direct.total_price.currency,
        )

    rates = earn_rates or EarnRates()
    currency = portal.total_price.currency
    booking_type, booking_note = resolve_booking_type(portal)
    portal_multiplier = rates.portal_multiplier(booking_type)

    result = compute_break_even(
        portal.total_price.amount,
        direct.total_price.amount,
        portal_multiplier,
        rates.direct,
        miles_valuation_cents,
        tie_epsilon,
    )

    levels = [portal.total_price.confidence, direct.total_price.confidence]
    if match is not None:
        levels.append(match.confidence)
    confidence = min_confidence(*levels)

    assumptions: List[str] = [
        f"Miles valued at {miles_valuation_cents}¢ each",
        f"Portal earns {rates.portal_label(booking_type)}, Direct earns {rates.direct}x",
        f"Differences within {format_price(tie_epsilon, currency, 2)} of break-even count as a tie",
    ]
    if booking_note:
        assumptions.append(booking_note)
    if match is None:
        assumptions.append("Itinerary match not checked: one side has no itinerary details")

    notes: List[str] = []
    if portal.total_price.source == "manual" or direct.total_price.source == "manual":
        notes.append("Contains a manually entered price")
    if portal.total_price.label != PriceLabel.TOTAL:
        notes.append("Portal price may not be the total")
    if direct.total_price.label != PriceLabel.TOTAL:
        notes.append("Direct price may not be the total")

    if result.delta > DELTA_COMMENTARY_THRESHOLD:
        notes.append(f"Portal is {format_price(result.delta, currency)} more expensive")
    elif result.delta < -DELTA_COMMENTARY_THRESHOLD:
        notes.append(f"Direct is {format_price(abs(result.delta), currency)} more expensive")
    else:
        notes.append(f"Prices are within {format_price(DELTA_COMMENTARY_THRESHOLD, currency)} of each other")

    if match is not None:
        notes.append(f"Itinerary match score {match.score}/100 ({match.confidence.value})")
        notes.extend(match.warnings)

    verdict = ComparisonResult(
        session_id=session_id,
        booking_type=booking_type,
        currency=currency,
        portal_price=portal.total_price.amount,
        direct_price=direct.total_price.amount,
        delta=result.delta,
        delta_percent=result.delta_percent,
        break_even_premium=result.break_even_premium,
        portal_points_earned=result.portal_points,
        direct_points_earned=result.direct_points,
        portal_points_value=result.portal_points_value,
        direct_points_value=result.direct_points_value,
        winner=result.winner,
        net_difference=result.net_difference,
        confidence=confidence,
        match_score=match.score if match is not None else None,
        notes=notes,
        assumptions=assumptions,
        created_at=now if now is not None else now_ms(),
        portal_captured_at=portal.captured_at,
        direct_captured_at=direct.captured_at,
        itinerary_summary=summarize_itinerary(portal.itinerary) if portal.itinerary else None,
        provider_name=portal.site_metadata.provider_name,
    )
    logger.info(
        "verdict computed: winner=%s delta=%.2f break_even=%.2f confidence=%s",
        verdict.winner.value,
        verdict.delta,
        verdict.break_even_premium,
        verdict.confidence.value,
    )
    return verdict
