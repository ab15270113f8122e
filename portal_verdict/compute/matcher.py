"""Fuzzy matching of a direct-site capture against the confirmed portal booking.

The score is advisory: it never blocks a verdict, it only caps the verdict's
confidence. Missing inputs add nothing to the score and leave a warning
instead of a penalty.
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from rapidfuzz import fuzz

from portal_verdict.app.schemas import (
    ConfidenceLevel,
    DirectSnapshot,
    FlightFingerprint,
    HotelFingerprint,
    MatchDetails,
    MatchResult,
    PortalSnapshot,
    RentalFingerprint,
)

NAME_WEIGHT = 40
DATES_POINTS = 30
OCCUPANCY_POINTS = 15
LOCATION_WEIGHT = 15

HIGH_THRESHOLD = 80
MED_THRESHOLD = 50
LOW_THRESHOLD = 30

# Property words that must be shared for two names to be the same place
BRAND_KEYWORDS = ("hilton", "marriott", "hyatt", "inn", "hotel", "resort", "suites")


@dataclass(frozen=True)
class MatchCandidate:
    """The identity fields of one side of a comparison, each optional."""

    name: Optional[str] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    guests: Optional[int] = None
    rooms: Optional[int] = None
    location: Optional[str] = None


def candidate_from_itinerary(itinerary) -> MatchCandidate:
    if isinstance(itinerary, HotelFingerprint):
        return MatchCandidate(
            name=itinerary.hotel_name,
            check_in=itinerary.checkin_date,
            check_out=itinerary.checkout_date,
            guests=itinerary.guest_count,
            rooms=itinerary.room_count,
            location=itinerary.city,
        )
    if isinstance(itinerary, FlightFingerprint):
        route = "-".join(p for p in (itinerary.origin, itinerary.destination) if p) or None
        return MatchCandidate(
            name=itinerary.operating_carrier_name or itinerary.operating_carrier,
            check_in=itinerary.depart_date,
            check_out=itinerary.return_date,
            guests=itinerary.pax_count,
            rooms=1 if itinerary.pax_count is not None else None,
            location=route,
        )
    if isinstance(itinerary, RentalFingerprint):
        return MatchCandidate(
            name=itinerary.company,
            check_in=itinerary.pickup_date,
            check_out=itinerary.dropoff_date,
            location=itinerary.pickup_location,
        )
    return MatchCandidate()


def normalize_name(value: str) -> str:
    lowered = re.sub(r"[^a-z0-9\s]", "", value.lower())
    return re.sub(r"\s+", " ", lowered).strip()


def _tokens(value: str) -> set[str]:
    return {w for w in value.split(" ") if len(w) > 2}


def name_similarity(first: str, second: str) -> int:
    """0-100 similarity of two property/provider names."""
    n1, n2 = normalize_name(first), normalize_name(second)
    if not n1 or not n2:
        return 0
    if n1 == n2:
        return 100
    if n1 in n2 or n2 in n1:
        return 90

    shared = _tokens(n1) & _tokens(n2)
    ratio = min(89, int(round(fuzz.token_set_ratio(n1, n2))))
    conflicting_brand = any(
        (kw in n1 or kw in n2) and not any(kw in word for word in shared) for kw in BRAND_KEYWORDS
    )
    if conflicting_brand:
        return min(40, ratio)
    return ratio


def location_similarity(first: str, second: str) -> int:
    l1, l2 = normalize_name(first.replace("-", " ")), normalize_name(second.replace("-", " "))
    if not l1 or not l2:
        return 0
    if l1 in l2 or l2 in l1:
        return 100
    if _tokens(l1) & _tokens(l2):
        return 50
    return 0


def _scaled(sub_score: int, weight: int) -> int:
    return (sub_score * weight + 50) // 100


def combine_score(name_score: int, dates_match: bool, occupancy_match: bool, location_score: int) -> int:
    """Weighted 0-100 total; non-decreasing in every component."""
    score = _scaled(name_score, NAME_WEIGHT) + _scaled(location_score, LOCATION_WEIGHT)
    if dates_match:
        score += DATES_POINTS
    if occupancy_match:
        score += OCCUPANCY_POINTS
    return max(0, min(100, score))


def match_candidates(portal: MatchCandidate, direct: MatchCandidate) -> MatchResult:
    warnings: List[str] = []

    name_score = 0
    if portal.name and direct.name:
        name_score = name_similarity(direct.name, portal.name)
    else:
        warnings.append("Could not verify name match")

    dates_match = False
    if portal.check_in and portal.check_out and direct.check_in and direct.check_out:
        dates_match = portal.check_in == direct.check_in and portal.check_out == direct.check_out
        if not dates_match:
            warnings.append(
                f"Dates may not match: Direct {direct.check_in.isoformat()} to {direct.check_out.isoformat()} "
                f"vs Portal {portal.check_in.isoformat()} to {portal.check_out.isoformat()}"
            )
    else:
        warnings.append("Could not verify date match")

    occupancy_match = False
    if portal.guests is not None and direct.guests is not None:
        portal_rooms = portal.rooms or 1
        direct_rooms = direct.rooms or 1
        occupancy_match = portal.guests == direct.guests and portal_rooms == direct_rooms
        if not occupancy_match:
            warnings.append(
                f"Occupancy may differ: Direct {direct.guests} guests, {direct_rooms} rooms "
                f"vs Portal {portal.guests} guests, {portal_rooms} rooms"
            )
    else:
        warnings.append("Could not verify occupancy match")

    location_score = 0
    if portal.location and direct.location:
        location_score = location_similarity(direct.location, portal.location)
    else:
        warnings.append("Could not verify location match")

    score = combine_score(name_score, dates_match, occupancy_match, location_score)

    if score >= HIGH_THRESHOLD:
        confidence, is_match = ConfidenceLevel.HIGH, True
    elif score >= MED_THRESHOLD:
        confidence, is_match = ConfidenceLevel.MED, True
    elif score >= LOW_THRESHOLD:
        confidence, is_match = ConfidenceLevel.LOW, True
        warnings.append("Low confidence match - please verify manually that this is the same booking")
    else:
        confidence, is_match = ConfidenceLevel.LOW, False
        warnings.append("Could not confidently match this capture to your portal booking")

    return MatchResult(
        is_match=is_match,
        confidence=confidence,
        score=score,
        details=MatchDetails(
            name_score=name_score,
            dates_match=dates_match,
            occupancy_match=occupancy_match,
            location_score=location_score,
        ),
        warnings=warnings,
    )


def match_snapshots(portal: PortalSnapshot, direct: DirectSnapshot) -> Optional[MatchResult]:
    """Match two captures by itinerary; ``None`` when either side carries none."""
    if portal.itinerary is None or direct.itinerary is None:
        return None
    return match_candidates(
        candidate_from_itinerary(portal.itinerary),
        candidate_from_itinerary(direct.itinerary),
    )
