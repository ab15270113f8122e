"""Boundary validation for raw capture payloads.

Malformed payloads raise ``SnapshotValidationError`` and never reach the flow.
"""
import logging
from typing import Any, Dict, Literal

from pydantic import ValidationError

from portal_verdict.app.errors import SnapshotValidationError
from portal_verdict.app.schemas import (
    ConfidenceLevel,
    DirectSnapshot,
    PortalSnapshot,
    PriceLabel,
    PriceSnapshot,
)
from portal_verdict.orchestration.state import now_ms

logger = logging.getLogger(__name__)


def parse_portal_snapshot(payload: Dict[str, Any]) -> PortalSnapshot:
    try:
        return PortalSnapshot.model_validate(payload)
    except ValidationError as exc:
        logger.warning("rejected portal capture: %s", exc.error_count())
        raise SnapshotValidationError("portal", exc.errors(include_url=False)) from exc


def parse_direct_snapshot(payload: Dict[str, Any]) -> DirectSnapshot:
    try:
        return DirectSnapshot.model_validate(payload)
    except ValidationError as exc:
        logger.warning("rejected direct capture: %s", exc.error_count())
        raise SnapshotValidationError("direct", exc.errors(include_url=False)) from exc


def manual_price_snapshot(
    target: Literal["portal", "direct"],
    amount: float,
    currency: str = "USD",
    base: PortalSnapshot | DirectSnapshot | None = None,
):
    """Snapshot for a price typed in by the user.

    The itinerary and site metadata of ``base`` are kept when given, so a manual
    correction does not lose what was already extracted.
    """
    now = now_ms()
    try:
        price = PriceSnapshot(
            amount=amount,
            currency=currency,
            confidence=ConfidenceLevel.LOW,
            label=PriceLabel.TOTAL,
            extracted_at=now,
            source="manual",
        )
        fields: Dict[str, Any] = {"total_price": price, "captured_at": now}
        if base is not None:
            fields["itinerary"] = base.itinerary
            fields["site_metadata"] = base.site_metadata
        if target == "portal":
            if isinstance(base, PortalSnapshot):
                fields["booking_type"] = base.booking_type
            return PortalSnapshot(**fields)
        return DirectSnapshot(**fields)
    except ValidationError as exc:
        logger.warning("rejected manual %s price: %s", target, exc.error_count())
        raise SnapshotValidationError(target, exc.errors(include_url=False)) from exc
