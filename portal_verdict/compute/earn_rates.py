from dataclasses import dataclass
from typing import Dict

from portal_verdict.app.schemas import BookingType
from portal_verdict.app.settings import Settings

_TYPE_LABELS: Dict[BookingType, str] = {
    BookingType.FLIGHT: "Flights",
    BookingType.HOTEL: "Hotels",
    BookingType.RENTAL: "Rental Cars",
    BookingType.OTHER: "Other",
}


@dataclass(frozen=True)
class EarnRates:
    """Miles earned per dollar, by channel and booking type."""

    direct: int = 2
    portal_flight: int = 5
    portal_hotel: int = 10
    portal_rental: int = 10
    portal_other: int = 2

    @classmethod
    def from_settings(cls, settings: Settings) -> "EarnRates":
        return cls(
            direct=settings.direct_multiplier,
            portal_flight=settings.portal_flight_multiplier,
            portal_hotel=settings.portal_hotel_multiplier,
            portal_rental=settings.portal_rental_multiplier,
            portal_other=settings.portal_other_multiplier,
        )

    def portal_multiplier(self, booking_type: BookingType) -> int:
        if booking_type == BookingType.FLIGHT:
            return self.portal_flight
        if booking_type == BookingType.HOTEL:
            return self.portal_hotel
        if booking_type == BookingType.RENTAL:
            return self.portal_rental
        return self.portal_other

    def portal_label(self, booking_type: BookingType) -> str:
        return f"{self.portal_multiplier(booking_type)}x {_TYPE_LABELS.get(booking_type, 'Portal')}"
