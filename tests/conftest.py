from datetime import date

import pytest

from portal_verdict.app.schemas import (
    BookingType,
    ConfidenceLevel,
    DirectSnapshot,
    FlightFingerprint,
    HotelFingerprint,
    PortalSnapshot,
    PriceSnapshot,
)
from portal_verdict.app.settings import Settings
from portal_verdict.storage.kv_store import InMemoryKeyValueStore
from portal_verdict.storage.session_store import SessionStore

T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def price(amount, currency="USD", confidence=ConfidenceLevel.HIGH, **kw) -> PriceSnapshot:
    return PriceSnapshot(amount=amount, currency=currency, confidence=confidence, extracted_at=T0, **kw)


def hotel(**overrides) -> HotelFingerprint:
    fields = dict(
        hotel_name="Hotel Commonwealth",
        city="Boston",
        checkin_date=date(2025, 3, 1),
        checkout_date=date(2025, 3, 4),
        nights=3,
        guest_count=2,
        room_count=1,
    )
    fields.update(overrides)
    return HotelFingerprint(**fields)


def flight(**overrides) -> FlightFingerprint:
    fields = dict(
        origin="JFK",
        destination="LAX",
        depart_date=date(2025, 5, 10),
        return_date=date(2025, 5, 17),
        cabin="economy",
        pax_count=1,
        operating_carrier="DL",
        operating_carrier_name="Delta Air Lines",
    )
    fields.update(overrides)
    return FlightFingerprint(**fields)


def portal_snapshot(amount=500.0, booking_type=BookingType.FLIGHT, itinerary=None, captured_at=T0, **price_kw):
    return PortalSnapshot(
        booking_type=booking_type,
        total_price=price(amount, **price_kw),
        itinerary=itinerary,
        captured_at=captured_at,
    )


def direct_snapshot(amount=480.0, itinerary=None, captured_at=T0 + 1000, **price_kw):
    return DirectSnapshot(total_price=price(amount, **price_kw), itinerary=itinerary, captured_at=captured_at)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(store_backend="memory", store_path=str(tmp_path / "flow.json"))


@pytest.fixture
def kv(clock):
    return InMemoryKeyValueStore(clock=lambda: clock() / 1000)


@pytest.fixture
def session_store(kv, test_settings):
    return SessionStore(kv, ttl_ms=test_settings.session_ttl_ms)
