from datetime import date
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal_verdict.data.currency import is_iso_currency


class ConfidenceLevel(str, Enum):
    LOW = "LOW"
    MED = "MED"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {ConfidenceLevel.LOW: 0, ConfidenceLevel.MED: 1, ConfidenceLevel.HIGH: 2}


def min_confidence(*levels: ConfidenceLevel) -> ConfidenceLevel:
    """Lowest of the given tiers (LOW < MED < HIGH)."""
    return min(levels, key=lambda level: level.rank)


class BookingType(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"
    RENTAL = "rental"
    OTHER = "other"


class PriceLabel(str, Enum):
    TOTAL = "total"
    PER_NIGHT = "perNight"
    PER_PERSON = "perPerson"
    UNKNOWN = "unknown"


class PriceSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: float = Field(..., gt=0, allow_inf_nan=False)
    currency: str = "USD"
    confidence: ConfidenceLevel
    label: PriceLabel = PriceLabel.TOTAL
    extracted_at: int
    source: Literal["auto", "manual"] = "auto"

    @field_validator("currency")
    @classmethod
    def _iso_currency(cls, value: str) -> str:
        code = value.strip().upper()
        if not is_iso_currency(code):
            raise ValueError(f"unknown ISO 4217 currency code: {value!r}")
        return code


# Itinerary fingerprints: every field is optional, extraction is best-effort.


class FlightFingerprint(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["flight"] = "flight"
    origin: Optional[str] = None  # IATA
    destination: Optional[str] = None  # IATA
    depart_date: Optional[date] = None
    return_date: Optional[date] = None
    cabin: Optional[str] = None
    pax_count: Optional[int] = Field(default=None, ge=1)
    flight_numbers: List[str] = []
    operating_carrier: Optional[str] = None  # e.g. "DL"
    operating_carrier_name: Optional[str] = None  # e.g. "Delta Air Lines"


class HotelFingerprint(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["hotel"] = "hotel"
    hotel_name: Optional[str] = None
    city: Optional[str] = None
    checkin_date: Optional[date] = None
    checkout_date: Optional[date] = None
    nights: Optional[int] = Field(default=None, ge=1)
    room_count: Optional[int] = Field(default=None, ge=1)
    guest_count: Optional[int] = Field(default=None, ge=1)
    brand_code: Optional[str] = None


class RentalFingerprint(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["rental"] = "rental"
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    pickup_date: Optional[date] = None
    dropoff_date: Optional[date] = None
    car_class: Optional[str] = None
    company: Optional[str] = None


ItineraryFingerprint = Annotated[
    Union[FlightFingerprint, HotelFingerprint, RentalFingerprint],
    Field(discriminator="type"),
]


class SiteMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    site_name: Optional[str] = None
    site_url: Optional[str] = None
    page_type: Literal["search", "details", "checkout", "unknown"] = "unknown"
    provider_name: Optional[str] = None  # e.g. "Delta Air Lines"
    provider_code: Optional[str] = None  # e.g. "DL"
    seller_type: Optional[Literal["airline", "ota", "metasearch", "unknown"]] = None
    seller_name: Optional[str] = None


class PortalSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    booking_type: Optional[BookingType] = None
    total_price: PriceSnapshot
    itinerary: Optional[ItineraryFingerprint] = None
    site_metadata: SiteMetadata = SiteMetadata()
    captured_at: int


class DirectSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_price: PriceSnapshot
    itinerary: Optional[ItineraryFingerprint] = None
    site_metadata: SiteMetadata = SiteMetadata()
    captured_at: int


class MatchDetails(BaseModel):
    name_score: int = Field(..., ge=0, le=100)
    dates_match: bool
    occupancy_match: bool
    location_score: int = Field(..., ge=0, le=100)


class MatchResult(BaseModel):
    is_match: bool
    confidence: ConfidenceLevel
    score: int = Field(..., ge=0, le=100)
    details: MatchDetails
    warnings: List[str] = []


class Winner(str, Enum):
    PORTAL = "portal"
    DIRECT = "direct"
    TIE = "tie"


class ComparisonResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: Optional[str] = None
    booking_type: BookingType
    currency: str

    portal_price: float
    direct_price: float
    delta: float  # portal - direct, positive means portal costs more
    delta_percent: float

    break_even_premium: float
    portal_points_earned: int
    direct_points_earned: int
    portal_points_value: float
    direct_points_value: float

    winner: Winner
    net_difference: float

    confidence: ConfidenceLevel
    match_score: Optional[int] = None
    notes: List[str] = []
    assumptions: List[str] = []

    created_at: int
    portal_captured_at: int
    direct_captured_at: int
    itinerary_summary: Optional[str] = None
    provider_name: Optional[str] = None


class CurrencyMismatch(BaseModel):
    """Typed failure returned by the calculator when the two sides disagree on currency."""

    portal_currency: str
    direct_currency: str
    recoverable: bool = True

    @property
    def message(self) -> str:
        return (
            f"Portal price is in {self.portal_currency} but the direct price is in "
            f"{self.direct_currency}; recapture both prices in the same currency."
        )


class DetectedSite(str, Enum):
    PORTAL = "capital-one-portal"
    GOOGLE_FLIGHTS = "google-flights"
    OTHER = "other"
    UNKNOWN = "unknown"


class PageContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    site: DetectedSite = DetectedSite.UNKNOWN
    url: str = ""
    is_review_page: bool = False
    has_itinerary: bool = False


class FlowError(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    recoverable: bool = True


class Explanation(BaseModel):
    headline: str
    body: List[str]
    pro_tip: str
    caveats: List[str] = []


class QuickReply(BaseModel):
    id: str
    label: str
    action: str


class AssistantMessage(BaseModel):
    state: str
    content: str
    status: Literal["done", "capturing", "analyzing", "error"] = "done"
    quick_replies: List[QuickReply] = []


FlowMessageType = Literal[
    "PAGE_CONTEXT",
    "PORTAL_CAPTURE",
    "DIRECT_CAPTURE",
    "MANUAL_PRICE",
    "CONFIRM_PORTAL",
    "CONFIRM_DIRECT",
    "REQUEST_RECAPTURE",
    "RESET_FLOW",
    "GET_FLOW_STATE",
]


class FlowMessage(BaseModel):
    """Inbound message from a capture script or the UI."""

    type: FlowMessageType
    payload: Dict[str, Any] = {}
