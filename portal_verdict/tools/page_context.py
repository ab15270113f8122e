from portal_verdict.app.schemas import DetectedSite, PageContext

PORTAL_HOSTS = ("travel.capitalone.com", "capitalone.com/travel")
PORTAL_REVIEW_MARKERS = ("review", "checkout", "itinerary")

GOOGLE_FLIGHTS_PATHS = ("google.com/travel/flights", "google.com/flights")
GOOGLE_FLIGHTS_BOOKING_MARKERS = ("booking", "tfs=")

AIRLINE_DOMAINS = ("delta.com", "united.com", "aa.com", "southwest.com")


def detect_page_context(url: str) -> PageContext:
    """Classify a browser URL into the page context the flow reacts to."""
    lowered = (url or "").lower()

    if any(host in lowered for host in PORTAL_HOSTS):
        is_review = any(marker in lowered for marker in PORTAL_REVIEW_MARKERS)
        return PageContext(site=DetectedSite.PORTAL, url=url, is_review_page=is_review, has_itinerary=is_review)

    if any(path in lowered for path in GOOGLE_FLIGHTS_PATHS):
        is_booking = any(marker in lowered for marker in GOOGLE_FLIGHTS_BOOKING_MARKERS)
        return PageContext(
            site=DetectedSite.GOOGLE_FLIGHTS, url=url, is_review_page=is_booking, has_itinerary=is_booking
        )

    if any(domain in lowered for domain in AIRLINE_DOMAINS):
        return PageContext(site=DetectedSite.OTHER, url=url)

    return PageContext(site=DetectedSite.UNKNOWN, url=url)
