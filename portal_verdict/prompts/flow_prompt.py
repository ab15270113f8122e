IDLE_MESSAGE = (
    "Welcome! I'll help you compare portal vs direct prices. "
    "Navigate to a portal review page to get started."
)

WAITING_FOR_PORTAL_MESSAGE = (
    "I see you're on the travel portal. Navigate to your booking's review page "
    "and I'll capture the itinerary."
)

PORTAL_CAPTURED_MESSAGE = "Got it, I captured your portal itinerary{summary}."

WAITING_FOR_DIRECT_MESSAGE = "Next, let's check direct pricing."

DIRECT_CAPTURED_MESSAGE = "Captured direct price: {price}."

COMPUTING_MESSAGE = "Analyzing..."

VERDICT_READY_MESSAGE = "Here's my recommendation."

GENERIC_ERROR_MESSAGE = "Something went wrong."

PORTAL_WINS_HEADLINE = "Portal wins by ~{amount}"
DIRECT_WINS_HEADLINE = "Direct wins by ~{amount}"
TIE_HEADLINE = "It's a wash, pick based on preference"

PORTAL_WINS_TIP = "You can pay up to {amount} more on the portal before direct becomes better."
DIRECT_WINS_TIP = "Book direct and keep the portal for bookings with a bigger multiplier gap."
TIE_TIP = "The portal earns more miles; direct may have better change and cancellation policies."

CLOSE_PRICES_CAVEAT = "Prices are very close, double-check both before booking."
HIGH_PREMIUM_CAVEAT = "Portal premium is high (>30%). Verify pricing is current."
LOW_CONFIDENCE_CAVEAT = "Extraction or itinerary match confidence is low; verify both captures."
