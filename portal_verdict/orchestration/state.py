"""State schema for the capture-compare-decide flow."""
import time
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from portal_verdict.app.schemas import (
    ComparisonResult,
    DirectSnapshot,
    FlowError,
    PageContext,
    PortalSnapshot,
)


def now_ms() -> int:
    return int(time.time() * 1000)


class FlowState(str, Enum):
    IDLE = "IDLE"
    WAITING_FOR_PORTAL_REVIEW = "WAITING_FOR_PORTAL_REVIEW"
    PORTAL_CAPTURED = "PORTAL_CAPTURED"
    WAITING_FOR_DIRECT_CAPTURE = "WAITING_FOR_DIRECT_CAPTURE"
    DIRECT_CAPTURED = "DIRECT_CAPTURED"
    COMPUTING_VERDICT = "COMPUTING_VERDICT"
    VERDICT_READY = "VERDICT_READY"
    ERROR = "ERROR"


# Events, discriminated by ``type``


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class PageContextUpdated(_Event):
    type: Literal["PAGE_CONTEXT_UPDATED"] = "PAGE_CONTEXT_UPDATED"
    payload: PageContext


class PortalCaptureReceived(_Event):
    type: Literal["PORTAL_CAPTURE_RECEIVED"] = "PORTAL_CAPTURE_RECEIVED"
    payload: PortalSnapshot


class PortalConfirmed(_Event):
    type: Literal["PORTAL_CONFIRMED"] = "PORTAL_CONFIRMED"


class DirectCaptureReceived(_Event):
    type: Literal["DIRECT_CAPTURE_RECEIVED"] = "DIRECT_CAPTURE_RECEIVED"
    payload: DirectSnapshot


class DirectConfirmed(_Event):
    type: Literal["DIRECT_CONFIRMED"] = "DIRECT_CONFIRMED"


class RecapturePortal(_Event):
    type: Literal["RECAPTURE_PORTAL"] = "RECAPTURE_PORTAL"


class RecaptureDirect(_Event):
    type: Literal["RECAPTURE_DIRECT"] = "RECAPTURE_DIRECT"


class VerdictComputed(_Event):
    type: Literal["VERDICT_COMPUTED"] = "VERDICT_COMPUTED"
    payload: ComparisonResult


class ResetFlow(_Event):
    type: Literal["RESET_FLOW"] = "RESET_FLOW"


class ErrorOccurred(_Event):
    type: Literal["ERROR_OCCURRED"] = "ERROR_OCCURRED"
    payload: FlowError


FlowEvent = Annotated[
    Union[
        PageContextUpdated,
        PortalCaptureReceived,
        PortalConfirmed,
        DirectCaptureReceived,
        DirectConfirmed,
        RecapturePortal,
        RecaptureDirect,
        VerdictComputed,
        ResetFlow,
        ErrorOccurred,
    ],
    Field(discriminator="type"),
]

EVENT_TYPES = (
    "PAGE_CONTEXT_UPDATED",
    "PORTAL_CAPTURE_RECEIVED",
    "PORTAL_CONFIRMED",
    "DIRECT_CAPTURE_RECEIVED",
    "DIRECT_CONFIRMED",
    "RECAPTURE_PORTAL",
    "RECAPTURE_DIRECT",
    "VERDICT_COMPUTED",
    "RESET_FLOW",
    "ERROR_OCCURRED",
)


class FlowContext(BaseModel):
    """Aggregate root of the flow. Replaced wholesale on every transition."""

    model_config = ConfigDict(frozen=True)

    state: FlowState = FlowState.IDLE
    page_context: Optional[PageContext] = None
    portal_capture: Optional[PortalSnapshot] = None
    portal_confirmed: bool = False
    direct_capture: Optional[DirectSnapshot] = None
    direct_confirmed: bool = False
    verdict: Optional[ComparisonResult] = None
    error: Optional[FlowError] = None
    session_id: Optional[str] = None
    last_updated: int = Field(default_factory=now_ms)


def initial_context(last_updated: int | None = None) -> FlowContext:
    if last_updated is None:
        return FlowContext()
    return FlowContext(last_updated=last_updated)


def reset_patch() -> Dict[str, Any]:
    """Patch that restores every field of the initial context except the clock."""
    fields = initial_context().model_dump()
    fields.pop("state")
    fields.pop("last_updated")
    return fields
