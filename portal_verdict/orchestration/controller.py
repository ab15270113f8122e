"""Turns inbound capture/UI messages into flow events.

This is the only place that calls the matcher and calculator, and the only
place that converts boundary failures into ``ERROR_OCCURRED``.
"""
import logging
from typing import Optional

from pydantic import BaseModel, ValidationError

from portal_verdict.app.errors import SnapshotValidationError
from portal_verdict.app.schemas import AssistantMessage, FlowError, FlowMessage, PageContext
from portal_verdict.app.settings import Settings, settings as default_settings
from portal_verdict.compute.explainer import system_message_for_state
from portal_verdict.orchestration.machine import FlowStateMachine
from portal_verdict.orchestration.nodes.intake import (
    manual_price_snapshot,
    parse_direct_snapshot,
    parse_portal_snapshot,
)
from portal_verdict.orchestration.nodes.verdict import verdict_node
from portal_verdict.orchestration.state import (
    DirectCaptureReceived,
    DirectConfirmed,
    ErrorOccurred,
    FlowContext,
    FlowState,
    PageContextUpdated,
    PortalCaptureReceived,
    PortalConfirmed,
    RecaptureDirect,
    RecapturePortal,
)
from portal_verdict.tools.page_context import detect_page_context

logger = logging.getLogger(__name__)


class FlowResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    context: FlowContext
    active_step: int
    assistant: AssistantMessage


class FlowController:
    def __init__(self, machine: FlowStateMachine, settings: Optional[Settings] = None):
        self.machine = machine
        self.settings = settings or default_settings

    def respond(self, success: bool = True, error: Optional[str] = None) -> FlowResponse:
        ctx = self.machine.get_context()
        return FlowResponse(
            success=success,
            error=error,
            context=ctx,
            active_step=self.machine.get_active_step(),
            assistant=system_message_for_state(ctx),
        )

    async def handle(self, message: FlowMessage) -> FlowResponse:
        payload = message.payload
        try:
            if message.type == "PAGE_CONTEXT":
                await self._page_context(payload)
            elif message.type == "PORTAL_CAPTURE":
                await self.machine.send(PortalCaptureReceived(payload=parse_portal_snapshot(payload)))
            elif message.type == "DIRECT_CAPTURE":
                await self.machine.send(DirectCaptureReceived(payload=parse_direct_snapshot(payload)))
            elif message.type == "MANUAL_PRICE":
                await self._manual_price(payload)
            elif message.type == "CONFIRM_PORTAL":
                await self.machine.send(PortalConfirmed())
            elif message.type == "CONFIRM_DIRECT":
                await self.confirm_direct()
            elif message.type == "REQUEST_RECAPTURE":
                target = payload.get("target")
                if target == "portal":
                    await self.machine.send(RecapturePortal())
                elif target == "direct":
                    await self.machine.send(RecaptureDirect())
                else:
                    return self.respond(False, f"Unknown recapture target: {target!r}")
            elif message.type == "RESET_FLOW":
                await self.machine.reset()
        except SnapshotValidationError as exc:
            return self.respond(False, str(exc))
        return self.respond()

    async def _page_context(self, payload) -> None:
        if "site" in payload:
            try:
                page = PageContext.model_validate(payload)
            except ValidationError as exc:
                raise SnapshotValidationError("page context", exc.errors(include_url=False)) from exc
        else:
            page = detect_page_context(str(payload.get("url", "")))
        await self.machine.send(PageContextUpdated(payload=page))

    async def _manual_price(self, payload) -> None:
        target = payload.get("target")
        if target not in ("portal", "direct"):
            raise SnapshotValidationError(str(target), message=f"Unknown manual price target: {target!r}")
        ctx = self.machine.get_context()
        base = ctx.portal_capture if target == "portal" else ctx.direct_capture
        snapshot = manual_price_snapshot(
            target,
            payload.get("amount"),
            payload.get("currency") or (base.total_price.currency if base else "USD"),
            base,
        )
        if target == "portal":
            await self.machine.send(PortalCaptureReceived(payload=snapshot))
        else:
            await self.machine.send(DirectCaptureReceived(payload=snapshot))

    async def confirm_direct(self) -> FlowContext:
        prev_state, ctx = await self.machine.apply(DirectConfirmed())
        # only the confirm that made the transition computes
        if prev_state != FlowState.DIRECT_CAPTURED or ctx.state != FlowState.COMPUTING_VERDICT:
            return ctx
        return await self._compute_verdict(ctx)

    async def resume_pending_verdict(self) -> FlowContext:
        """Finish a verdict left in COMPUTING_VERDICT by a restart."""
        ctx = self.machine.get_context()
        if ctx.state != FlowState.COMPUTING_VERDICT:
            return ctx
        logger.info("resuming verdict for session %s", ctx.session_id)
        return await self._compute_verdict(ctx)

    async def _compute_verdict(self, ctx: FlowContext) -> FlowContext:
        try:
            outcome = verdict_node(ctx, self.settings)
        except Exception:  # noqa: BLE001
            logger.exception("verdict computation failed")
            outcome = ErrorOccurred(payload=FlowError(message="Failed to compute verdict", recoverable=True))
        return await self.machine.send(outcome)
