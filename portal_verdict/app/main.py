import logging

import uvicorn
from fastapi import Depends, FastAPI, HTTPException

from portal_verdict.app.logging import configure_logging
from portal_verdict.app.schemas import Explanation, FlowMessage
from portal_verdict.app.settings import settings
from portal_verdict.compute.explainer import build_explanation
from portal_verdict.orchestration.controller import FlowController, FlowResponse
from portal_verdict.orchestration.machine import FlowStateMachine
from portal_verdict.storage.kv_store import build_key_value_store
from portal_verdict.storage.session_store import SessionStore
from portal_verdict.tools.event_bus import InMemoryEventBus

configure_logging(settings.log_level)

app = FastAPI(title="Portal vs Direct Verdict")
logger = logging.getLogger(__name__)

session_store = SessionStore(build_key_value_store(settings), ttl_ms=settings.session_ttl_ms)
machine = FlowStateMachine(session_store, InMemoryEventBus(), settings)
controller = FlowController(machine, settings)


@app.on_event("startup")
async def restore_session():
    """Pick up a persisted flow that is still within its TTL."""
    await machine.init()
    ctx = await controller.resume_pending_verdict()
    logger.info("flow ready in %s", ctx.state.value)


def get_controller() -> FlowController:
    return controller


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/flow", response_model=FlowResponse)
def get_flow(ctrl: FlowController = Depends(get_controller)):
    return ctrl.respond()


@app.post("/flow/messages", response_model=FlowResponse)
async def post_message(message: FlowMessage, ctrl: FlowController = Depends(get_controller)):
    try:
        return await ctrl.handle(message)
    except Exception as exc:  # noqa: BLE001
        logger.exception("flow message %s failed", message.type)
        raise HTTPException(status_code=500, detail=str(exc))


@app.post("/flow/reset", response_model=FlowResponse)
async def reset_flow(ctrl: FlowController = Depends(get_controller)):
    await ctrl.machine.reset()
    return ctrl.respond()


@app.get("/flow/explanation", response_model=Explanation)
def get_explanation(ctrl: FlowController = Depends(get_controller)):
    verdict = ctrl.machine.get_context().verdict
    if verdict is None:
        raise HTTPException(status_code=404, detail="No verdict yet")
    return build_explanation(verdict)


if __name__ == "__main__":
    uvicorn.run("portal_verdict.app.main:app", host="0.0.0.0", port=8000, reload=False)
