# agentrun/web/routes_turns.py
"""
HTTP and WebSocket surface for turns.

- POST /sessions creates a session (in-memory store only).
- POST /sessions/{session_id}/turns starts a turn or attaches to the live one.
- WS   /sessions/{session_id}/events streams the turn's events as wire JSON.
- POST /sessions/{session_id}/approvals/{tool_call_id} approves or denies a
  confirmation-gated tool call.
- POST /sessions/{session_id}/cancel stops the live turn.

The runtime is looked up on `app.state.runtime`.
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agentrun.runtime import AgentRuntime
from agentrun.schemas.messages import ChatMessage
from agentrun.schemas.runtime import TurnConfig, TurnRequest
from agentrun.utils.logger import setup_logger

logger = setup_logger(__name__)
router = APIRouter()


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartTurnBody(_CamelModel):
    message: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)
    max_steps: Optional[int] = Field(None, ge=1)
    max_duration_ms: Optional[int] = Field(None, ge=1)


class CreateSessionBody(_CamelModel):
    session_id: Optional[str] = Field(None, min_length=1)
    user_id: Optional[str] = None


class ApprovalBody(_CamelModel):
    decision: Literal["approved", "denied"]


def _runtime(app) -> AgentRuntime:
    return app.state.runtime


@router.post("/sessions", status_code=201)
async def create_session(request: Request, body: Optional[CreateSessionBody] = None):
    runtime = _runtime(request.app)
    if not runtime.manages_sessions:
        raise HTTPException(
            status_code=501, detail="Sessions are managed by the application that owns the store"
        )
    body = body or CreateSessionBody()
    if body.session_id and await runtime.store.read_session(body.session_id) is not None:
        raise HTTPException(status_code=409, detail="Session already exists")
    record = runtime.create_session(body.session_id, user_id=body.user_id)
    return {"sessionId": record.session_id, "userId": record.user_id}


@router.post("/sessions/{session_id}/turns", status_code=202)
async def start_turn(session_id: str, body: StartTurnBody, request: Request):
    runtime = _runtime(request.app)
    config = None
    if body.max_steps is not None or body.max_duration_ms is not None:
        config = TurnConfig(
            max_steps=body.max_steps or runtime.settings.agent.max_steps,
            max_duration_ms=body.max_duration_ms or runtime.settings.agent.max_duration_ms,
        )
    turn_request = TurnRequest(
        session_id=session_id,
        user_id=body.user_id,
        message=body.message,
        history=body.history,
        config=config,
    )
    _, attached = await runtime.start_turn(turn_request)
    logger.info("Turn requested", extra={"session": session_id, "attached": attached})
    return {"attached": attached, "sessionId": session_id}


@router.websocket("/sessions/{session_id}/events")
async def turn_events(websocket: WebSocket, session_id: str):
    await websocket.accept()
    runtime = _runtime(websocket.app)
    handle = runtime.hub.latest(session_id)
    if handle is None:
        await websocket.send_json(
            {"type": "error", "sessionId": session_id, "data": {"code": "NO_TURN", "message": "No turn for this session"}}
        )
        await websocket.close()
        return
    subscription = handle.subscribe(replay=True)
    try:
        async for envelope in subscription:
            await websocket.send_json(envelope.to_wire())
        await websocket.close()
    except WebSocketDisconnect:
        logger.info("Event stream client disconnected (session %s)", session_id)
    finally:
        subscription.close()


@router.get("/sessions/{session_id}/approvals")
async def list_approvals(session_id: str, request: Request):
    return _runtime(request.app).approvals.list_pending(session_id)


@router.post("/sessions/{session_id}/approvals/{tool_call_id}")
async def decide_approval(session_id: str, tool_call_id: str, body: ApprovalBody, request: Request):
    resolved = _runtime(request.app).approvals.decide(session_id, tool_call_id, body.decision)
    if not resolved:
        raise HTTPException(status_code=404, detail="No pending approval for this tool call")
    return {"resolved": True, "decision": body.decision}


@router.post("/sessions/{session_id}/cancel")
async def cancel_turn(session_id: str, request: Request):
    cancelled = _runtime(request.app).hub.cancel(session_id)
    return {"cancelled": cancelled, "sessionId": session_id}
