# agentrun/schemas/events.py
"""
The closed set of events a turn emits.

Each variant is a pydantic model tagged by `kind` (the wire `type`). Payload
fields are snake_case in Python and camelCase on the wire. `EventEnvelope`
adds the session id, a per-turn sequence number and a timestamp; its
`to_wire()` is the only place events are turned into JSON-ready dicts.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agentrun.schemas.records import FinishReason


class _Event(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    def data(self) -> Dict[str, Any]:
        dumped = self.model_dump(mode="json", by_alias=True, exclude={"kind"})
        # optional top-level fields are omitted, nested payloads are kept as-is
        return {k: v for k, v in dumped.items() if v is not None}


class MessageStart(_Event):
    kind: Literal["message.start"] = "message.start"


class MessageDelta(_Event):
    kind: Literal["message.delta"] = "message.delta"
    content: str


class ToolStart(_Event):
    kind: Literal["tool.start"] = "tool.start"
    tool_call_id: str
    tool_name: str
    params: Dict[str, Any] = Field(default_factory=dict)


class ToolApprovalRequired(_Event):
    kind: Literal["tool.approval_required"] = "tool.approval_required"
    tool_call_id: str
    tool_name: str
    params: Dict[str, Any] = Field(default_factory=dict)


class ToolProgress(_Event):
    kind: Literal["tool.progress"] = "tool.progress"
    tool_call_id: str
    current: int
    total: int
    message: Optional[str] = None


class ToolComplete(_Event):
    kind: Literal["tool.complete"] = "tool.complete"
    tool_call_id: str
    result: Dict[str, Any]
    duration: int
    artifacts: Optional[List[Dict[str, Any]]] = None


class ToolErrorEvent(_Event):
    kind: Literal["tool.error"] = "tool.error"
    tool_call_id: str
    error: str
    duration: int


class FileCreated(_Event):
    kind: Literal["file.created"] = "file.created"
    file_id: str
    filename: str
    mime_type: str
    size: int
    type: str


class MessageComplete(_Event):
    kind: Literal["message.complete"] = "message.complete"
    assistant_message_id: str
    finish_reason: FinishReason
    steps_taken: int


class StepLimitReached(_Event):
    kind: Literal["agent.step_limit"] = "agent.step_limit"
    reason: str
    steps_taken: int


class ErrorEvent(_Event):
    kind: Literal["error"] = "error"
    code: str
    message: str


AgentEvent = Annotated[
    Union[
        MessageStart,
        MessageDelta,
        ToolStart,
        ToolApprovalRequired,
        ToolProgress,
        ToolComplete,
        ToolErrorEvent,
        FileCreated,
        MessageComplete,
        StepLimitReached,
        ErrorEvent,
    ],
    Field(discriminator="kind"),
]


class EventEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    seq: int = Field(..., ge=0)
    timestamp: int = Field(..., description="Epoch milliseconds")
    event: AgentEvent

    @property
    def type(self) -> str:
        return self.event.kind

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.event.kind,
            "sessionId": self.session_id,
            "seq": self.seq,
            "timestamp": self.timestamp,
            "data": self.event.data(),
        }
