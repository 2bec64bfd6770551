# agentrun/schemas/records.py
"""
Durable records produced by a turn, and the turn's own result.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from agentrun.schemas.tool_result import Artifact
from agentrun.utils.timing import utcnow


class FinishReason(str, Enum):
    STOP = "stop"
    MAX_STEPS = "max_steps"
    TIMEOUT = "timeout"
    ERROR = "error"
    CANCELLED = "cancelled"


class ToolCallStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ToolCallRecord(BaseModel):
    """One executed tool call. Rejected calls never produce a record."""

    id: Optional[str] = Field(None, description="Record id assigned by the store")
    tool_call_id: str = Field(..., description="Tool call id issued by the model")
    session_id: str
    tool_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    result: Dict[str, Any] = Field(
        default_factory=dict, description="The result payload as sent to the model"
    )
    status: ToolCallStatus
    artifacts: List[Artifact] = Field(
        default_factory=list,
        description="Side effects that landed, including those of an interrupted call",
    )
    duration_ms: int = 0
    timestamp: datetime = Field(default_factory=utcnow)


class SessionRecord(BaseModel):
    session_id: str
    user_id: Optional[str] = None
    workspace_dir: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_active_at: datetime = Field(default_factory=utcnow)


class TurnResult(BaseModel):
    session_id: str
    final_content: str = ""
    finish_reason: FinishReason
    steps_taken: int = 0
    assistant_message_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: int = 0
