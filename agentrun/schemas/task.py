# agentrun/schemas/task.py
"""
Per-session task tracking state owned by the policy engine.

A `TaskState` is created when a new top-level goal arrives and replaced
wholesale by the next one. Everything here is plain data; the rules that
read and mutate it live in `agentrun.agents.task_manager`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from agentrun.schemas.tool_result import Artifact
from agentrun.utils.timing import utcnow


class TaskPhase(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskGoal(BaseModel):
    """What the user asked for, as far as keyword inference can tell."""

    description: str
    requires_search: bool = False
    requires_document: bool = False
    expected_artifacts: List[Literal["document", "search_results"]] = Field(
        default_factory=list
    )


class ToolCallHistoryEntry(BaseModel):
    tool_name: str
    normalized_params: str = Field(
        ..., description="Canonical JSON of the normalized parameters"
    )
    timestamp_ms: int = Field(..., description="Monotonic clock reading")
    success: bool
    summary: str = ""


class TaskState(BaseModel):
    session_id: str
    user_id: Optional[str] = None
    goal: TaskGoal
    phase: TaskPhase = TaskPhase.PLANNING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    history: List[ToolCallHistoryEntry] = Field(default_factory=list)
    call_times: Dict[str, List[int]] = Field(
        default_factory=dict,
        description="Per-tool monotonic timestamps inside the rate window",
    )
    search_results: int = 0
    terminal_artifact: Optional[Artifact] = None
    progress_query: bool = Field(
        False, description="True while the current turn is a pure status query"
    )

    @property
    def terminal_artifact_recorded(self) -> bool:
        return self.terminal_artifact is not None

    def touch(self) -> None:
        self.updated_at = utcnow()


class PolicyDecision(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    rule: Optional[Literal["duplicate", "rate_limit", "terminal_lock", "progress_query"]] = None

    @classmethod
    def allow(cls) -> "PolicyDecision":
        return cls(allowed=True)

    @classmethod
    def reject(cls, rule: Any, reason: str) -> "PolicyDecision":
        return cls(allowed=False, rule=rule, reason=reason)


class ReflectionResult(BaseModel):
    is_complete: bool
    should_continue: bool
    next_action: Literal["continue", "respond", "complete", "need_more_info"]
    reasoning: str
