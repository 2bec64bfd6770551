"""
Schemas describing sandbox environments and command results.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from agentrun.utils.timing import utcnow


class SandboxStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class SandboxSession(BaseModel):
    session_id: str
    container_id: str
    container_name: str
    workspace_dir: str
    status: SandboxStatus = SandboxStatus.RUNNING
    created_at: datetime = Field(default_factory=utcnow)
    last_used_at: datetime = Field(default_factory=utcnow)


class SandboxExecResult(BaseModel):
    success: bool
    output: str = ""
    error: Optional[str] = None
    exit_code: Optional[int] = None
    duration_ms: int = 0
    timed_out: bool = False
    truncated: bool = False
