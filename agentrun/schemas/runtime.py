# agentrun/schemas/runtime.py
"""
Inputs to a turn: the request that starts it and the limits it runs under.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from agentrun.schemas.messages import ChatMessage


class TurnConfig(BaseModel):
    max_steps: int = Field(10, ge=1)
    max_duration_ms: int = Field(5 * 60 * 1000, ge=1)


class TurnRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    message: str = Field(..., description="The user message that triggers the turn")
    history: List[ChatMessage] = Field(
        default_factory=list,
        description="Prior conversation, oldest first, excluding `message`",
    )
    config: Optional[TurnConfig] = Field(
        None, description="Per-turn limit overrides; defaults come from settings"
    )
