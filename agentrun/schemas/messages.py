# agentrun/schemas/messages.py
"""
Conversation messages and the chunks a generation stream yields.

Tool-call arguments arrive from the model as raw JSON text; they are kept
verbatim on `ToolCallRequest` and parsed by the scheduler so that malformed
arguments become a tool failure instead of a crash inside the provider.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class ToolCallRequest(BaseModel):
    id: str
    name: str
    arguments: Union[str, Dict[str, Any]] = "{}"

    def parsed_arguments(self) -> Dict[str, Any]:
        """Decode the arguments into a dict.

        :raises ValueError: if the text is not a JSON object.
        """
        if isinstance(self.arguments, dict):
            return dict(self.arguments)
        text = (self.arguments or "").strip() or "{}"
        value = json.loads(text)
        if not isinstance(value, dict):
            raise ValueError("tool arguments must be a JSON object")
        return value

    def arguments_json(self) -> str:
        if isinstance(self.arguments, str):
            return self.arguments
        return json.dumps(self.arguments, sort_keys=True)


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls, content: str = "", tool_calls: Optional[List[ToolCallRequest]] = None
    ) -> "ChatMessage":
        return cls(role="assistant", content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, tool_call_id: str, name: str, content: str) -> "ChatMessage":
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)


class ContentDelta(BaseModel):
    kind: Literal["content"] = "content"
    content: str


class GenerationDone(BaseModel):
    kind: Literal["done"] = "done"
    finish_reason: str = "stop"


GenerationChunk = Union[ContentDelta, ToolCallRequest, GenerationDone]
