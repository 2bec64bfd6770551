# agentrun/persistence/base.py
"""Storage interface consumed by the turn scheduler.

A write must be durable when the coroutine returns: the scheduler emits the
matching completion event only afterwards. Every created record gets a stable
id. Implementations signal failure by raising `PersistenceError`.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from agentrun.schemas.messages import ChatMessage
from agentrun.schemas.records import SessionRecord, ToolCallRecord


class PersistenceStore(ABC):
    @abstractmethod
    async def create_message(self, session_id: str, message: ChatMessage) -> str:
        """Store a conversation message; returns its id."""

    @abstractmethod
    async def create_tool_call_record(self, record: ToolCallRecord) -> str:
        """Store an executed tool call; returns the record id."""

    @abstractmethod
    async def update_session_last_active(self, session_id: str) -> None: ...

    @abstractmethod
    async def read_session(self, session_id: str) -> Optional[SessionRecord]: ...
