# agentrun/persistence/memory.py
"""In-memory persistence for tests and single-process deployments."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from agentrun.persistence.base import PersistenceStore
from agentrun.schemas.messages import ChatMessage
from agentrun.schemas.records import SessionRecord, ToolCallRecord
from agentrun.utils.timing import utcnow


class InMemoryStore(PersistenceStore):
    def __init__(self) -> None:
        self._sessions: Dict[str, SessionRecord] = {}
        self._messages: List[Tuple[str, str, ChatMessage]] = []
        self._tool_calls: Dict[str, ToolCallRecord] = {}

    def create_session(
        self,
        session_id: Optional[str] = None,
        *,
        user_id: Optional[str] = None,
        workspace_dir: Optional[str] = None,
    ) -> SessionRecord:
        record = SessionRecord(
            session_id=session_id or str(uuid4()),
            user_id=user_id,
            workspace_dir=workspace_dir,
        )
        self._sessions[record.session_id] = record
        return record

    async def create_message(self, session_id: str, message: ChatMessage) -> str:
        message_id = str(uuid4())
        self._messages.append((message_id, session_id, message.model_copy(deep=True)))
        return message_id

    async def create_tool_call_record(self, record: ToolCallRecord) -> str:
        record_id = str(uuid4())
        self._tool_calls[record_id] = record.model_copy(update={"id": record_id}, deep=True)
        return record_id

    async def update_session_last_active(self, session_id: str) -> None:
        current = self._sessions.get(session_id)
        if current is None:
            return
        self._sessions[session_id] = current.model_copy(update={"last_active_at": utcnow()})

    async def read_session(self, session_id: str) -> Optional[SessionRecord]:
        return self._sessions.get(session_id)

    def messages(self, session_id: str) -> List[Tuple[str, ChatMessage]]:
        return [(mid, m) for mid, sid, m in self._messages if sid == session_id]

    def tool_calls(self, session_id: str) -> List[ToolCallRecord]:
        return [r for r in self._tool_calls.values() if r.session_id == session_id]
