# agentrun/tests/persistence/test_memory_store.py
import pytest

from agentrun.persistence.memory import InMemoryStore
from agentrun.schemas.messages import ChatMessage
from agentrun.schemas.records import ToolCallRecord, ToolCallStatus


@pytest.mark.asyncio
async def test_messages_get_stable_ids_per_session():
    store = InMemoryStore()
    store.create_session("s1")
    store.create_session("s2")
    a = await store.create_message("s1", ChatMessage.user("hi"))
    b = await store.create_message("s2", ChatMessage.user("yo"))
    assert a != b
    assert [mid for mid, _ in store.messages("s1")] == [a]
    assert store.messages("s2")[0][1].content == "yo"


@pytest.mark.asyncio
async def test_tool_call_records_get_their_own_ids():
    store = InMemoryStore()
    record = ToolCallRecord(
        tool_call_id="call_0", session_id="s1", tool_name="echo", status=ToolCallStatus.COMPLETED
    )
    first = await store.create_tool_call_record(record)
    second = await store.create_tool_call_record(record.model_copy(update={"session_id": "s2"}))

    assert first != second
    [stored] = store.tool_calls("s1")
    assert stored.id == first
    assert stored.tool_call_id == "call_0"
    assert store.tool_calls("s2")[0].id == second
    assert record.id is None


@pytest.mark.asyncio
async def test_sessions_and_last_active():
    store = InMemoryStore()
    created = store.create_session(user_id="u1", workspace_dir="/tmp/w")
    assert created.session_id

    before = created.last_active_at
    await store.update_session_last_active(created.session_id)
    updated = await store.read_session(created.session_id)
    assert updated.last_active_at >= before
    assert updated.user_id == "u1"

    assert await store.read_session("missing") is None
    # unknown sessions are ignored
    await store.update_session_last_active("missing")
