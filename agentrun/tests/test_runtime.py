# agentrun/tests/test_runtime.py
"""
Tests for the AgentRuntime composition root: session lifecycle and teardown.
"""
import pytest

from agentrun.exceptions import ConfigurationError
from agentrun.persistence.base import PersistenceStore
from agentrun.providers.replay_provider import ScriptedProvider, text_step, tool_step
from agentrun.runtime import AgentRuntime
from agentrun.schemas.messages import ToolCallRequest
from agentrun.schemas.records import FinishReason
from agentrun.schemas.runtime import TurnRequest
from agentrun.schemas.settings import AppSettings


def _settings(tmp_path):
    return AppSettings.from_config({"agent": {"workspace_root": str(tmp_path / "ws")}})


@pytest.mark.asyncio
async def test_created_sessions_can_run_turns(registry_factory, tmp_path):
    runtime = AgentRuntime(
        ScriptedProvider([text_step("hello")]), _settings(tmp_path), registry_factory=registry_factory
    )
    session = runtime.create_session(user_id="u1")

    result = await runtime.run_turn(TurnRequest(session_id=session.session_id, message="hi"))

    assert result.finish_reason is FinishReason.STOP
    assert (await runtime.store.read_session(session.session_id)).user_id == "u1"


@pytest.mark.asyncio
async def test_close_session_stops_the_turn_and_forgets_it(registry_factory, tmp_path):
    provider = ScriptedProvider(
        [tool_step(ToolCallRequest(id="c1", name="slow", arguments={"seconds": 5}))]
    )
    runtime = AgentRuntime(provider, _settings(tmp_path), registry_factory=registry_factory)
    runtime.create_session("s1")
    handle, _ = await runtime.start_turn(TurnRequest(session_id="s1", message="wait"))
    sub = handle.subscribe(replay=True)
    while (await sub.next(timeout=2)).type != "tool.start":
        pass

    await runtime.close_session("s1")

    assert handle.done
    assert (await handle.wait()).finish_reason is FinishReason.CANCELLED
    assert runtime.hub.latest("s1") is None
    assert runtime.policy.get_state("s1") is None


def test_external_store_rejects_session_creation(tmp_path):
    class _ExternalStore(PersistenceStore):
        async def create_message(self, session_id, message):
            return "m"

        async def create_tool_call_record(self, record):
            return "r"

        async def update_session_last_active(self, session_id):
            return None

        async def read_session(self, session_id):
            return None

    runtime = AgentRuntime(ScriptedProvider([]), _settings(tmp_path), store=_ExternalStore())
    assert runtime.manages_sessions is False
    with pytest.raises(ConfigurationError):
        runtime.create_session("s1")
