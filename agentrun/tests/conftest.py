# agentrun/tests/conftest.py
"""
Shared fixtures and small tool doubles for the agentrun test suite.
"""
import asyncio
from pathlib import Path
from typing import Any, Dict, List

import pytest

from agentrun.agents.task_manager import TaskManager
from agentrun.persistence.memory import InMemoryStore
from agentrun.schemas.tool import ToolDescriptor
from agentrun.schemas.tool_result import ok_result
from agentrun.tools.approvals import ApprovalGate
from agentrun.tools.base import Tool, ToolContext
from agentrun.tools.executor import ToolExecutor
from agentrun.tools.registry import ToolRegistry


class EchoTool(Tool):
    descriptor = ToolDescriptor(
        name="echo",
        description="Echo the given text.",
        input_schema={
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
    )

    def __init__(self, context: ToolContext):
        super().__init__(context)
        self.calls: List[Dict[str, Any]] = []

    async def execute(self, params, on_progress=None):
        self.calls.append(params)
        return ok_result(params["text"])


class SlowTool(Tool):
    descriptor = ToolDescriptor(
        name="slow",
        description="Sleep for a while.",
        input_schema={"type": "object", "properties": {"seconds": {"type": "number"}}},
        timeout_ms=60_000,
    )

    def __init__(self, context: ToolContext):
        super().__init__(context)
        self.started = asyncio.Event()
        self.was_cancelled = False

    async def execute(self, params, on_progress=None):
        self.started.set()
        try:
            await asyncio.sleep(params.get("seconds", 5))
        except asyncio.CancelledError:
            self.was_cancelled = True
            raise
        return ok_result("slept")


class ConfirmTool(Tool):
    descriptor = ToolDescriptor(
        name="dangerous",
        description="Needs a human to say yes.",
        input_schema={"type": "object", "properties": {}},
        requires_confirmation=True,
    )

    def __init__(self, context: ToolContext):
        super().__init__(context)
        self.runs = 0

    async def execute(self, params, on_progress=None):
        self.runs += 1
        return ok_result("done")


def _auto_decide(gate: ApprovalGate, session_id: str, decision: str = "approved"):
    """Approval notifier that answers on the next loop iteration, once the gate is waiting."""

    def _notify(tool_call_id, tool_name, params):
        asyncio.get_running_loop().call_soon(gate.decide, session_id, tool_call_id, decision)

    return _notify


@pytest.fixture
def workspace(tmp_path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def context(workspace) -> ToolContext:
    return ToolContext(session_id="sess-1", workspace_dir=workspace)


@pytest.fixture
def store() -> InMemoryStore:
    s = InMemoryStore()
    s.create_session("sess-1")
    return s


@pytest.fixture
def policy() -> TaskManager:
    return TaskManager()


@pytest.fixture
def echo_tool(context) -> EchoTool:
    return EchoTool(context)


@pytest.fixture
def slow_tool(context) -> SlowTool:
    return SlowTool(context)


@pytest.fixture
def confirm_tool(context) -> ConfirmTool:
    return ConfirmTool(context)


@pytest.fixture
def registry(echo_tool, slow_tool, confirm_tool) -> ToolRegistry:
    return ToolRegistry([echo_tool, slow_tool, confirm_tool])


@pytest.fixture
def executor(registry) -> ToolExecutor:
    return ToolExecutor(registry, session_id="sess-1")


@pytest.fixture
def registry_factory():
    """Registry factory for the turn hub: fresh test tools per session context."""

    def _factory(ctx: ToolContext) -> ToolRegistry:
        return ToolRegistry([EchoTool(ctx), SlowTool(ctx), ConfirmTool(ctx)])

    return _factory


@pytest.fixture
def auto_decide():
    return _auto_decide
