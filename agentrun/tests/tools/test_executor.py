# agentrun/tests/tools/test_executor.py
"""
Unit tests for ToolExecutor: lookup, validation, confirmation, deadlines and
error mapping. The executor never raises for tool-level problems.
"""
from unittest.mock import AsyncMock

import pytest

from agentrun.exceptions import (
    SandboxNotRunningError,
    SandboxUnavailableError,
    ToolExecutionError,
    ToolValidationError,
)
from agentrun.schemas.tool import ToolDescriptor
from agentrun.schemas.tool_result import ErrorCode, ok_result
from agentrun.tools.approvals import ApprovalGate
from agentrun.tools.base import Tool
from agentrun.tools.executor import ToolExecutor
from agentrun.tools.registry import ToolRegistry


class _MockedTool(Tool):
    descriptor = ToolDescriptor(
        name="mocked",
        description="Test double whose execute is an AsyncMock.",
        input_schema={
            "type": "object",
            "properties": {"path": {"type": "string"}, "content": {"type": "string"}},
            "required": ["path", "content"],
        },
    )

    def __init__(self, context, impl):
        super().__init__(context)
        self.impl = impl

    async def execute(self, params, on_progress=None):
        return await self.impl(params, on_progress)


def _executor_for(context, execute, **kwargs):
    return ToolExecutor(ToolRegistry([_MockedTool(context, execute)]), session_id="sess-1", **kwargs)


@pytest.mark.asyncio
async def test_unknown_tool_returns_not_found(executor):
    result = await executor.execute("nope", {})
    assert result.success is False
    assert result.error_code is ErrorCode.NOT_FOUND
    assert "nope" in result.error


@pytest.mark.asyncio
async def test_missing_required_field_is_reported_without_running(context):
    execute = AsyncMock(return_value=ok_result("x"))
    executor = _executor_for(context, execute)

    result = await executor.execute("mocked", {"path": "a.txt"})

    assert result.error_code is ErrorCode.INVALID_PARAMS
    assert result.issues == ["content: required field is missing"]
    assert "content" in result.error
    execute.assert_not_called()


@pytest.mark.asyncio
async def test_non_object_params_are_invalid(context):
    execute = AsyncMock()
    result = await _executor_for(context, execute).execute("mocked", ["a"])
    assert result.error_code is ErrorCode.INVALID_PARAMS
    execute.assert_not_called()


@pytest.mark.asyncio
async def test_success_is_stamped_with_duration(executor, echo_tool):
    result = await executor.execute("echo", {"text": "hi"})
    assert result.success is True
    assert result.output == "hi"
    assert result.duration_ms >= 0
    assert echo_tool.calls == [{"text": "hi"}]


@pytest.mark.asyncio
async def test_tool_timeout(context, slow_tool):
    executor = ToolExecutor(ToolRegistry([slow_tool]), timeouts_ms={"slow": 50})
    result = await executor.execute("slow", {"seconds": 5})
    assert result.error_code is ErrorCode.TIMEOUT
    assert result.duration_ms >= 50
    assert slow_tool.was_cancelled


@pytest.mark.asyncio
async def test_caller_deadline_caps_the_tool_timeout(executor, slow_tool):
    result = await executor.execute("slow", {"seconds": 5}, deadline_ms=30)
    assert result.error_code is ErrorCode.TIMEOUT
    assert slow_tool.was_cancelled


@pytest.mark.parametrize(
    "exc, code",
    [
        (ToolValidationError("bad path", issues=["path"]), ErrorCode.INVALID_PARAMS),
        (SandboxNotRunningError("gone"), ErrorCode.NOT_RUNNING),
        (SandboxUnavailableError("no docker"), ErrorCode.SANDBOX_UNAVAILABLE),
        (ToolExecutionError("disk full"), ErrorCode.EXECUTION_ERROR),
        (ZeroDivisionError("oops"), ErrorCode.EXECUTION_ERROR),
    ],
)
@pytest.mark.asyncio
async def test_exceptions_are_mapped_to_failures(context, exc, code):
    executor = _executor_for(context, AsyncMock(side_effect=exc))
    result = await executor.execute("mocked", {"path": "a", "content": "b"})
    assert result.success is False
    assert result.error_code is code


@pytest.mark.asyncio
async def test_non_result_return_is_an_execution_error(context):
    executor = _executor_for(context, AsyncMock(return_value="just a string"))
    result = await executor.execute("mocked", {"path": "a", "content": "b"})
    assert result.error_code is ErrorCode.EXECUTION_ERROR


@pytest.mark.asyncio
async def test_progress_is_forwarded_and_broken_sinks_are_contained(context):
    async def _execute(params, on_progress):
        on_progress(1, 3, "one")
        on_progress(3, 3, None)
        return ok_result("ok")

    seen = []
    executor = _executor_for(context, _execute)
    result = await executor.execute(
        "mocked", {"path": "a", "content": "b"}, on_progress=lambda c, t, m: seen.append((c, t, m))
    )
    assert result.success
    assert seen == [(1, 3, "one"), (3, 3, None)]

    def _broken(c, t, m):
        raise RuntimeError("sink down")

    result = await executor.execute("mocked", {"path": "a", "content": "b"}, on_progress=_broken)
    assert result.success


@pytest.mark.asyncio
async def test_confirmation_without_gate_fails_closed(executor, confirm_tool):
    result = await executor.execute("dangerous", {})
    assert result.error_code is ErrorCode.APPROVAL_DENIED
    assert confirm_tool.runs == 0


@pytest.mark.asyncio
async def test_confirmation_approved(registry, confirm_tool, auto_decide):
    gate = ApprovalGate()
    executor = ToolExecutor(registry, approval_gate=gate, session_id="sess-1")
    notified = []

    def _notify(tool_call_id, tool_name, params):
        notified.append((tool_call_id, tool_name))
        auto_decide(gate, "sess-1", "approved")(tool_call_id, tool_name, params)

    result = await executor.execute("dangerous", {}, tool_call_id="c1", on_approval_requested=_notify)
    assert result.success
    assert notified == [("c1", "dangerous")]
    assert confirm_tool.runs == 1


@pytest.mark.asyncio
async def test_confirmation_denied(registry, confirm_tool, auto_decide):
    gate = ApprovalGate()
    executor = ToolExecutor(registry, approval_gate=gate, session_id="sess-1")
    result = await executor.execute(
        "dangerous", {}, tool_call_id="c1", on_approval_requested=auto_decide(gate, "sess-1", "denied")
    )
    assert result.error_code is ErrorCode.APPROVAL_DENIED
    assert confirm_tool.runs == 0


@pytest.mark.asyncio
async def test_unanswered_confirmation_times_out_as_denied(registry, echo_tool):
    gate = ApprovalGate()
    executor = ToolExecutor(
        registry,
        approval_gate=gate,
        require_approval=["echo"],
        approval_timeout_ms=20,
        session_id="sess-1",
    )
    result = await executor.execute("echo", {"text": "hi"}, tool_call_id="c9")
    assert result.error_code is ErrorCode.APPROVAL_DENIED
    assert echo_tool.calls == []
    assert gate.list_pending("sess-1") == []
