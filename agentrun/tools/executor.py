# agentrun/tools/executor.py
"""
Runs one tool call: lookup, validation, confirmation, deadline, error mapping.

`ToolExecutor.execute()` never raises for tool-level problems. Every outcome,
including an unknown tool name or a crashing tool, comes back as a
`ToolResult`. Only task cancellation propagates, so the scheduler can stop a
turn mid-call.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from agentrun.exceptions import (
    SandboxNotRunningError,
    SandboxUnavailableError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolValidationError,
)
from agentrun.schemas.tool_result import (
    ErrorCode,
    ToolFailure,
    ToolSuccess,
    err_result,
    with_duration,
)
from agentrun.tools.approvals import ApprovalDecision, ApprovalGate
from agentrun.tools.base import ProgressCallback, Tool
from agentrun.tools.registry import ToolRegistry
from agentrun.tools.schema_validation import validate_params
from agentrun.utils.logger import setup_logger
from agentrun.utils.redact import redact_for_log
from agentrun.utils.timing import Deadline, monotonic_ms

logger = setup_logger(__name__)

# (tool_call_id, tool_name, params)
ApprovalNotifier = Callable[[str, str, Dict[str, Any]], Optional[Awaitable[None]]]


def _min_budget(*values: Optional[int]) -> Optional[int]:
    present = [int(v) for v in values if v is not None]
    return min(present) if present else None


class ToolExecutor:
    def __init__(
        self,
        registry: ToolRegistry,
        *,
        approval_gate: Optional[ApprovalGate] = None,
        require_approval: Iterable[str] = (),
        approval_timeout_ms: int = 5 * 60 * 1000,
        timeouts_ms: Optional[Dict[str, int]] = None,
        session_id: str = "",
    ):
        self.registry = registry
        self.approval_gate = approval_gate
        self.require_approval = frozenset(require_approval)
        self.approval_timeout_ms = approval_timeout_ms
        self.timeouts_ms = dict(timeouts_ms or {})
        self.session_id = session_id

    def requires_confirmation(self, tool: Tool) -> bool:
        return tool.descriptor.requires_confirmation or tool.name in self.require_approval

    def timeout_for(self, tool: Tool) -> int:
        return int(self.timeouts_ms.get(tool.name, tool.descriptor.timeout_ms))

    async def execute(
        self,
        name: str,
        raw_params: Any,
        *,
        tool_call_id: str = "",
        on_progress: Optional[ProgressCallback] = None,
        deadline_ms: Optional[int] = None,
        on_approval_requested: Optional[ApprovalNotifier] = None,
    ) -> ToolSuccess | ToolFailure:
        """Execute a tool by name.

        :param name: Registered tool name.
        :param raw_params: Parameters as produced by the model (unvalidated).
        :param tool_call_id: Id of the call; keys approval requests.
        :param on_progress: Sink that receives progress updates verbatim.
        :param deadline_ms: Caller's remaining budget; the effective deadline is
            the smaller of this and the tool's own timeout.
        :param on_approval_requested: Invoked before waiting on a confirmation.
        :return: A success or a failure tagged with an `ErrorCode`.
        """
        started = monotonic_ms()
        budget = Deadline(deadline_ms)

        def _done(result: ToolSuccess | ToolFailure) -> ToolSuccess | ToolFailure:
            return with_duration(result, monotonic_ms() - started)

        # 1. lookup
        try:
            tool = self.registry.get(name)
        except ToolNotFoundError as e:
            logger.warning("Unknown tool requested: %s", name)
            return _done(err_result(ErrorCode.NOT_FOUND, str(e)))

        # 2. validation
        if not isinstance(raw_params, dict):
            return _done(
                err_result(
                    ErrorCode.INVALID_PARAMS,
                    "Parameters must be a JSON object",
                    issues=["<root>: expected an object"],
                )
            )
        issues = validate_params(tool.descriptor.input_schema, raw_params)
        if issues:
            logger.info(
                "Rejected invalid parameters for '%s'",
                name,
                extra={"issues": issues, "params": redact_for_log(raw_params)},
            )
            return _done(
                err_result(
                    ErrorCode.INVALID_PARAMS,
                    f"Invalid parameters for '{name}': " + "; ".join(issues),
                    issues=issues,
                )
            )
        params = dict(raw_params)

        # 3. confirmation
        if self.requires_confirmation(tool):
            denied = await self._await_approval(
                tool, tool_call_id, params, budget, on_approval_requested
            )
            if denied is not None:
                return _done(denied)

        # 4. run under deadline
        timeout_ms = _min_budget(self.timeout_for(tool), budget.remaining_ms())
        progress = self._wrap_progress(name, on_progress)
        logger.info(
            "Executing tool '%s'",
            name,
            extra={"params": redact_for_log(params), "timeout_ms": timeout_ms},
        )
        try:
            result = await asyncio.wait_for(
                tool.execute(params, progress), timeout=timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            logger.error("Tool '%s' timed out after %s ms", name, timeout_ms)
            return with_duration(
                err_result(ErrorCode.TIMEOUT, f"Tool '{name}' timed out after {timeout_ms} ms"),
                max(timeout_ms, monotonic_ms() - started),
            )
        except ToolValidationError as e:
            return _done(err_result(ErrorCode.INVALID_PARAMS, str(e), issues=e.issues))
        except SandboxNotRunningError as e:
            return _done(err_result(ErrorCode.NOT_RUNNING, str(e)))
        except SandboxUnavailableError as e:
            logger.error("Sandbox unavailable for tool '%s': %s", name, e)
            return _done(err_result(ErrorCode.SANDBOX_UNAVAILABLE, str(e)))
        except ToolExecutionError as e:
            logger.error("Tool '%s' failed: %s", name, e)
            return _done(err_result(ErrorCode.EXECUTION_ERROR, str(e)))
        except Exception as e:
            logger.exception("Unexpected exception in tool '%s'", name)
            return _done(
                err_result(ErrorCode.EXECUTION_ERROR, f"{type(e).__name__}: {e}")
            )

        if not isinstance(result, (ToolSuccess, ToolFailure)):
            return _done(
                err_result(
                    ErrorCode.EXECUTION_ERROR,
                    f"Tool '{name}' returned {type(result).__name__}, not a ToolResult",
                )
            )
        return _done(result)

    async def _await_approval(
        self,
        tool: Tool,
        tool_call_id: str,
        params: Dict[str, Any],
        budget: Deadline,
        notify: Optional[ApprovalNotifier],
    ) -> Optional[ToolFailure]:
        if self.approval_gate is None:
            return err_result(
                ErrorCode.APPROVAL_DENIED,
                f"Tool '{tool.name}' requires confirmation and no approval channel is configured",
            )
        if notify is not None:
            maybe = notify(tool_call_id, tool.name, params)
            if asyncio.iscoroutine(maybe):
                await maybe
        decision = await self.approval_gate.request(
            self.session_id,
            tool_call_id,
            tool.name,
            params,
            timeout_ms=_min_budget(self.approval_timeout_ms, budget.remaining_ms()),
        )
        if decision is not ApprovalDecision.APPROVED:
            return err_result(
                ErrorCode.APPROVAL_DENIED, f"Execution of '{tool.name}' was not approved"
            )
        return None

    @staticmethod
    def _wrap_progress(name: str, sink: Optional[ProgressCallback]) -> ProgressCallback:
        def _forward(current: int, total: int, message: Optional[str] = None) -> None:
            if sink is None:
                return
            try:
                sink(current, total, message)
            except Exception as e:
                # a broken sink must not fail the tool
                logger.warning("Progress sink for '%s' failed: %s", name, e)

        return _forward
