# agentrun/agents/scheduler.py
"""
The bounded continuation loop that drives one turn.

A turn alternates generation calls and tool executions until the model
answers without requesting tools, the step budget is spent, the wall-clock
budget runs out, or the client cancels. Every step's tool results are
appended to the history, paired with their call ids and in request order,
before the next generation call starts.

Tool-level problems never end a turn; they are fed back to the model as
failed tool results. Only a failed generation call or a failed persistence
write is fatal: the turn then publishes a terminal `error` event and stops
without a `message.complete`.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from agentrun.agents.task_manager import TaskManager
from agentrun.exceptions import GenerationError, PersistenceError, SchedulerError
from agentrun.persistence.base import PersistenceStore
from agentrun.providers.base import GenerationProvider
from agentrun.schemas.events import (
    AgentEvent,
    ErrorEvent,
    FileCreated,
    MessageComplete,
    MessageDelta,
    MessageStart,
    StepLimitReached,
    ToolApprovalRequired,
    ToolComplete,
    ToolErrorEvent,
    ToolProgress,
    ToolStart,
)
from agentrun.schemas.messages import (
    ChatMessage,
    ContentDelta,
    GenerationDone,
    ToolCallRequest,
)
from agentrun.schemas.records import FinishReason, ToolCallRecord, ToolCallStatus, TurnResult
from agentrun.schemas.runtime import TurnConfig, TurnRequest
from agentrun.schemas.tool import ToolSpec
from agentrun.schemas.tool_result import Artifact, ErrorCode, ToolFailure, ToolSuccess, err_result
from agentrun.tools.base import collect_commits
from agentrun.tools.executor import ToolExecutor
from agentrun.utils.log_sinks import bind_session, unbind_session
from agentrun.utils.logger import setup_logger
from agentrun.utils.redact import redact_for_log
from agentrun.utils.timing import Deadline, monotonic_ms

logger = setup_logger(__name__)

Publish = Callable[[AgentEvent], Any]


class _TurnTimeout(Exception):
    pass


class _TurnCancelled(Exception):
    pass


def _merge_artifacts(
    reported: Sequence[Artifact], committed: Sequence[Artifact]
) -> List[Artifact]:
    merged = list(reported)
    seen = {(a.file_id, a.name) for a in merged}
    for artifact in committed:
        if (artifact.file_id, artifact.name) not in seen:
            merged.append(artifact)
            seen.add((artifact.file_id, artifact.name))
    return merged


def trim_history(history: List[ChatMessage], limit: int) -> List[ChatMessage]:
    """Keep the newest `limit` messages without orphaning tool results."""
    trimmed = list(history[-limit:]) if limit else list(history)
    while trimmed and trimmed[0].role == "tool":
        trimmed.pop(0)
    return trimmed


class TurnScheduler:
    def __init__(
        self,
        provider: GenerationProvider,
        policy: TaskManager,
        store: PersistenceStore,
        *,
        history_limit: int = 50,
    ):
        self.provider = provider
        self.policy = policy
        self.store = store
        self.history_limit = history_limit

    async def run(
        self,
        request: TurnRequest,
        *,
        executor: ToolExecutor,
        publish: Publish,
        config: Optional[TurnConfig] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> TurnResult:
        """Run one turn to completion and return its outcome.

        Events go to `publish` in order. The final assistant message and every
        executed tool call are persisted before their completion events.
        """
        config = config or request.config or TurnConfig()
        token = bind_session(request.session_id)
        turn = _Turn(self, request, executor, publish, config, cancel)
        try:
            return await turn.run()
        finally:
            self.policy.end_turn(request.session_id)
            unbind_session(token)


class _Turn:
    """State of one in-flight turn. Discarded when the turn ends."""

    def __init__(
        self,
        scheduler: TurnScheduler,
        request: TurnRequest,
        executor: ToolExecutor,
        publish: Publish,
        config: TurnConfig,
        cancel: Optional[asyncio.Event],
    ):
        self.s = scheduler
        self.request = request
        self.session_id = request.session_id
        self.executor = executor
        self.publish = publish
        self.config = config
        self.cancel = cancel
        self.deadline = Deadline(config.max_duration_ms)
        self.messages: List[ChatMessage] = trim_history(
            request.history, scheduler.history_limit
        )
        self.content_parts: List[str] = []
        self.steps = 0
        self.catalog: List[ToolSpec] = executor.registry.catalog()

    # --- helpers ---

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    async def _persist(self, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Persistence write failed: {e}") from e

    async def _race(self, coro: Awaitable[Any], timeout_ms: Optional[int] = None) -> Any:
        """Await `coro`, giving up on cancellation or after `timeout_ms`.

        :raises _TurnCancelled: if the cancel flag was set first.
        :raises _TurnTimeout: if `timeout_ms` elapsed first.
        """
        task = asyncio.ensure_future(coro)
        waiters = {task}
        cancel_waiter = None
        if self.cancel is not None:
            cancel_waiter = asyncio.ensure_future(self.cancel.wait())
            waiters.add(cancel_waiter)
        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=None if timeout_ms is None else timeout_ms / 1000.0,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except BaseException:
            task.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if task in done:
            return task.result()
        await self._abandon(task)
        if self._cancelled():
            raise _TurnCancelled()
        raise _TurnTimeout()

    @staticmethod
    async def _abandon(task: "asyncio.Future[Any]") -> None:
        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Abandoned task finished with error: %s", task.exception())

    # --- main loop ---

    async def run(self) -> TurnResult:
        started = monotonic_ms()
        try:
            finish = await self._loop()
            return await self._finish(finish, started)
        except SchedulerError as e:
            return self._fail(e.code, str(e), started)
        except Exception as e:
            logger.exception("Unexpected scheduler failure")
            return self._fail(SchedulerError.code, f"{type(e).__name__}: {e}", started)

    async def _loop(self) -> FinishReason:
        user_message = ChatMessage.user(self.request.message)
        self.s.policy.begin_turn(self.session_id, self.request.user_id, self.request.message)
        await self._persist(self.s.store.create_message(self.session_id, user_message))
        self.messages.append(user_message)
        self.publish(MessageStart())

        while self.steps < self.config.max_steps:
            if self._cancelled():
                return FinishReason.CANCELLED
            if self.deadline.expired():
                return FinishReason.TIMEOUT

            try:
                content, calls = await self._race(
                    self._generate(), timeout_ms=self.deadline.remaining_ms()
                )
            except _TurnCancelled:
                return FinishReason.CANCELLED
            except _TurnTimeout:
                logger.warning("Turn deadline reached during generation")
                return FinishReason.TIMEOUT

            if content:
                self.content_parts.append(content)
            if not calls:
                return FinishReason.STOP

            self.messages.append(ChatMessage.assistant(content, calls))
            outcome = await self._run_step_calls(calls)
            self.steps += 1
            if outcome is not None:
                return outcome

        self.publish(
            StepLimitReached(
                reason=f"Reached the maximum of {self.config.max_steps} tool steps",
                steps_taken=self.steps,
            )
        )
        return FinishReason.MAX_STEPS

    async def _generate(self) -> Tuple[str, List[ToolCallRequest]]:
        outgoing = list(self.messages)
        context = self.s.policy.get_system_prompt_context(self.session_id)
        if context:
            outgoing.insert(0, ChatMessage.system(context))

        parts: List[str] = []
        calls: List[ToolCallRequest] = []
        try:
            async for chunk in self.s.provider.stream_chat(outgoing, self.catalog):
                if isinstance(chunk, ContentDelta):
                    if chunk.content:
                        parts.append(chunk.content)
                        self.publish(MessageDelta(content=chunk.content))
                elif isinstance(chunk, ToolCallRequest):
                    calls.append(chunk)
                elif isinstance(chunk, GenerationDone):
                    break
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Generation call failed: {e}", cause=e) from e
        return "".join(parts), calls

    async def _run_step_calls(self, calls: List[ToolCallRequest]) -> Optional[FinishReason]:
        for index, call in enumerate(calls):
            if self._cancelled():
                self._skip(calls[index:], ErrorCode.CANCELLED, "Turn was cancelled")
                return FinishReason.CANCELLED
            if self.deadline.expired():
                self._skip(calls[index:], ErrorCode.TIMEOUT, "Turn deadline reached")
                return FinishReason.TIMEOUT
            interrupted = await self._run_call(call)
            if interrupted is not None:
                self._skip(calls[index + 1 :], ErrorCode.CANCELLED, "Turn was cancelled")
                return interrupted
        if self.deadline.expired():
            return FinishReason.TIMEOUT
        return None

    def _skip(self, calls: List[ToolCallRequest], code: ErrorCode, reason: str) -> None:
        # every request still needs a paired result in history
        for call in calls:
            result = err_result(code, f"Not executed: {reason}")
            self._append_result(call, result)

    def _append_result(self, call: ToolCallRequest, result: ToolSuccess | ToolFailure) -> None:
        self.messages.append(
            ChatMessage.tool(call.id, call.name, json.dumps(result.to_payload(), default=str))
        )

    async def _run_call(self, call: ToolCallRequest) -> Optional[FinishReason]:
        try:
            params = call.parsed_arguments()
        except ValueError as e:
            self.publish(ToolStart(tool_call_id=call.id, tool_name=call.name, params={}))
            result = err_result(
                ErrorCode.INVALID_PARAMS,
                f"Arguments are not a valid JSON object: {e}",
                issues=["<root>: malformed JSON arguments"],
            )
            await self._complete_call(call, {}, result, record_policy=False)
            return None

        self.publish(ToolStart(tool_call_id=call.id, tool_name=call.name, params=params))

        decision = self.s.policy.should_allow_tool_call(self.session_id, call.name, params)
        if not decision.allowed:
            logger.info(
                "Tool call rejected by policy",
                extra={"tool": call.name, "rule": decision.rule, "params": redact_for_log(params)},
            )
            result = err_result(ErrorCode.REJECTED, decision.reason or "Rejected by policy")
            self._append_result(call, result)
            self.publish(ToolErrorEvent(tool_call_id=call.id, error=result.error, duration=0))
            return None

        def _progress(current: int, total: int, message: Optional[str] = None) -> None:
            self.publish(
                ToolProgress(tool_call_id=call.id, current=current, total=total, message=message)
            )

        def _approval(tool_call_id: str, tool_name: str, p: dict) -> None:
            self.publish(
                ToolApprovalRequired(tool_call_id=tool_call_id, tool_name=tool_name, params=p)
            )

        started = monotonic_ms()
        interrupted: Optional[FinishReason] = None
        with collect_commits() as committed:
            try:
                result = await self._race(
                    self.executor.execute(
                        call.name,
                        params,
                        tool_call_id=call.id,
                        on_progress=_progress,
                        deadline_ms=self.deadline.remaining_ms(),
                        on_approval_requested=_approval,
                    )
                )
            except _TurnCancelled:
                logger.warning("Tool '%s' interrupted by cancellation", call.name)
                landed = ", ".join(a.name for a in committed) or "none reported"
                result = err_result(
                    ErrorCode.CANCELLED,
                    f"Tool '{call.name}' was cancelled before it finished; "
                    f"side effects already committed: {landed}",
                    duration_ms=monotonic_ms() - started,
                )
                interrupted = FinishReason.CANCELLED

        await self._complete_call(call, params, result, committed=committed)
        return interrupted

    async def _complete_call(
        self,
        call: ToolCallRequest,
        params: dict,
        result: ToolSuccess | ToolFailure,
        *,
        record_policy: bool = True,
        committed: Sequence[Artifact] = (),
    ) -> None:
        if record_policy:
            self.s.policy.record_tool_call(self.session_id, call.name, params, result)

        if result.success:
            status = ToolCallStatus.COMPLETED
        elif result.error_code == ErrorCode.CANCELLED:
            status = ToolCallStatus.CANCELLED
        else:
            status = ToolCallStatus.FAILED
        artifacts = _merge_artifacts(result.artifacts, committed)
        payload = result.to_payload()
        await self._persist(
            self.s.store.create_tool_call_record(
                ToolCallRecord(
                    tool_call_id=call.id,
                    session_id=self.session_id,
                    tool_name=call.name,
                    parameters=params,
                    result=payload,
                    status=status,
                    artifacts=artifacts,
                    duration_ms=result.duration_ms,
                )
            )
        )

        for artifact in artifacts:
            if artifact.file_id:
                self.publish(
                    FileCreated(
                        file_id=artifact.file_id,
                        filename=artifact.name,
                        mime_type=artifact.mime_type,
                        size=artifact.size,
                        type=artifact.type,
                    )
                )

        self._append_result(call, result)
        if result.success:
            wire = [a.model_dump(by_alias=True) for a in artifacts]
            self.publish(
                ToolComplete(
                    tool_call_id=call.id,
                    result=payload,
                    duration=result.duration_ms,
                    artifacts=wire or None,
                )
            )
        else:
            self.publish(
                ToolErrorEvent(tool_call_id=call.id, error=result.error, duration=result.duration_ms)
            )

    # --- endings ---

    async def _finish(self, reason: FinishReason, started: int) -> TurnResult:
        final_content = "".join(self.content_parts)
        message_id = await self._persist(
            self.s.store.create_message(self.session_id, ChatMessage.assistant(final_content))
        )
        await self._persist(self.s.store.update_session_last_active(self.session_id))
        reflection = self.s.policy.reflect(self.session_id)
        logger.info(
            "Turn finished",
            extra={
                "finish_reason": reason.value,
                "steps": self.steps,
                "next_action": reflection.next_action,
            },
        )
        self.publish(
            MessageComplete(
                assistant_message_id=message_id, finish_reason=reason, steps_taken=self.steps
            )
        )
        return TurnResult(
            session_id=self.session_id,
            final_content=final_content,
            finish_reason=reason,
            steps_taken=self.steps,
            assistant_message_id=message_id,
            duration_ms=monotonic_ms() - started,
        )

    def _fail(self, code: str, message: str, started: int) -> TurnResult:
        logger.error("Turn aborted: %s: %s", code, message)
        self.s.policy.fail_task(self.session_id, message)
        self.publish(ErrorEvent(code=code, message=message))
        return TurnResult(
            session_id=self.session_id,
            final_content="".join(self.content_parts),
            finish_reason=FinishReason.ERROR,
            steps_taken=self.steps,
            error_code=code,
            error_message=message,
            duration_ms=monotonic_ms() - started,
        )
