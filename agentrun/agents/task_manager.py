# agentrun/agents/task_manager.py
"""
Goal tracking and tool-call gating for a session.

The `TaskManager` keeps one `TaskState` per session and answers, before any
tool runs, whether the call should be allowed. The rules are applied in a
fixed order:

1. duplicate suppression (same tool, same normalized parameters, inside the
   cool-down window);
2. rate limiting (per tool, rolling window);
3. terminal-artifact lock (no discovery tools once a deliverable exists);
4. progress-query lock (no tools at all while answering a status question).

Only executed calls are recorded; a rejected call leaves no trace in the
counters. State is mutated only from the turn that owns the session.
"""
from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, Optional

from agentrun.agents.goal_classifier import infer_goal, is_progress_query
from agentrun.schemas.settings import PolicySettings
from agentrun.schemas.task import (
    PolicyDecision,
    ReflectionResult,
    TaskPhase,
    TaskState,
    ToolCallHistoryEntry,
)
from agentrun.schemas.tool_result import ToolFailure, ToolSuccess
from agentrun.utils.logger import setup_logger
from agentrun.utils.timing import monotonic_ms

logger = setup_logger(__name__)

_WS = re.compile(r"\s+")
_SUMMARY_CHARS = 200


def normalize_params(value: Any) -> Any:
    """Canonical form used for duplicate detection.

    Keys are sorted, `None` values dropped, strings stripped with runs of
    whitespace collapsed. Lists keep their order.
    """
    if isinstance(value, dict):
        return {
            str(k): normalize_params(v)
            for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))
            if v is not None
        }
    if isinstance(value, (list, tuple)):
        return [normalize_params(v) for v in value]
    if isinstance(value, str):
        return _WS.sub(" ", value.strip())
    return value


def canonical_params(params: Dict[str, Any]) -> str:
    return json.dumps(normalize_params(params or {}), sort_keys=True, default=str)


class TaskManager:
    def __init__(
        self,
        settings: Optional[PolicySettings] = None,
        clock: Callable[[], int] = monotonic_ms,
    ):
        """
        :param settings: Windows, limits and tool classes.
        :param clock: Millisecond clock; injectable for tests.
        """
        self.settings = settings or PolicySettings()
        self._clock = clock
        self._states: Dict[str, TaskState] = {}

    # --- lifecycle ---

    def initialize(self, session_id: str, user_id: Optional[str], goal_text: str) -> TaskState:
        """Create (or replace) the task state for a new top-level goal."""
        state = TaskState(session_id=session_id, user_id=user_id, goal=infer_goal(goal_text))
        self._states[session_id] = state
        logger.info(
            "Task initialized",
            extra={
                "requires_search": state.goal.requires_search,
                "requires_document": state.goal.requires_document,
            },
        )
        return state

    def begin_turn(self, session_id: str, user_id: Optional[str], message: str) -> TaskState:
        """Classify the triggering message and prepare state for the turn.

        A status question keeps the current task and locks out every tool for
        this turn; anything else starts a new task.
        """
        if is_progress_query(message):
            state = self._states.get(session_id)
            if state is None:
                state = self.initialize(session_id, user_id, message)
            state.progress_query = True
            state.touch()
            logger.info("Progress query detected; tool calls locked for this turn")
            return state
        return self.initialize(session_id, user_id, message)

    def end_turn(self, session_id: str) -> None:
        state = self._states.get(session_id)
        if state is not None:
            state.progress_query = False

    def get_state(self, session_id: str) -> Optional[TaskState]:
        return self._states.get(session_id)

    def complete_task(self, session_id: str) -> None:
        state = self._states.get(session_id)
        if state is not None:
            state.phase = TaskPhase.COMPLETED
            state.touch()

    def fail_task(self, session_id: str, reason: str) -> None:
        state = self._states.get(session_id)
        if state is not None:
            state.phase = TaskPhase.FAILED
            state.touch()
            logger.warning("Task failed: %s", reason)

    def clear(self, session_id: str) -> None:
        self._states.pop(session_id, None)

    # --- gating ---

    def should_allow_tool_call(
        self, session_id: str, tool_name: str, params: Dict[str, Any]
    ) -> PolicyDecision:
        state = self._states.get(session_id)
        if state is None:
            return PolicyDecision.allow()

        now = self._clock()
        key = canonical_params(params)

        cooldown = self.settings.duplicate_cooldown_ms
        for entry in reversed(state.history):
            if entry.tool_name == tool_name and entry.normalized_params == key:
                age = now - entry.timestamp_ms
                if age < cooldown:
                    return PolicyDecision.reject(
                        "duplicate",
                        f"Duplicate call: '{tool_name}' was already called with the same "
                        f"parameters {age // 1000}s ago. Use the earlier result instead.",
                    )
                break

        window = self.settings.rate_window_ms
        recent = self._recent_calls(state, tool_name, now)
        limit = self.settings.rate_limit_for(tool_name)
        if len(recent) >= limit:
            return PolicyDecision.reject(
                "rate_limit",
                f"Rate limit: '{tool_name}' was called {len(recent)} times in the last "
                f"{window // 1000}s (limit {limit}). Work with the results you have.",
            )

        if state.terminal_artifact is not None and tool_name in self.settings.discovery_tools:
            return PolicyDecision.reject(
                "terminal_lock",
                f"'{state.terminal_artifact.name}' has already been generated. "
                f"Report completion instead of calling '{tool_name}' again.",
            )

        if state.progress_query:
            return PolicyDecision.reject(
                "progress_query",
                "The user asked for a status update. Report the current state "
                "without calling tools.",
            )

        return PolicyDecision.allow()

    def _recent_calls(self, state: TaskState, tool_name: str, now: int) -> list:
        cutoff = now - self.settings.rate_window_ms
        times = [t for t in state.call_times.get(tool_name, []) if t > cutoff]
        state.call_times[tool_name] = times
        return times

    def record_tool_call(
        self,
        session_id: str,
        tool_name: str,
        params: Dict[str, Any],
        result: ToolSuccess | ToolFailure,
    ) -> None:
        state = self._states.get(session_id)
        if state is None:
            return
        now = self._clock()
        summary = (result.output if result.success else result.error) or ""
        state.history.append(
            ToolCallHistoryEntry(
                tool_name=tool_name,
                normalized_params=canonical_params(params),
                timestamp_ms=now,
                success=result.success,
                summary=summary[:_SUMMARY_CHARS],
            )
        )
        state.call_times.setdefault(tool_name, []).append(now)
        if state.phase == TaskPhase.PLANNING:
            state.phase = TaskPhase.EXECUTING

        if result.success:
            if tool_name in self.settings.discovery_tools:
                state.search_results += 1
            if tool_name in self.settings.terminal_tools and result.artifacts:
                state.terminal_artifact = result.artifacts[0]
                logger.info("Terminal artifact recorded: %s", result.artifacts[0].name)
        state.touch()

    # --- reflection & rendering ---

    def _artifacts_satisfied(self, state: TaskState) -> Dict[str, bool]:
        checks = {
            "document": state.terminal_artifact is not None,
            "search_results": state.search_results > 0,
        }
        return {a: checks.get(a, False) for a in state.goal.expected_artifacts}

    def reflect(self, session_id: str) -> ReflectionResult:
        state = self._states.get(session_id)
        if state is None:
            return ReflectionResult(
                is_complete=False,
                should_continue=False,
                next_action="respond",
                reasoning="No active task found",
            )
        state.touch()
        satisfied = self._artifacts_satisfied(state)

        if state.terminal_artifact is not None and state.goal.requires_document:
            state.phase = TaskPhase.COMPLETED
            return ReflectionResult(
                is_complete=True,
                should_continue=False,
                next_action="complete",
                reasoning=f"Generated {state.terminal_artifact.name}. Task complete.",
            )
        if satisfied and all(satisfied.values()):
            state.phase = TaskPhase.COMPLETED
            return ReflectionResult(
                is_complete=True,
                should_continue=False,
                next_action="respond",
                reasoning=f"All {len(satisfied)} expected results are available.",
            )
        if not state.history:
            return ReflectionResult(
                is_complete=False,
                should_continue=True,
                next_action="continue",
                reasoning="No tools have run yet for this task.",
            )
        missing = [name for name, ok in satisfied.items() if not ok]
        if missing:
            return ReflectionResult(
                is_complete=False,
                should_continue=True,
                next_action="continue",
                reasoning="Still missing: " + ", ".join(missing),
            )
        return ReflectionResult(
            is_complete=False,
            should_continue=False,
            next_action="need_more_info",
            reasoning="Tools have run but nothing marks the task as done; ask the user.",
        )

    def get_task_summary(self, session_id: str) -> str:
        state = self._states.get(session_id)
        if state is None:
            return "No active task."
        satisfied = self._artifacts_satisfied(state)
        done = sum(1 for ok in satisfied.values() if ok)
        total = len(satisfied)
        percent = round(done * 100 / total) if total else (100 if state.phase == TaskPhase.COMPLETED else 0)
        lines = [f"**Task Progress:** {percent}% ({done}/{total} expected results)", ""]
        lines.append(f"**Status:** {state.phase.value.capitalize()}")
        lines.append(f"**Tool calls:** {len(state.history)}")
        if state.terminal_artifact is not None:
            lines.append(
                f"**Generated:** {state.terminal_artifact.name} ({state.terminal_artifact.type})"
            )
        return "\n".join(lines)

    def get_system_prompt_context(self, session_id: str) -> str:
        state = self._states.get(session_id)
        if state is None:
            return ""
        lines = [
            "TASK CONTEXT:",
            f"- Goal: {state.goal.description}",
            f"- Phase: {state.phase.value}",
            f"- Tool calls so far: {len(state.history)}",
        ]
        if state.terminal_artifact is not None:
            lines.append(f"- Artifact generated: {state.terminal_artifact.name}")
        if state.search_results:
            lines.append(f"- Search results gathered: {state.search_results}")
        if state.history:
            last = state.history[-1]
            lines.append(
                f"- Last call: {last.tool_name} ({'ok' if last.success else 'failed'})"
            )
        lines += [
            "",
            "INSTRUCTIONS:",
            "- Complete the task without redundant tool calls.",
            "- Repeating a call with identical parameters will be rejected.",
        ]
        if state.terminal_artifact is not None:
            lines.append("- The deliverable exists; the task is COMPLETE. Do not search again.")
        if state.progress_query:
            lines.append("- The user asked for progress: report the state WITHOUT calling tools.")
        return "\n".join(lines)
