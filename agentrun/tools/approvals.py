# agentrun/tools/approvals.py
"""
In-process approval gate for confirmation-gated tool calls.

The executor calls `request()` and suspends on an asyncio future keyed by
`(session_id, tool_call_id)`; the transport resolves it through `decide()`.
An unanswered request times out as denied. Pending approvals do not survive a
process restart.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from agentrun.utils.logger import setup_logger
from agentrun.utils.timing import monotonic_ms

logger = setup_logger(__name__)


class ApprovalDecision(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"


def parse_decision(value: Any) -> ApprovalDecision:
    v = str(value or "").strip().lower()
    if v in ("approved", "approve", "yes", "allow"):
        return ApprovalDecision.APPROVED
    if v in ("denied", "deny", "no", "reject"):
        return ApprovalDecision.DENIED
    raise ValueError(f"invalid decision: {value!r}")


@dataclass
class PendingApproval:
    session_id: str
    tool_call_id: str
    tool_name: str
    params: Dict[str, Any]
    future: "asyncio.Future[ApprovalDecision]"
    created_at_ms: int = field(default_factory=monotonic_ms)


class ApprovalGate:
    def __init__(self) -> None:
        self._pending: Dict[Tuple[str, str], PendingApproval] = {}

    def _register(
        self, session_id: str, tool_call_id: str, tool_name: str, params: Dict[str, Any]
    ) -> PendingApproval:
        key = (session_id, tool_call_id)
        existing = self._pending.get(key)
        if existing is not None and not existing.future.done():
            return existing
        loop = asyncio.get_running_loop()
        pending = PendingApproval(
            session_id=session_id,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            params=dict(params),
            future=loop.create_future(),
        )
        self._pending[key] = pending
        return pending

    async def request(
        self,
        session_id: str,
        tool_call_id: str,
        tool_name: str,
        params: Dict[str, Any],
        timeout_ms: Optional[int] = None,
    ) -> ApprovalDecision:
        """Wait for a decision on one tool call. Timeout counts as denial."""
        key = (session_id, tool_call_id)
        pending = self._register(session_id, tool_call_id, tool_name, params)
        try:
            if timeout_ms is None:
                return await asyncio.shield(pending.future)
            return await asyncio.wait_for(
                asyncio.shield(pending.future), timeout=max(0, timeout_ms) / 1000.0
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Approval for tool '%s' (%s) timed out; treating as denied",
                tool_name,
                tool_call_id,
            )
            return ApprovalDecision.DENIED
        finally:
            if self._pending.get(key) is pending:
                self._pending.pop(key, None)
            if not pending.future.done():
                pending.future.cancel()

    def decide(self, session_id: str, tool_call_id: str, decision: Any) -> bool:
        """Resolve a pending approval.

        :return: False when nothing is waiting under that key.
        :raises ValueError: on an unrecognised decision value.
        """
        parsed = parse_decision(decision)
        pending = self._pending.get((session_id, tool_call_id))
        if pending is None or pending.future.done():
            return False
        pending.future.set_result(parsed)
        logger.info(
            "Approval decision for %s/%s: %s", session_id, tool_call_id, parsed.value
        )
        return True

    def list_pending(self, session_id: str) -> List[Dict[str, Any]]:
        now = monotonic_ms()
        items = sorted(
            (p for (sid, _), p in self._pending.items() if sid == session_id),
            key=lambda p: p.created_at_ms,
        )
        return [
            {
                "toolCallId": p.tool_call_id,
                "toolName": p.tool_name,
                "params": p.params,
                "ageMs": now - p.created_at_ms,
            }
            for p in items
        ]

    def cancel_session(self, session_id: str) -> int:
        """Deny everything pending for a session (used on cancel/shutdown)."""
        count = 0
        for key, pending in list(self._pending.items()):
            if key[0] != session_id:
                continue
            if not pending.future.done():
                pending.future.set_result(ApprovalDecision.DENIED)
                count += 1
            self._pending.pop(key, None)
        return count
