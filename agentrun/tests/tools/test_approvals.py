# agentrun/tests/tools/test_approvals.py
import asyncio

import pytest

from agentrun.tools.approvals import ApprovalDecision, ApprovalGate, parse_decision


def test_parse_decision():
    assert parse_decision("Approve") is ApprovalDecision.APPROVED
    assert parse_decision("no") is ApprovalDecision.DENIED
    with pytest.raises(ValueError):
        parse_decision("maybe")


@pytest.mark.asyncio
async def test_request_waits_for_decision():
    gate = ApprovalGate()
    waiter = asyncio.create_task(gate.request("s1", "c1", "bash_executor", {"command": "ls"}))
    await asyncio.sleep(0)

    pending = gate.list_pending("s1")
    assert [p["toolCallId"] for p in pending] == ["c1"]
    assert pending[0]["params"] == {"command": "ls"}
    assert gate.list_pending("other") == []

    assert gate.decide("s1", "c1", "approved") is True
    assert await waiter is ApprovalDecision.APPROVED
    # resolved requests are gone
    assert gate.decide("s1", "c1", "approved") is False


@pytest.mark.asyncio
async def test_unknown_key_is_not_resolved():
    gate = ApprovalGate()
    assert gate.decide("s1", "missing", "denied") is False


@pytest.mark.asyncio
async def test_timeout_is_denial():
    gate = ApprovalGate()
    decision = await gate.request("s1", "c1", "tool", {}, timeout_ms=10)
    assert decision is ApprovalDecision.DENIED


@pytest.mark.asyncio
async def test_cancel_session_denies_only_that_session():
    gate = ApprovalGate()
    a = asyncio.create_task(gate.request("s1", "c1", "tool", {}))
    b = asyncio.create_task(gate.request("s2", "c1", "tool", {}))
    await asyncio.sleep(0)

    assert gate.cancel_session("s1") == 1
    assert await a is ApprovalDecision.DENIED
    assert not b.done()

    gate.decide("s2", "c1", "approved")
    assert await b is ApprovalDecision.APPROVED
