# agentrun/tests/agents/test_task_manager.py
"""
Unit tests for the TaskManager policy engine, driven by a fake clock.
"""
import pytest

from agentrun.agents.task_manager import TaskManager, canonical_params, normalize_params
from agentrun.schemas.settings import PolicySettings
from agentrun.schemas.task import TaskPhase
from agentrun.schemas.tool_result import Artifact, ErrorCode, err_result, ok_result


class FakeClock:
    def __init__(self):
        self.now = 1_000_000

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    tm = TaskManager(PolicySettings(), clock=clock)
    tm.initialize("s1", "u1", "Search for papers on RL and make a presentation")
    return tm


def _deck():
    return Artifact(type="file", name="deck.pptx", mime_type="application/vnd.ms-powerpoint", size=10, file_id="f1")


def test_normalization_ignores_key_order_whitespace_and_nones():
    a = {"query": "  graph   neural nets ", "limit": 5, "lang": None}
    b = {"limit": 5, "query": "graph neural nets"}
    assert normalize_params(a) == {"limit": 5, "query": "graph neural nets"}
    assert canonical_params(a) == canonical_params(b)
    assert canonical_params({"q": ["b", "a"]}) != canonical_params({"q": ["a", "b"]})


def test_unknown_session_is_allowed():
    assert TaskManager().should_allow_tool_call("ghost", "web_search", {}).allowed


def test_duplicate_inside_cooldown_is_rejected(manager, clock):
    params = {"query": "rl"}
    assert manager.should_allow_tool_call("s1", "web_search", params).allowed
    manager.record_tool_call("s1", "web_search", params, ok_result("hits"))

    clock.advance(5_000)
    decision = manager.should_allow_tool_call("s1", "web_search", {"query": "  rl "})
    assert decision.allowed is False
    assert decision.rule == "duplicate"
    assert "Duplicate" in decision.reason

    # different parameters are fine
    assert manager.should_allow_tool_call("s1", "web_search", {"query": "gnn"}).allowed


def test_duplicate_allowed_after_cooldown(manager, clock):
    manager.record_tool_call("s1", "file_reader", {"path": "a"}, ok_result("x"))
    clock.advance(30_000)
    assert manager.should_allow_tool_call("s1", "file_reader", {"path": "a"}).allowed


def test_rate_limit_rejects_the_n_plus_first_call(manager, clock):
    limit = manager.settings.rate_limit_for("web_search")
    for i in range(limit):
        assert manager.should_allow_tool_call("s1", "web_search", {"query": f"q{i}"}).allowed
        manager.record_tool_call("s1", "web_search", {"query": f"q{i}"}, ok_result("hits"))
        clock.advance(1_000)

    decision = manager.should_allow_tool_call("s1", "web_search", {"query": "another"})
    assert decision.allowed is False
    assert decision.rule == "rate_limit"

    # the window rolls
    clock.advance(60_000)
    assert manager.should_allow_tool_call("s1", "web_search", {"query": "another"}).allowed


def test_default_rate_limit_applies_to_other_tools(clock):
    tm = TaskManager(PolicySettings(default_rate_limit=2), clock=clock)
    tm.initialize("s1", None, "do things")
    for i in range(2):
        tm.record_tool_call("s1", "echo", {"n": i}, ok_result("x"))
    assert tm.should_allow_tool_call("s1", "echo", {"n": 99}).rule == "rate_limit"


def test_terminal_artifact_locks_discovery_tools(manager):
    manager.record_tool_call("s1", "ppt_generator", {"title": "RL"}, ok_result("done", artifacts=[_deck()]))
    assert manager.get_state("s1").terminal_artifact.name == "deck.pptx"

    decision = manager.should_allow_tool_call("s1", "web_search", {"query": "more"})
    assert decision.allowed is False
    assert decision.rule == "terminal_lock"
    # non-discovery tools are unaffected
    assert manager.should_allow_tool_call("s1", "file_reader", {"path": "deck.pptx"}).allowed


def test_failed_terminal_call_does_not_lock(manager):
    manager.record_tool_call(
        "s1", "ppt_generator", {"title": "RL"}, err_result(ErrorCode.EXECUTION_ERROR, "crashed")
    )
    assert manager.get_state("s1").terminal_artifact is None
    assert manager.should_allow_tool_call("s1", "web_search", {"query": "x"}).allowed


def test_progress_query_locks_all_tools_for_the_turn(manager):
    manager.record_tool_call("s1", "web_search", {"query": "rl"}, ok_result("hits"))
    manager.begin_turn("s1", "u1", "any updates?")

    state = manager.get_state("s1")
    assert state.progress_query is True
    # the existing task survives a status question
    assert len(state.history) == 1
    decision = manager.should_allow_tool_call("s1", "file_reader", {"path": "x"})
    assert decision.rule == "progress_query"

    manager.end_turn("s1")
    assert manager.should_allow_tool_call("s1", "file_reader", {"path": "x"}).allowed


def test_new_goal_resets_state(manager):
    manager.record_tool_call("s1", "web_search", {"query": "rl"}, ok_result("hits"))
    manager.begin_turn("s1", "u1", "Write a report on GNNs")
    state = manager.get_state("s1")
    assert state.history == []
    assert state.goal.description == "Write a report on GNNs"
    assert manager.should_allow_tool_call("s1", "web_search", {"query": "rl"}).allowed


def test_record_updates_phase_and_counters(manager):
    assert manager.get_state("s1").phase is TaskPhase.PLANNING
    manager.record_tool_call("s1", "web_search", {"query": "rl"}, ok_result("hits"))
    state = manager.get_state("s1")
    assert state.phase is TaskPhase.EXECUTING
    assert state.search_results == 1
    assert state.history[0].success is True


def test_reflect_progression(manager):
    first = manager.reflect("s1")
    assert (first.is_complete, first.next_action) == (False, "continue")

    manager.record_tool_call("s1", "web_search", {"query": "rl"}, ok_result("hits"))
    partial = manager.reflect("s1")
    assert partial.should_continue is True
    assert "document" in partial.reasoning

    manager.record_tool_call("s1", "ppt_generator", {}, ok_result("ok", artifacts=[_deck()]))
    done = manager.reflect("s1")
    assert done.is_complete is True
    assert done.next_action == "complete"
    assert manager.get_state("s1").phase is TaskPhase.COMPLETED


def test_reflect_without_expectations_asks_for_more_info(clock):
    tm = TaskManager(clock=clock)
    tm.initialize("s1", None, "list files")
    tm.record_tool_call("s1", "bash_executor", {"command": "ls"}, ok_result("a"))
    assert tm.reflect("s1").next_action == "need_more_info"
    assert tm.reflect("ghost").reasoning == "No active task found"


def test_summary_and_prompt_context(manager):
    manager.record_tool_call("s1", "web_search", {"query": "rl"}, ok_result("hits"))
    summary = manager.get_task_summary("s1")
    assert "50%" in summary
    assert "**Tool calls:** 1" in summary

    context = manager.get_system_prompt_context("s1")
    assert context.startswith("TASK CONTEXT:")
    assert "Last call: web_search (ok)" in context
    assert "Search results gathered: 1" in context

    manager.record_tool_call("s1", "ppt_generator", {}, ok_result("ok", artifacts=[_deck()]))
    assert "Do not search again" in manager.get_system_prompt_context("s1")

    assert manager.get_system_prompt_context("ghost") == ""
    assert manager.get_task_summary("ghost") == "No active task."


def test_clear_and_fail(manager):
    manager.fail_task("s1", "boom")
    assert manager.get_state("s1").phase is TaskPhase.FAILED
    manager.clear("s1")
    assert manager.get_state("s1") is None
