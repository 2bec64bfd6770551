# agentrun/agents/goal_classifier.py
"""
Keyword heuristics over the triggering user message.

`is_progress_query` decides whether a message starts a new task or only asks
how the current one is going. `infer_goal` guesses which artifacts the user
expects. Both are pure functions of the text.
"""
from __future__ import annotations

import re
from typing import List

from agentrun.schemas.task import TaskGoal

PROGRESS_INDICATORS = (
    "progress",
    "status",
    "how are you doing",
    "how is it going",
    "are you done",
    "did you finish",
    "is it done",
    "is it complete",
    "completed",
    "finished",
    "current state",
    "any update",
    "any updates",
)

ACTION_VERBS = frozenset(
    {
        "create",
        "generate",
        "search",
        "find",
        "write",
        "make",
        "build",
        "run",
        "execute",
        "download",
        "summarize",
        "research",
        "read",
        "list",
        "delete",
        "open",
        "fix",
        "add",
        "install",
    }
)

MAX_PROGRESS_QUERY_WORDS = 12

_PUNCT = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")

_DOCUMENT_KEYWORDS = ("ppt", "presentation", "powerpoint", "slides", "slide deck", "document", "report")
_SEARCH_KEYWORDS = ("search", "find", "papers", "research", "summarize", "look up")


def normalize_text(text: str) -> str:
    lowered = _PUNCT.sub(" ", (text or "").lower())
    return _SPACES.sub(" ", lowered).strip()


def is_progress_query(message: str) -> bool:
    """True when `message` is a pure status question.

    A status question mentions a progress indicator, is short, and contains
    no action verb ("what is the status?" is a query, "search again and
    report status" is not).
    """
    text = normalize_text(message)
    if not text:
        return False
    words: List[str] = text.split(" ")
    if len(words) > MAX_PROGRESS_QUERY_WORDS:
        return False
    if any(w in ACTION_VERBS for w in words):
        return False
    padded = f" {text} "
    return any(f" {indicator} " in padded for indicator in PROGRESS_INDICATORS)


def infer_goal(message: str) -> TaskGoal:
    text = (message or "").lower()
    requires_document = any(k in text for k in _DOCUMENT_KEYWORDS)
    requires_search = any(k in text for k in _SEARCH_KEYWORDS)
    expected: List[str] = []
    if requires_document:
        expected.append("document")
    if requires_search:
        expected.append("search_results")
    return TaskGoal(
        description=message,
        requires_search=requires_search,
        requires_document=requires_document,
        expected_artifacts=expected,
    )
