# agentrun/tools/base.py
"""
The tool contract.

A tool is an object with a `descriptor` and one async entry point,
`execute(params, on_progress)`, returning a `ToolResult`. Tools are bound to a
`ToolContext` when they are constructed, so one registry instance serves
exactly one (session, workspace) pair.
"""

from __future__ import annotations

import contextvars
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from agentrun.exceptions import ToolValidationError
from agentrun.schemas.tool import ToolDescriptor
from agentrun.schemas.tool_result import Artifact, ToolFailure, ToolSuccess

# (current, total, message)
ProgressCallback = Callable[[int, int, Optional[str]], None]


def _noop_progress(current: int, total: int, message: Optional[str] = None) -> None:
    return None


# artifacts committed by the tool call running in the current context
_committed: contextvars.ContextVar[Optional[List[Artifact]]] = contextvars.ContextVar(
    "committed_artifacts", default=None
)


@contextmanager
def collect_commits() -> Iterator[List[Artifact]]:
    """Collect the artifacts committed by tool code started inside the block.

    Tasks and worker threads created inside the block inherit the collector,
    so a tool that is cancelled after writing still has its artifact reported.
    """
    bucket: List[Artifact] = []
    token = _committed.set(bucket)
    try:
        yield bucket
    finally:
        _committed.reset(token)


@dataclass(frozen=True)
class ToolContext:
    session_id: str
    workspace_dir: Path
    user_id: Optional[str] = None

    def resolve_path(self, relative: str) -> Path:
        """Resolve `relative` inside the workspace.

        :raises ToolValidationError: if the path escapes the workspace.
        """
        root = self.workspace_dir.resolve()
        candidate = (root / relative).resolve()
        if candidate != root and root not in candidate.parents:
            raise ToolValidationError(
                f"Path escapes the workspace: {relative}", issues=["path"]
            )
        return candidate

    def commit(self, artifact: Artifact) -> None:
        """Report a side effect that has landed, before the tool returns."""
        bucket = _committed.get()
        if bucket is not None:
            bucket.append(artifact)


class Tool(ABC):
    """Base class for every tool the agent can call."""

    descriptor: ToolDescriptor

    def __init__(self, context: ToolContext):
        self.context = context

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    async def execute(
        self,
        params: Dict[str, Any],
        on_progress: ProgressCallback = _noop_progress,
    ) -> ToolSuccess | ToolFailure:
        """Run the tool with already-validated parameters."""
        raise NotImplementedError
