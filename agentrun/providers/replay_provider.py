# agentrun/providers/replay_provider.py
"""
A provider that replays pre-recorded generations.

Each call to `stream_chat` consumes the next scripted step. A step is a list
of chunks, or an exception instance to raise in place of the stream. Used by
the test suite and for offline demos; no network access.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, Iterable, List, Sequence, Union

import yaml

from agentrun.exceptions import GenerationError
from agentrun.providers.base import GenerationProvider
from agentrun.schemas.messages import (
    ChatMessage,
    ContentDelta,
    GenerationChunk,
    GenerationDone,
    ToolCallRequest,
)
from agentrun.schemas.tool import ToolSpec
from agentrun.utils.logger import setup_logger

logger = setup_logger(__name__)

ScriptStep = Union[Sequence[GenerationChunk], BaseException]


def text_step(text: str) -> List[GenerationChunk]:
    """A step that answers with plain content."""
    return [ContentDelta(content=text), GenerationDone(finish_reason="stop")]


def tool_step(*calls: ToolCallRequest, text: str = "") -> List[GenerationChunk]:
    """A step that requests the given tool calls."""
    chunks: List[GenerationChunk] = []
    if text:
        chunks.append(ContentDelta(content=text))
    chunks.extend(calls)
    chunks.append(GenerationDone(finish_reason="tool_calls"))
    return chunks


class ScriptedProvider(GenerationProvider):
    def __init__(
        self,
        steps: Iterable[ScriptStep],
        *,
        delay_s: float = 0.0,
        repeat_last: bool = False,
    ):
        """
        :param steps: Scripted generations, consumed in order.
        :param delay_s: Pause before each chunk, to simulate streaming latency.
        :param repeat_last: Keep replaying the final step once the script runs
            out instead of failing.
        """
        self.steps = list(steps)
        self.delay_s = delay_s
        self.repeat_last = repeat_last
        self.calls: List[List[ChatMessage]] = []
        self.tool_catalogs: List[List[ToolSpec]] = []

    @classmethod
    def from_yaml(cls, path: str, **kwargs) -> "ScriptedProvider":
        """Load a script file.

        Format::

            steps:
              - content: "Let me look."
                tool_calls:
                  - name: bash_executor
                    arguments: {command: "ls"}
              - content: "There are two files."
        """
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        steps: List[ScriptStep] = []
        for n, raw in enumerate(data.get("steps") or [], start=1):
            calls = [
                ToolCallRequest(
                    id=str(c.get("id") or f"call_{n}_{i}"),
                    name=c["name"],
                    arguments=c.get("arguments") or {},
                )
                for i, c in enumerate(raw.get("tool_calls") or [], start=1)
            ]
            content = str(raw.get("content") or "")
            steps.append(tool_step(*calls, text=content) if calls else text_step(content))
        return cls(steps, **kwargs)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def _next_step(self) -> ScriptStep:
        index = len(self.calls) - 1
        if index < len(self.steps):
            return self.steps[index]
        if self.repeat_last and self.steps:
            return self.steps[-1]
        raise GenerationError(f"Scripted provider exhausted after {len(self.steps)} steps")

    async def stream_chat(
        self, messages: List[ChatMessage], tools: List[ToolSpec]
    ) -> AsyncIterator[GenerationChunk]:
        self.calls.append([m.model_copy(deep=True) for m in messages])
        self.tool_catalogs.append(list(tools))
        step = self._next_step()
        if isinstance(step, BaseException):
            raise step
        for chunk in step:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            yield chunk
