# agentrun/providers/base.py
"""
Abstract base class for generation (model) providers.

The scheduler only needs one operation: stream a chat completion over the
current history and tool catalog. Concrete HTTP clients live outside this
package; anything that yields the chunk types below can drive a turn.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, List

from agentrun.schemas.messages import ChatMessage, GenerationChunk
from agentrun.schemas.tool import ToolSpec


class GenerationProvider(ABC):
    """
    Abstract base class for all generation providers.
    """

    @abstractmethod
    def stream_chat(
        self, messages: List[ChatMessage], tools: List[ToolSpec]
    ) -> AsyncIterator[GenerationChunk]:
        """
        Stream one generation.

        Yields `ContentDelta` chunks as text arrives, a `ToolCallRequest` per
        requested tool call, and finally one `GenerationDone`. Implementations
        should raise `GenerationError` when the call itself fails.

        :param messages: Conversation so far, oldest first.
        :param tools: Tool catalog the model may call.
        """
        raise NotImplementedError
