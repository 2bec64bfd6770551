# agentrun/agents/broadcaster.py
"""
Fan-out of one turn's event stream to any number of subscribers.

The scheduler only ever calls `publish(event)`. Every subscriber gets its own
unbounded queue, so a slow websocket never blocks the turn, and every queue
receives envelopes in publish order. A subscriber that attaches late can ask
for the events it missed.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional, Set

from agentrun.schemas.events import AgentEvent, EventEnvelope
from agentrun.utils.logger import setup_logger
from agentrun.utils.timing import now_ms

logger = setup_logger(__name__)

_CLOSED = object()


class Subscription:
    def __init__(self, broadcaster: "EventBroadcaster"):
        self._broadcaster = broadcaster
        self.queue: "asyncio.Queue[object]" = asyncio.Queue()

    def __aiter__(self) -> AsyncIterator[EventEnvelope]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[EventEnvelope]:
        try:
            while True:
                item = await self.queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            self._broadcaster.unsubscribe(self)

    async def next(self, timeout: Optional[float] = None) -> Optional[EventEnvelope]:
        """Next envelope, or None once the stream is closed."""
        item = await asyncio.wait_for(self.queue.get(), timeout=timeout)
        return None if item is _CLOSED else item

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)


class EventBroadcaster:
    def __init__(self, session_id: str):
        self.session_id = session_id
        self._seq = 0
        self._log: List[EventEnvelope] = []
        self._subscribers: Set[Subscription] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def events(self) -> List[EventEnvelope]:
        return list(self._log)

    def publish(self, event: AgentEvent) -> EventEnvelope:
        if self._closed:
            raise RuntimeError(f"Event stream for session {self.session_id} is closed")
        envelope = EventEnvelope(
            session_id=self.session_id, seq=self._seq, timestamp=now_ms(), event=event
        )
        self._seq += 1
        self._log.append(envelope)
        for sub in list(self._subscribers):
            sub.queue.put_nowait(envelope)
        logger.debug("event %s #%d", event.kind, envelope.seq)
        return envelope

    def subscribe(self, replay: bool = False) -> Subscription:
        """Attach a subscriber.

        :param replay: Deliver every event published so far before live ones.
        """
        sub = Subscription(self)
        if replay:
            for envelope in self._log:
                sub.queue.put_nowait(envelope)
        if self._closed:
            sub.queue.put_nowait(_CLOSED)
        else:
            self._subscribers.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscribers.discard(sub)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for sub in list(self._subscribers):
            sub.queue.put_nowait(_CLOSED)
        self._subscribers.clear()
