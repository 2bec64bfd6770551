# agentrun/agents/turn_hub.py
"""
One live turn per session.

`TurnHub.start_or_attach()` either launches a turn as its own asyncio task or,
when the session already has a live turn, hands back that turn's handle so
the caller can follow its event stream. Turns of different sessions run
concurrently and share nothing but the hub's bookkeeping.
"""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from agentrun.agents.broadcaster import EventBroadcaster, Subscription
from agentrun.agents.scheduler import TurnScheduler
from agentrun.exceptions import SessionNotFoundError, TurnError
from agentrun.persistence.base import PersistenceStore
from agentrun.schemas.records import TurnResult
from agentrun.schemas.runtime import TurnConfig, TurnRequest
from agentrun.schemas.settings import AppSettings
from agentrun.tools.approvals import ApprovalGate
from agentrun.tools.base import ToolContext
from agentrun.tools.executor import ToolExecutor
from agentrun.tools.registry import ToolRegistry
from agentrun.utils.logger import setup_logger

logger = setup_logger(__name__)

RegistryFactory = Callable[[ToolContext], ToolRegistry]


@dataclass
class TurnHandle:
    session_id: str
    broadcaster: EventBroadcaster
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional["asyncio.Task[TurnResult]"] = None

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    def subscribe(self, replay: bool = True) -> Subscription:
        return self.broadcaster.subscribe(replay=replay)

    async def wait(self) -> TurnResult:
        if self.task is None:
            raise TurnError(f"Turn for session {self.session_id} was never started")
        return await asyncio.shield(self.task)


class TurnHub:
    def __init__(
        self,
        scheduler: TurnScheduler,
        store: PersistenceStore,
        registry_factory: RegistryFactory,
        *,
        settings: Optional[AppSettings] = None,
        approval_gate: Optional[ApprovalGate] = None,
    ):
        self.scheduler = scheduler
        self.store = store
        self.registry_factory = registry_factory
        self.settings = settings or AppSettings()
        self.approval_gate = approval_gate
        self._turns: Dict[str, TurnHandle] = {}
        self._finished: Dict[str, TurnHandle] = {}
        self._admission = asyncio.Lock()

    def get(self, session_id: str) -> Optional[TurnHandle]:
        handle = self._turns.get(session_id)
        if handle is None or handle.done:
            return None
        return handle

    def latest(self, session_id: str) -> Optional[TurnHandle]:
        """The live turn, else the most recently finished one (for replay)."""
        return self.get(session_id) or self._finished.get(session_id)

    def active_sessions(self) -> List[str]:
        return [sid for sid, h in self._turns.items() if not h.done]

    async def start_or_attach(self, request: TurnRequest) -> Tuple[TurnHandle, bool]:
        """Start a turn, or attach to the one already running for the session.

        :return: The handle and True when an existing turn was attached to.
        :raises SessionNotFoundError: if the store does not know the session.
        """
        async with self._admission:
            live = self.get(request.session_id)
            if live is not None:
                logger.info("Attaching to live turn for session %s", request.session_id)
                return live, True

            session = await self.store.read_session(request.session_id)
            if session is None:
                raise SessionNotFoundError(f"Session not found: {request.session_id}")

            workspace = Path(
                session.workspace_dir
                or os.path.join(self.settings.agent.workspace_root, request.session_id)
            )
            workspace.mkdir(parents=True, exist_ok=True)
            context = ToolContext(
                session_id=request.session_id,
                workspace_dir=workspace,
                user_id=request.user_id or session.user_id,
            )
            executor = ToolExecutor(
                self.registry_factory(context),
                approval_gate=self.approval_gate,
                require_approval=self.settings.tools.require_approval,
                approval_timeout_ms=self.settings.tools.approval_timeout_ms,
                timeouts_ms=self.settings.tools.timeouts_ms,
                session_id=request.session_id,
            )
            config = request.config or TurnConfig(
                max_steps=self.settings.agent.max_steps,
                max_duration_ms=self.settings.agent.max_duration_ms,
            )

            handle = TurnHandle(
                session_id=request.session_id,
                broadcaster=EventBroadcaster(request.session_id),
            )
            handle.task = asyncio.create_task(
                self._drive(handle, request, executor, config),
                name=f"turn-{request.session_id}",
            )
            self._turns[request.session_id] = handle
            return handle, False

    async def _drive(
        self,
        handle: TurnHandle,
        request: TurnRequest,
        executor: ToolExecutor,
        config: TurnConfig,
    ) -> TurnResult:
        try:
            return await self.scheduler.run(
                request,
                executor=executor,
                publish=handle.broadcaster.publish,
                config=config,
                cancel=handle.cancel_event,
            )
        finally:
            handle.broadcaster.close()
            if self.approval_gate is not None:
                self.approval_gate.cancel_session(handle.session_id)
            if self._turns.get(handle.session_id) is handle:
                self._turns.pop(handle.session_id, None)
            self._finished[handle.session_id] = handle

    def forget(self, session_id: str) -> None:
        """Drop the finished handle kept for replay. A live turn is left alone."""
        self._finished.pop(session_id, None)

    def cancel(self, session_id: str) -> bool:
        """Ask the session's live turn to stop. Returns False if none is running."""
        handle = self.get(session_id)
        if handle is None:
            return False
        handle.cancel_event.set()
        if self.approval_gate is not None:
            self.approval_gate.cancel_session(session_id)
        logger.info("Cancellation requested for session %s", session_id)
        return True

    async def shutdown(self) -> None:
        handles = [h for h in self._turns.values() if not h.done]
        for h in handles:
            h.cancel_event.set()
        if handles:
            await asyncio.gather(*(h.task for h in handles), return_exceptions=True)
