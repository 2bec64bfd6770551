# agentrun/runtime.py
"""
Composition root.

`AgentRuntime` builds every long-lived service once, wires them together and
owns their lifecycle. Nothing in the package reaches for a module-level
singleton; tests build as many independent runtimes as they like.
"""
from __future__ import annotations

from typing import Any, Optional

from agentrun.agents.scheduler import TurnScheduler
from agentrun.agents.task_manager import TaskManager
from agentrun.agents.turn_hub import RegistryFactory, TurnHandle, TurnHub
from agentrun.exceptions import ConfigurationError
from agentrun.persistence.base import PersistenceStore
from agentrun.persistence.memory import InMemoryStore
from agentrun.providers.base import GenerationProvider
from agentrun.sandbox.manager import SandboxManager
from agentrun.schemas.records import SessionRecord, TurnResult
from agentrun.schemas.runtime import TurnRequest
from agentrun.schemas.settings import AppSettings
from agentrun.tools.approvals import ApprovalGate
from agentrun.tools.base import ToolContext
from agentrun.tools.defaults import build_default_registry
from agentrun.tools.registry import ToolRegistry
from agentrun.utils.config import get_config
from agentrun.utils.logger import setup_logger

logger = setup_logger(__name__)


class AgentRuntime:
    def __init__(
        self,
        provider: GenerationProvider,
        settings: Optional[AppSettings] = None,
        *,
        store: Optional[PersistenceStore] = None,
        sandbox: Optional[SandboxManager] = None,
        approval_gate: Optional[ApprovalGate] = None,
        registry_factory: Optional[RegistryFactory] = None,
        docker_client: Any = None,
    ):
        """
        :param provider: Generation provider driving every turn.
        :param settings: Typed settings; read from config.yaml when omitted.
        :param store: Persistence backend; in-memory when omitted.
        :param sandbox: Sandbox manager; built from settings when omitted.
        :param approval_gate: Gate for confirmation-gated tools.
        :param registry_factory: Builds the tool registry for a session
            context; defaults to the built-in tools.
        :param docker_client: Docker client handed to the default sandbox manager.
        """
        self.settings = settings or AppSettings.from_config(get_config())
        self.provider = provider
        self.store = store or InMemoryStore()
        self.sandbox = sandbox or SandboxManager(
            self.settings.sandbox,
            client=docker_client,
            max_output_bytes=self.settings.tools.max_output_bytes,
        )
        self.approvals = approval_gate or ApprovalGate()
        self.policy = TaskManager(self.settings.policy)
        self.scheduler = TurnScheduler(
            provider,
            self.policy,
            self.store,
            history_limit=self.settings.agent.history_limit,
        )
        self.hub = TurnHub(
            self.scheduler,
            self.store,
            registry_factory or self.default_registry,
            settings=self.settings,
            approval_gate=self.approvals,
        )
        self._started = False

    def default_registry(self, context: ToolContext) -> ToolRegistry:
        return build_default_registry(context, self.settings, self.sandbox)

    async def start(self) -> None:
        if self._started:
            return
        if self.sandbox.enabled:
            self.sandbox.start()
        self._started = True
        logger.info("Agent runtime started", extra={"sandbox": self.sandbox.enabled})

    async def shutdown(self) -> None:
        await self.hub.shutdown()
        await self.sandbox.shutdown()
        self._started = False
        logger.info("Agent runtime stopped")

    @property
    def manages_sessions(self) -> bool:
        """True when sessions live in the built-in in-memory store."""
        return isinstance(self.store, InMemoryStore)

    def create_session(
        self, session_id: Optional[str] = None, *, user_id: Optional[str] = None
    ) -> SessionRecord:
        """Register a session in the in-memory store; its workspace goes under
        the configured workspace root.

        :raises ConfigurationError: if sessions are owned by an external store.
        """
        if not isinstance(self.store, InMemoryStore):
            raise ConfigurationError(
                f"{type(self.store).__name__} does not create sessions through the runtime"
            )
        record = self.store.create_session(session_id, user_id=user_id)
        logger.info("Session created", extra={"session": record.session_id})
        return record

    async def start_turn(self, request: TurnRequest) -> tuple[TurnHandle, bool]:
        return await self.hub.start_or_attach(request)

    async def run_turn(self, request: TurnRequest) -> TurnResult:
        """Start (or attach to) the session's turn and wait for its result."""
        handle, _ = await self.hub.start_or_attach(request)
        return await handle.wait()

    async def close_session(self, session_id: str) -> None:
        """Stop the live turn, then forget turn, policy and sandbox state of a session."""
        live = self.hub.get(session_id)
        if live is not None:
            self.hub.cancel(session_id)
            await live.wait()
        self.hub.forget(session_id)
        self.policy.clear(session_id)
        await self.sandbox.destroy(session_id)
