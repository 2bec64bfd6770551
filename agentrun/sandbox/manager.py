# agentrun/sandbox/manager.py
"""
Per-session Docker sandboxes.

Each session owns at most one container, named deterministically from the
session id so that a container left behind by an unclean restart can be found
and removed before a new one is provisioned. Containers run with a memory
ceiling, a CPU quota, a size-limited tmpfs, no network unless enabled, the
session workspace bind-mounted read-write and a non-root user.

The docker SDK is synchronous; every call goes through `asyncio.to_thread`
so the event loop keeps serving other sessions while the daemon works.

Requires: docker (python SDK)
"""
from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, AsyncIterator, Dict, List, Optional

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from agentrun.exceptions import SandboxNotRunningError, SandboxUnavailableError
from agentrun.schemas.sandbox import SandboxExecResult, SandboxSession, SandboxStatus
from agentrun.schemas.settings import SandboxSettings
from agentrun.utils.logger import setup_logger
from agentrun.utils.redact import redact_inline
from agentrun.utils.resources import parse_cpu, parse_memory, parse_size
from agentrun.utils.timing import monotonic_ms, utcnow

logger = setup_logger(__name__)

CONTAINER_WORKSPACE = "/workspace"


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _truncate(text: str, max_bytes: int) -> tuple[str, bool]:
    raw = text.encode("utf-8", errors="replace")
    if len(raw) <= max_bytes:
        return text, False
    return raw[:max_bytes].decode("utf-8", errors="ignore"), True


@dataclass
class _SessionLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SandboxManager:
    """Lifecycle manager for session sandboxes.

    Construct one per process (the runtime owns it), call `start()` to launch
    the idle/health maintenance loop and `shutdown()` to tear everything down.
    """

    def __init__(
        self,
        settings: Optional[SandboxSettings] = None,
        *,
        client: Any = None,
        max_output_bytes: int = 1024 * 1024,
    ):
        """
        :param settings: Sandbox section of the app settings.
        :param client: Pre-built docker client; created lazily from the
            environment when omitted.
        :param max_output_bytes: Exec output beyond this is truncated.
        """
        self.settings = settings or SandboxSettings()
        self.max_output_bytes = max_output_bytes
        self._client = client
        self._sessions: Dict[str, SandboxSession] = {}
        self._locks: Dict[str, _SessionLock] = {}
        self._maintenance: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    def container_name(self, session_id: str) -> str:
        return f"{self.settings.name_prefix}{session_id}"

    def get(self, session_id: str) -> Optional[SandboxSession]:
        return self._sessions.get(session_id)

    def sessions(self) -> List[SandboxSession]:
        return list(self._sessions.values())

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = _SessionLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            # nobody holds or waits for it and no sandbox is left to guard
            if entry.users == 0 and session_id not in self._sessions:
                self._locks.pop(session_id, None)

    def _docker(self) -> Any:
        if self._client is None:
            try:
                if self.settings.docker_base_url:
                    self._client = docker.DockerClient(
                        base_url=self.settings.docker_base_url
                    )
                else:
                    self._client = docker.from_env()
                self._client.ping()
                logger.info("Connected to Docker daemon")
            except DockerException as e:
                self._client = None
                raise SandboxUnavailableError(f"Docker daemon unreachable: {e}") from e
        return self._client

    # --- lifecycle ---

    async def create(self, session_id: str, workspace_dir: str) -> SandboxSession:
        """Return the session's running sandbox, provisioning one if needed.

        Concurrent calls for the same session share one container.

        :raises SandboxUnavailableError: if the daemon is unreachable or the
            container cannot be started.
        """
        async with self._session_lock(session_id):
            existing = self._sessions.get(session_id)
            if existing is not None:
                if existing.status == SandboxStatus.RUNNING:
                    return existing
                await self._destroy_unlocked(session_id)

            client = await asyncio.to_thread(self._docker)
            name = self.container_name(session_id)
            await asyncio.to_thread(self._remove_orphan, client, name)
            os.makedirs(workspace_dir, exist_ok=True)

            run_kwargs = self._run_kwargs(session_id, name, workspace_dir)
            try:
                container = await asyncio.to_thread(
                    client.containers.run, self.settings.image, **run_kwargs
                )
            except ImageNotFound as e:
                raise SandboxUnavailableError(
                    f"Sandbox image not found: {self.settings.image}"
                ) from e
            except (APIError, DockerException) as e:
                raise SandboxUnavailableError(f"Failed to create sandbox: {e}") from e

            session = SandboxSession(
                session_id=session_id,
                container_id=container.id,
                container_name=name,
                workspace_dir=workspace_dir,
            )
            self._sessions[session_id] = session
            logger.info(
                "sandbox.create ok",
                extra={
                    "session_id": session_id,
                    "container": name,
                    "image": self.settings.image,
                    "network": run_kwargs["network_mode"],
                },
            )
            return session

    def _run_kwargs(self, session_id: str, name: str, workspace_dir: str) -> Dict[str, Any]:
        s = self.settings
        return {
            "name": name,
            "detach": True,
            "tty": True,
            "environment": {
                "SESSION_ID": session_id,
                "HOME": CONTAINER_WORKSPACE,
                "USER": s.user,
            },
            "mem_limit": parse_memory(s.memory),
            "nano_cpus": parse_cpu(s.cpu),
            "tmpfs": {"/tmp": f"size={parse_size(s.disk_space)}"},
            "network_mode": "bridge" if s.network_access else "none",
            "volumes": {
                os.path.abspath(workspace_dir): {"bind": CONTAINER_WORKSPACE, "mode": "rw"}
            },
            "security_opt": ["no-new-privileges:true"],
            "working_dir": CONTAINER_WORKSPACE,
            "user": s.user,
            "auto_remove": False,
        }

    @staticmethod
    def _remove_orphan(client: Any, name: str) -> None:
        try:
            orphan = client.containers.get(name)
        except NotFound:
            return
        except (APIError, DockerException) as e:
            logger.warning("Orphan lookup for %s failed: %s", name, e)
            return
        logger.warning("Removing orphaned sandbox container %s", name)
        try:
            orphan.remove(force=True)
        except NotFound:
            return
        except (APIError, DockerException) as e:
            raise SandboxUnavailableError(
                f"Could not remove orphaned container {name}: {e}"
            ) from e

    async def exec(
        self,
        session_id: str,
        command: str,
        working_dir: str = CONTAINER_WORKSPACE,
        timeout_ms: Optional[int] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> SandboxExecResult:
        """Run `sh -c command` inside the session's sandbox.

        Never provisions: a session without a running sandbox is an error.

        :raises SandboxNotRunningError: if the session has no running sandbox.
        """
        session = self._sessions.get(session_id)
        if session is None or session.status != SandboxStatus.RUNNING:
            raise SandboxNotRunningError(f"No running sandbox for session {session_id}")

        timeout_ms = timeout_ms or self.settings.timeout_s * 1000
        started = monotonic_ms()
        session.last_used_at = utcnow()
        logger.info(
            "sandbox.exec",
            extra={"cmd": redact_inline(command), "workdir": working_dir, "timeout_ms": timeout_ms},
        )

        def _run():
            container = self._docker().containers.get(session.container_id)
            return container.exec_run(
                ["sh", "-c", command],
                workdir=working_dir,
                environment=env,
                user=self.settings.user,
                demux=True,
            )

        try:
            exit_code, streams = await asyncio.wait_for(
                asyncio.to_thread(_run), timeout=timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            # the worker thread cannot be interrupted; the container's own
            # limits bound whatever keeps running inside it
            return SandboxExecResult(
                success=False,
                error="Command timed out",
                exit_code=-1,
                duration_ms=monotonic_ms() - started,
                timed_out=True,
            )
        except NotFound:
            session.status = SandboxStatus.ERROR
            raise SandboxNotRunningError(
                f"Sandbox container for session {session_id} no longer exists"
            )
        except (APIError, DockerException) as e:
            return SandboxExecResult(
                success=False,
                error=f"Command execution failed: {e}",
                exit_code=-1,
                duration_ms=monotonic_ms() - started,
            )

        stdout, stderr = streams if isinstance(streams, tuple) else (streams, None)
        output, out_truncated = _truncate(_decode(stdout).strip(), self.max_output_bytes)
        error, err_truncated = _truncate(_decode(stderr).strip(), self.max_output_bytes)
        code = exit_code if exit_code is not None else 0
        return SandboxExecResult(
            success=code == 0,
            output=output,
            error=error or None,
            exit_code=code,
            duration_ms=monotonic_ms() - started,
            truncated=out_truncated or err_truncated,
        )

    async def destroy(self, session_id: str) -> None:
        """Stop and remove the session's sandbox. Never raises."""
        async with self._session_lock(session_id):
            await self._destroy_unlocked(session_id)

    async def _destroy_unlocked(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        try:
            await asyncio.to_thread(self._stop_and_remove, session.container_id)
            logger.info("sandbox.destroy ok", extra={"container": session.container_name})
        except Exception as e:
            logger.error("Failed to destroy sandbox for session %s: %s", session_id, e)

    def _stop_and_remove(self, container_id: str) -> None:
        try:
            container = self._docker().containers.get(container_id)
        except NotFound:
            return
        try:
            container.stop(timeout=5)
        except (NotFound, APIError) as e:
            logger.debug("Stop of %s failed (already stopped?): %s", container_id, e)
        container.remove(force=True)

    async def status(self, session_id: str) -> Optional[SandboxSession]:
        """Refresh and return the recorded status, or None if there is no sandbox."""
        session = self._sessions.get(session_id)
        if session is None:
            return None

        def _inspect():
            container = self._docker().containers.get(session.container_id)
            container.reload()
            return container.attrs.get("State", {})

        try:
            state = await asyncio.to_thread(_inspect)
        except (NotFound, SandboxUnavailableError, APIError, DockerException):
            self._sessions.pop(session_id, None)
            return None
        if state.get("Running"):
            session.status = SandboxStatus.RUNNING
        elif state.get("ExitCode", 0) != 0:
            session.status = SandboxStatus.ERROR
        else:
            session.status = SandboxStatus.STOPPED
        return session

    # --- maintenance ---

    async def reap_idle(self) -> List[str]:
        """Destroy sandboxes unused for longer than the idle timeout."""
        cutoff = utcnow() - timedelta(seconds=self.settings.idle_timeout_s)
        idle = [s.session_id for s in self.sessions() if s.last_used_at < cutoff]
        for session_id in idle:
            logger.info("Reaping idle sandbox for session %s", session_id)
            await self.destroy(session_id)
        return idle

    async def health_check(self) -> List[str]:
        """Destroy sandboxes whose container is gone or no longer running."""
        unhealthy: List[str] = []
        for session_id in [s.session_id for s in self.sessions()]:
            session = await self.status(session_id)
            if session is None or session.status != SandboxStatus.RUNNING:
                unhealthy.append(session_id)
                await self.destroy(session_id)
        return unhealthy

    async def _maintenance_loop(self) -> None:
        interval = self.settings.health_check_interval_s
        while True:
            await asyncio.sleep(interval)
            try:
                await self.reap_idle()
                await self.health_check()
            except Exception:
                logger.exception("Sandbox maintenance pass failed")

    def start(self) -> None:
        if self._maintenance is None or self._maintenance.done():
            self._maintenance = asyncio.create_task(self._maintenance_loop())

    async def shutdown(self) -> None:
        """Stop maintenance and destroy every sandbox concurrently."""
        if self._maintenance is not None:
            self._maintenance.cancel()
            try:
                await self._maintenance
            except asyncio.CancelledError:
                pass
            self._maintenance = None
        await asyncio.gather(*(self.destroy(s.session_id) for s in self.sessions()))
