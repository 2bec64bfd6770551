# agentrun/tools/builtins/bash_executor.py
"""
Shell command tool.

With sandboxing enabled the command runs in the session's container; if the
sandbox cannot be provisioned the call fails and is never retried on the
host. With sandboxing disabled the command runs as a host subprocess whose
working directory is confined to the workspace. Cancelling the call kills the
subprocess.
"""
from __future__ import annotations

import asyncio
import os
import posixpath
from typing import Any, Dict, Iterable, Optional

from agentrun.sandbox.manager import CONTAINER_WORKSPACE, SandboxManager
from agentrun.schemas.tool import ToolDescriptor
from agentrun.schemas.tool_result import ErrorCode, err_result, ok_result
from agentrun.tools.base import ProgressCallback, Tool, ToolContext, _noop_progress
from agentrun.utils.logger import setup_logger
from agentrun.utils.redact import redact_inline

logger = setup_logger(__name__)

DEFAULT_TIMEOUT_MS = 60_000


class BashExecutorTool(Tool):
    descriptor = ToolDescriptor(
        name="bash_executor",
        description="Execute a bash/shell command in the session workspace.",
        input_schema={
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "minLength": 1,
                    "description": "The shell command to execute",
                },
                "workingDir": {
                    "type": "string",
                    "description": "Directory relative to the workspace",
                },
            },
            "required": ["command"],
            "additionalProperties": False,
        },
        requires_confirmation=True,
        timeout_ms=DEFAULT_TIMEOUT_MS,
    )

    def __init__(
        self,
        context: ToolContext,
        *,
        sandbox: Optional[SandboxManager] = None,
        blocked_commands: Iterable[str] = (),
        max_output_bytes: int = 1024 * 1024,
    ):
        super().__init__(context)
        self.sandbox = sandbox
        self.blocked_commands = tuple(blocked_commands)
        self.max_output_bytes = max_output_bytes

    @property
    def sandboxed(self) -> bool:
        return self.sandbox is not None and self.sandbox.enabled

    def _blocked(self, command: str) -> Optional[str]:
        for pattern in self.blocked_commands:
            if pattern and pattern in command:
                return pattern
        return None

    async def execute(
        self, params: Dict[str, Any], on_progress: ProgressCallback = _noop_progress
    ):
        command: str = params["command"]
        blocked = self._blocked(command)
        if blocked:
            logger.warning("Blocked command rejected: %s", redact_inline(command))
            return err_result(ErrorCode.EXECUTION_ERROR, f"Blocked command detected: {blocked}")

        host_cwd = self.context.resolve_path(params.get("workingDir") or ".")
        if self.sandboxed:
            return await self._run_in_sandbox(command, host_cwd)
        return await self._run_on_host(command, host_cwd)

    async def _run_in_sandbox(self, command: str, host_cwd) -> Any:
        root = self.context.workspace_dir.resolve()
        relative = os.path.relpath(host_cwd, root)
        container_cwd = (
            CONTAINER_WORKSPACE
            if relative == "."
            else posixpath.join(CONTAINER_WORKSPACE, *relative.split(os.sep))
        )
        # sandbox errors propagate; the executor maps them to failed results
        await self.sandbox.create(self.context.session_id, str(root))
        result = await self.sandbox.exec(
            self.context.session_id,
            command,
            working_dir=container_cwd,
            timeout_ms=self.descriptor.timeout_ms,
        )

        if result.timed_out:
            return err_result(
                ErrorCode.TIMEOUT,
                "Command timed out",
                output=result.output,
                duration_ms=result.duration_ms,
            )
        meta = {"exitCode": result.exit_code, "sandboxed": True, "truncated": result.truncated}
        if not result.success:
            return err_result(
                ErrorCode.EXECUTION_ERROR,
                result.error or f"Command exited with code {result.exit_code}",
                output=result.output,
                meta=meta,
            )
        return ok_result(result.output or "(no output)", meta=meta)

    async def _run_on_host(self, command: str, host_cwd) -> Any:
        env = dict(os.environ)
        env["HOME"] = str(self.context.workspace_dir)
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=str(host_cwd),
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            # timeout or turn cancellation
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            logger.warning("Killed host command: %s", redact_inline(command))
            raise

        out = stdout[: self.max_output_bytes].decode("utf-8", errors="replace").strip()
        err = stderr[: self.max_output_bytes].decode("utf-8", errors="replace").strip()
        meta = {"exitCode": proc.returncode, "sandboxed": False}
        if proc.returncode != 0:
            return err_result(
                ErrorCode.EXECUTION_ERROR,
                err or f"Command exited with code {proc.returncode}",
                output=out,
                meta=meta,
            )
        return ok_result(out or err or "(no output)", meta=meta)
