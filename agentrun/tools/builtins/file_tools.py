# agentrun/tools/builtins/file_tools.py
"""
Workspace file tools: read a text file, write a text file.

Both resolve paths relative to the session workspace and refuse anything
that escapes it. The writer reports the file as an artifact with a fresh
file id, which the scheduler turns into a `file.created` event.
"""
from __future__ import annotations

import asyncio
import mimetypes
import uuid
from pathlib import Path
from typing import Any, Dict

from agentrun.exceptions import ToolExecutionError
from agentrun.schemas.tool import ToolDescriptor
from agentrun.schemas.tool_result import Artifact, ErrorCode, err_result, ok_result
from agentrun.tools.base import ProgressCallback, Tool, _noop_progress
from agentrun.utils.logger import setup_logger

logger = setup_logger(__name__)

MAX_READ_BYTES = 1024 * 1024


def guess_mime_type(filename: str) -> str:
    mime, _ = mimetypes.guess_type(filename)
    return mime or "text/plain"


class FileReaderTool(Tool):
    descriptor = ToolDescriptor(
        name="file_reader",
        description="Read a UTF-8 text file from the session workspace.",
        input_schema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Path relative to the workspace",
                },
                "maxBytes": {"type": "integer", "minimum": 1},
            },
            "required": ["path"],
            "additionalProperties": False,
        },
        timeout_ms=10_000,
    )

    async def execute(
        self, params: Dict[str, Any], on_progress: ProgressCallback = _noop_progress
    ):
        target = self.context.resolve_path(params["path"])
        limit = int(params.get("maxBytes") or MAX_READ_BYTES)
        if not target.is_file():
            return err_result(ErrorCode.EXECUTION_ERROR, f"File not found: {params['path']}")

        def _read() -> bytes:
            with open(target, "rb") as fh:
                return fh.read(limit + 1)

        try:
            data = await asyncio.to_thread(_read)
        except OSError as e:
            raise ToolExecutionError(f"Cannot read {params['path']}: {e}") from e
        truncated = len(data) > limit
        text = data[:limit].decode("utf-8", errors="replace")
        return ok_result(text, meta={"truncated": truncated, "bytes": min(len(data), limit)})


class FileWriterTool(Tool):
    descriptor = ToolDescriptor(
        name="file_writer",
        description="Write a UTF-8 text file into the session workspace.",
        input_schema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "minLength": 1},
                "content": {"type": "string"},
                "append": {"type": "boolean", "default": False},
            },
            "required": ["path", "content"],
            "additionalProperties": False,
        },
        timeout_ms=10_000,
    )

    async def execute(
        self, params: Dict[str, Any], on_progress: ProgressCallback = _noop_progress
    ):
        target = self.context.resolve_path(params["path"])
        content: str = params["content"]
        mode = "a" if params.get("append") else "w"

        on_progress(0, 1, f"Writing {params['path']}")
        pending = asyncio.ensure_future(self._write(target, content, mode))
        try:
            artifact = await asyncio.shield(pending)
        except asyncio.CancelledError:
            # a write already handed to a thread cannot be stopped; let it land
            # so the file it produced is still reported
            await asyncio.wait({pending})
            raise
        except OSError as e:
            raise ToolExecutionError(f"Cannot write {params['path']}: {e}") from e
        on_progress(1, 1, None)
        return ok_result(f"Wrote {artifact.size} bytes to {artifact.name}", artifacts=[artifact])

    async def _write(self, target: Path, content: str, mode: str) -> Artifact:
        def _write_file() -> int:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, mode, encoding="utf-8") as fh:
                fh.write(content)
            return target.stat().st_size

        size = await asyncio.to_thread(_write_file)
        relative = target.relative_to(self.context.workspace_dir.resolve()).as_posix()
        artifact = Artifact(
            type="file",
            name=relative,
            mime_type=guess_mime_type(target.name),
            size=size,
            file_id=uuid.uuid4().hex,
        )
        self.context.commit(artifact)
        logger.info("Wrote %s (%d bytes)", relative, size)
        return artifact
