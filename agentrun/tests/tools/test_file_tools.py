# agentrun/tests/tools/test_file_tools.py
"""
Unit tests for the workspace file tools.
"""
import asyncio
import time

import pytest

from agentrun.exceptions import ToolValidationError
from agentrun.schemas.tool_result import ErrorCode
from agentrun.tools.base import collect_commits
from agentrun.tools.builtins.file_tools import FileReaderTool, FileWriterTool, guess_mime_type
from agentrun.tools.executor import ToolExecutor
from agentrun.tools.registry import ToolRegistry


@pytest.mark.asyncio
async def test_writer_creates_file_and_reports_artifact(context, workspace):
    progress = []
    result = await FileWriterTool(context).execute(
        {"path": "notes/today.txt", "content": "hello"},
        lambda c, t, m: progress.append((c, t)),
    )
    assert result.success
    assert (workspace / "notes" / "today.txt").read_text() == "hello"
    [artifact] = result.artifacts
    assert artifact.name == "notes/today.txt"
    assert artifact.mime_type == "text/plain"
    assert artifact.size == 5
    assert artifact.type == "file"
    assert artifact.file_id
    assert progress == [(0, 1), (1, 1)]


@pytest.mark.asyncio
async def test_writer_append(context, workspace):
    tool = FileWriterTool(context)
    await tool.execute({"path": "log.txt", "content": "a"})
    result = await tool.execute({"path": "log.txt", "content": "b", "append": True})
    assert (workspace / "log.txt").read_text() == "ab"
    assert result.artifacts[0].size == 2


@pytest.mark.asyncio
async def test_reader_reads_and_truncates(context, workspace):
    (workspace / "data.txt").write_text("0123456789")
    tool = FileReaderTool(context)

    full = await tool.execute({"path": "data.txt"})
    assert full.output == "0123456789"
    assert full.meta["truncated"] is False

    head = await tool.execute({"path": "data.txt", "maxBytes": 4})
    assert head.output == "0123"
    assert head.meta["truncated"] is True


@pytest.mark.asyncio
async def test_reader_missing_file(context):
    result = await FileReaderTool(context).execute({"path": "nope.txt"})
    assert result.error_code is ErrorCode.EXECUTION_ERROR


@pytest.mark.asyncio
async def test_paths_cannot_escape_the_workspace(context):
    with pytest.raises(ToolValidationError):
        await FileReaderTool(context).execute({"path": "../../etc/passwd"})

    executor = ToolExecutor(ToolRegistry([FileWriterTool(context)]))
    result = await executor.execute("file_writer", {"path": "../escape.txt", "content": "x"})
    assert result.error_code is ErrorCode.INVALID_PARAMS
    assert result.artifacts == []


def test_guess_mime_type():
    assert guess_mime_type("index.html") == "text/html"
    assert guess_mime_type("no-extension") == "text/plain"


@pytest.mark.asyncio
async def test_writer_commits_its_file_even_when_cancelled(context, workspace, monkeypatch):
    real_to_thread = asyncio.to_thread

    async def slow_to_thread(func, *args, **kwargs):
        def _slow():
            time.sleep(0.2)
            return func(*args, **kwargs)

        return await real_to_thread(_slow)

    monkeypatch.setattr(asyncio, "to_thread", slow_to_thread)

    with collect_commits() as committed:
        task = asyncio.ensure_future(
            FileWriterTool(context).execute({"path": "out.txt", "content": "hi"})
        )
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert (workspace / "out.txt").read_text() == "hi"
    [artifact] = committed
    assert artifact.name == "out.txt"
    assert artifact.file_id

