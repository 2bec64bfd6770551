# agentrun/tools/defaults.py
"""
Builds the registry of built-in tools for one session context.
"""
from __future__ import annotations

from typing import List, Optional

from agentrun.sandbox.manager import SandboxManager
from agentrun.schemas.settings import AppSettings
from agentrun.tools.base import Tool, ToolContext
from agentrun.tools.builtins import BashExecutorTool, FileReaderTool, FileWriterTool
from agentrun.tools.registry import ToolRegistry


def build_default_registry(
    context: ToolContext,
    settings: Optional[AppSettings] = None,
    sandbox: Optional[SandboxManager] = None,
) -> ToolRegistry:
    """Register the built-in tools bound to `context`.

    When `tools.enabled` is non-empty only the listed tools are registered.
    """
    settings = settings or AppSettings()
    tools: List[Tool] = [
        FileReaderTool(context),
        FileWriterTool(context),
        BashExecutorTool(
            context,
            sandbox=sandbox,
            blocked_commands=settings.tools.blocked_commands,
            max_output_bytes=settings.tools.max_output_bytes,
        ),
    ]
    enabled = set(settings.tools.enabled)
    if enabled:
        tools = [t for t in tools if t.name in enabled]
    return ToolRegistry(tools)
