# agentrun/tools/registry.py
"""
Per-context tool registry.

- One `ToolRegistry` per (session, workspace) context; no global state.
- Idempotent registration: registering the same tool again is a no-op.
- `catalog()` exposes only name/description/schema to the generation call.
"""
from __future__ import annotations

from typing import Dict, Iterable, List

from agentrun.exceptions import ToolNotFoundError, ToolRegistrationError
from agentrun.schemas.tool import ToolSpec
from agentrun.tools.base import Tool
from agentrun.tools.schema_validation import check_schema
from agentrun.utils.logger import setup_logger

logger = setup_logger(__name__)


def _same_tool(a: Tool, b: Tool) -> bool:
    # same instance, or the same class bound to the same context and descriptor
    if a is b:
        return True
    return (
        type(a) is type(b)
        and a.descriptor == b.descriptor
        and getattr(a, "context", None) == getattr(b, "context", None)
    )


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: Dict[str, Tool] = {}
        for t in tools:
            self.register(t)

    def register(self, tool: Tool) -> None:
        """Register a tool instance under its descriptor name.

        :raises ToolRegistrationError: if a different tool already owns the name
            or the input schema is not a valid JSON schema.
        """
        existing = self._tools.get(tool.name)
        if existing is not None:
            if _same_tool(existing, tool):
                return
            raise ToolRegistrationError(
                f"Tool '{tool.name}' is already registered with a different implementation."
            )
        check_schema(tool.descriptor.input_schema)
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(f"Tool not found: {name}")

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> List[str]:
        return sorted(self._tools)

    def catalog(self) -> List[ToolSpec]:
        return [self._tools[n].descriptor.to_spec() for n in self.names()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
