# agentrun/exceptions.py
"""
Defines custom exception classes for the agentrun engine.

Tool-level problems are normally converted into failed ToolResults before
they ever reach the scheduler; the classes here exist so that the layers
that *do* raise (registry, sandbox, persistence, generation) can be told
apart precisely by the code that maps them to results or terminal events.
"""
from typing import Any, List, Optional


class AgentRunError(Exception):
    """Base exception class for all custom errors in agentrun."""

    pass


class ConfigurationError(AgentRunError):
    """Raised when configuration cannot be loaded or validated."""

    pass


class ToolError(AgentRunError):
    """Base exception for errors related to tool handling."""

    pass


class ToolNotFoundError(ToolError, KeyError):
    """Raised when a requested tool is not registered in the current context.

    Inherits from `KeyError` so dictionary-style lookups can catch it.
    """

    def __str__(self) -> str:
        # KeyError quotes its message; keep the plain text
        return str(self.args[0]) if self.args else ""


class ToolValidationError(ToolError, ValueError):
    """Raised when tool parameters do not satisfy the tool's input schema.

    :ivar issues: One human-readable entry per violated field.
    """

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        super().__init__(message)
        self.issues = list(issues or [])


class ToolExecutionError(ToolError):
    """Raised when a tool fails while running, for reasons other than bad input."""

    pass


class ToolRegistrationError(ToolError):
    """Raised when a different tool tries to claim an already registered name."""

    pass


class SandboxError(AgentRunError):
    """Base exception for sandbox lifecycle failures."""

    pass


class SandboxUnavailableError(SandboxError):
    """Raised when the container runtime cannot be reached or provisioning fails."""

    pass


class SandboxNotRunningError(SandboxError):
    """Raised when a command targets a session that has no live sandbox."""

    pass


class SchedulerError(AgentRunError):
    """Fatal turn error: the turn is aborted and a terminal error event is emitted."""

    code = "INTERNAL_ERROR"


class GenerationError(SchedulerError):
    """Raised when the generation (model) call fails."""

    code = "GENERATION_FAILED"

    def __init__(self, message: str, cause: Optional[Any] = None):
        super().__init__(message)
        self.cause = cause


class PersistenceError(SchedulerError):
    """Raised when a durable write required by the turn fails."""

    code = "PERSISTENCE_FAILED"


class TurnError(AgentRunError):
    """Base exception for turn admission problems."""

    pass


class SessionNotFoundError(TurnError, KeyError):
    """Raised when a turn is requested for an unknown session."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class TurnInProgressError(TurnError):
    """Raised when a second turn is requested while one is still live."""

    pass
