# agentrun/tools/__init__.py
"""
The tool layer: the `Tool` contract, the per-context `ToolRegistry`, the
`ToolExecutor` that runs one call end to end, and the approval gate used by
confirmation-gated tools.
"""

from agentrun.tools.approvals import ApprovalDecision, ApprovalGate
from agentrun.tools.base import ProgressCallback, Tool, ToolContext
from agentrun.tools.executor import ToolExecutor
from agentrun.tools.registry import ToolRegistry

__all__ = [
    "ApprovalDecision",
    "ApprovalGate",
    "ProgressCallback",
    "Tool",
    "ToolContext",
    "ToolExecutor",
    "ToolRegistry",
]
