"""
Isolated, resource-bounded execution environments, one per session.
"""

from agentrun.sandbox.manager import SandboxManager

__all__ = ["SandboxManager"]
