"""
agentrun core package.

Agent execution engine: the bounded turn loop, the task policy engine, the
tool contract/registry/executor, and the per-session sandbox manager.
"""

__all__ = [
    "agents",
    "exceptions",
    "persistence",
    "providers",
    "runtime",
    "sandbox",
    "schemas",
    "tools",
    "utils",
    "web",
]

__version__ = "0.1.0"
