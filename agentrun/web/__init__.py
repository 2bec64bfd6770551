# agentrun/web/__init__.py
"""
Transport layer: a FastAPI router over the turn hub and approval gate.
"""

from agentrun.web.app import create_app
from agentrun.web.routes_turns import router

__all__ = ["create_app", "router"]
