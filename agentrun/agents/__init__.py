# agentrun/agents/__init__.py
"""
The agent engine: the policy engine that gates tool calls, the scheduler that
drives one bounded turn, and the hub that keeps one live turn per session.
"""

from agentrun.agents.broadcaster import EventBroadcaster
from agentrun.agents.scheduler import TurnScheduler
from agentrun.agents.task_manager import TaskManager
from agentrun.agents.turn_hub import TurnHandle, TurnHub

__all__ = ["EventBroadcaster", "TaskManager", "TurnHandle", "TurnHub", "TurnScheduler"]
