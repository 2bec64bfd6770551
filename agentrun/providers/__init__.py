"""
Generation providers. Only the abstract contract and a replay provider live
here; concrete model clients are supplied by the embedding application.
"""

from agentrun.providers.base import GenerationProvider
from agentrun.providers.replay_provider import ScriptedProvider

__all__ = ["GenerationProvider", "ScriptedProvider"]
