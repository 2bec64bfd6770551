from agentrun.persistence.base import PersistenceStore
from agentrun.persistence.memory import InMemoryStore

__all__ = ["InMemoryStore", "PersistenceStore"]
