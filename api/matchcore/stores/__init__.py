from .base import MatchingStore
from .memory import MemoryDatabase, MemoryStore, MemoryTransaction
from .sql import SqlStore

__all__ = ["MatchingStore", "MemoryDatabase", "MemoryStore", "MemoryTransaction", "SqlStore"]
