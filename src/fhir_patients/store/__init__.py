from .base import LocalStore
from .memory import InMemoryStore
from .sqlite_store import SQLiteStore

__all__ = ["LocalStore", "InMemoryStore", "SQLiteStore"]
