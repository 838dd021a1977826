"""Storage implementations of the repository protocols."""

from alloctrack.storage.memory import InMemoryStorage
from alloctrack.storage.sql import SqlStorage

__all__ = ["InMemoryStorage", "SqlStorage"]
