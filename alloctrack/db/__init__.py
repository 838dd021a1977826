"""Database module for alloctrack persistence."""

from alloctrack.db.engine import close_db, get_engine, get_session_factory, init_db
from alloctrack.db.models import AllocationRow, ResourceRow

__all__ = [
    "AllocationRow",
    "ResourceRow",
    "close_db",
    "get_engine",
    "get_session_factory",
    "init_db",
]
