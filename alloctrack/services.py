"""Wiring of storage, locks and services."""

from dataclasses import dataclass

from alloctrack.core import AllocationService, ResourceLocks, ResourceService
from alloctrack.core.repository import Storage
from alloctrack.db import get_session_factory
from alloctrack.storage import SqlStorage


@dataclass
class Services:
    """The services one process uses, sharing one lock registry."""

    resources: ResourceService
    allocations: AllocationService
    locks: ResourceLocks


def build_services(storage: Storage) -> Services:
    locks = ResourceLocks()
    return Services(
        resources=ResourceService(storage, locks),
        allocations=AllocationService(storage, locks),
        locks=locks,
    )


def build_sql_services() -> Services:
    """Services over the configured database."""
    return build_services(SqlStorage(get_session_factory()))
