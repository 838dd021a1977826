"""Immutable records passed between the core and storage.

Storage implementations build these from their own rows (ORM objects are
accepted directly thanks to ``from_attributes``), so the accounting logic
never touches a session or a table.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class Record(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)


class Resource(Record):
    """A finite, named pool of integer capacity."""

    id: str
    name: str
    total_amount: int
    created_at: datetime
    updated_at: datetime


class Allocation(Record):
    """One user's current claim against one resource."""

    id: str
    user_id: str
    resource_id: str
    amount: int
    created_at: datetime
    updated_at: datetime


class ResourceWithAllocations(Record):
    """A resource together with every allocation currently on it."""

    resource: Resource
    allocations: tuple[Allocation, ...] = ()


class AllocationWithResource(Record):
    """An allocation with its resource embedded, for per-user listings."""

    allocation: Allocation
    resource: Resource


class AllocationStatus(str, Enum):
    """Outcome of a committed claim change."""

    CREATED = "created"
    UPDATED = "updated"
    RELEASED = "released"


class AllocationResult(Record):
    """Result of ``set_allocation``.

    ``allocation`` is None when the claim was released.
    """

    status: AllocationStatus
    allocation: Allocation | None
    remaining_amount: int
