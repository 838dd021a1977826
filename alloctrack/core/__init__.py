"""Allocation accounting core."""

from alloctrack.core.accounting import AllocationService
from alloctrack.core.errors import (
    AllocTrackError,
    CapacityExceededError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    StorageUnavailableError,
)
from alloctrack.core.ledger import allocated_amount, remaining_amount
from alloctrack.core.lifecycle import ResourceService
from alloctrack.core.locks import ResourceLocks
from alloctrack.core.records import (
    Allocation,
    AllocationResult,
    AllocationStatus,
    AllocationWithResource,
    Resource,
    ResourceWithAllocations,
)

__all__ = [
    "AllocTrackError",
    "Allocation",
    "AllocationResult",
    "AllocationService",
    "AllocationStatus",
    "AllocationWithResource",
    "CapacityExceededError",
    "ConflictError",
    "InvalidInputError",
    "NotFoundError",
    "Resource",
    "ResourceLocks",
    "ResourceService",
    "ResourceWithAllocations",
    "StorageUnavailableError",
    "allocated_amount",
    "remaining_amount",
]
