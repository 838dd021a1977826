"""Repository protocols: the storage boundary of the accounting core.

The core only ever talks to storage through these types. ``Storage`` hands
out one ``AllocationRepository`` per transaction; leaving the context
normally commits, leaving it with an exception rolls everything back.
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from alloctrack.core.records import (
    Allocation,
    AllocationWithResource,
    Resource,
    ResourceWithAllocations,
)


class AllocationRepository(Protocol):
    """Transaction-scoped view of resources and their allocations."""

    async def get_resource_with_allocations(
        self, resource_id: str, *, for_update: bool = False,
    ) -> ResourceWithAllocations | None: ...

    async def get_allocation(
        self, user_id: str, resource_id: str,
    ) -> Allocation | None: ...

    async def upsert_allocation(
        self, user_id: str, resource_id: str, amount: int,
    ) -> Allocation: ...

    async def delete_allocation(self, user_id: str, resource_id: str) -> None: ...

    async def create_resource(self, name: str, total_amount: int) -> Resource: ...

    async def update_resource(
        self, resource_id: str, name: str, total_amount: int,
    ) -> Resource: ...

    async def delete_resource(self, resource_id: str) -> None: ...

    async def list_resources_with_allocations(self) -> list[ResourceWithAllocations]: ...

    async def list_allocations_for_user(
        self, user_id: str,
    ) -> list[AllocationWithResource]: ...


class Storage(Protocol):
    """Factory for transactions."""

    def transaction(self) -> AbstractAsyncContextManager[AllocationRepository]: ...
