"""In-memory storage for tests and local tooling.

A transaction writes into its own overlay and only touches the shared
dicts when it commits, so a transaction that raises leaves no trace.
Nothing here serializes writers; that is the job of the resource locks.
``io_delay`` yields to the event loop on every call, the way a real driver
would, so concurrent tasks interleave.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from uuid import uuid4

from alloctrack.core.errors import NotFoundError
from alloctrack.core.records import (
    Allocation,
    AllocationWithResource,
    Resource,
    ResourceWithAllocations,
)

AllocationKey = tuple[str, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(record: Resource | Allocation) -> tuple[datetime, str]:
    return (record.created_at, record.id)


class InMemoryRepository:
    """AllocationRepository over an overlay of one ``InMemoryStorage``."""

    def __init__(self, storage: "InMemoryStorage"):
        self._storage = storage
        # None marks a pending delete
        self._resources: dict[str, Resource | None] = {}
        self._allocations: dict[AllocationKey, Allocation | None] = {}

    async def _io(self) -> None:
        await asyncio.sleep(self._storage.io_delay)

    def _resource(self, resource_id: str) -> Resource | None:
        if resource_id in self._resources:
            return self._resources[resource_id]
        return self._storage.resources.get(resource_id)

    def _all_resources(self) -> list[Resource]:
        merged = {**self._storage.resources, **self._resources}
        return sorted((r for r in merged.values() if r is not None), key=_sort_key)

    def _all_allocations(self) -> list[Allocation]:
        merged = {**self._storage.allocations, **self._allocations}
        return sorted((a for a in merged.values() if a is not None), key=_sort_key)

    async def get_resource_with_allocations(
        self, resource_id: str, *, for_update: bool = False,
    ) -> ResourceWithAllocations | None:
        await self._io()
        resource = self._resource(resource_id)
        if resource is None:
            return None
        allocations = tuple(
            a for a in self._all_allocations() if a.resource_id == resource_id
        )
        return ResourceWithAllocations(resource=resource, allocations=allocations)

    async def get_allocation(self, user_id: str, resource_id: str) -> Allocation | None:
        await self._io()
        key = (user_id, resource_id)
        if key in self._allocations:
            return self._allocations[key]
        return self._storage.allocations.get(key)

    async def upsert_allocation(
        self, user_id: str, resource_id: str, amount: int,
    ) -> Allocation:
        existing = await self.get_allocation(user_id, resource_id)
        now = _now()
        if existing is None:
            allocation = Allocation(
                id=str(uuid4()),
                user_id=user_id,
                resource_id=resource_id,
                amount=amount,
                created_at=now,
                updated_at=now,
            )
        else:
            allocation = existing.model_copy(update={"amount": amount, "updated_at": now})
        self._allocations[(user_id, resource_id)] = allocation
        return allocation

    async def delete_allocation(self, user_id: str, resource_id: str) -> None:
        await self._io()
        self._allocations[(user_id, resource_id)] = None

    async def create_resource(self, name: str, total_amount: int) -> Resource:
        await self._io()
        now = _now()
        resource = Resource(
            id=str(uuid4()),
            name=name,
            total_amount=total_amount,
            created_at=now,
            updated_at=now,
        )
        self._resources[resource.id] = resource
        return resource

    async def update_resource(
        self, resource_id: str, name: str, total_amount: int,
    ) -> Resource:
        await self._io()
        existing = self._resource(resource_id)
        if existing is None:
            raise NotFoundError("Resource", resource_id)
        resource = existing.model_copy(
            update={"name": name, "total_amount": total_amount, "updated_at": _now()}
        )
        self._resources[resource_id] = resource
        return resource

    async def delete_resource(self, resource_id: str) -> None:
        await self._io()
        for allocation in self._all_allocations():
            if allocation.resource_id == resource_id:
                self._allocations[(allocation.user_id, resource_id)] = None
        self._resources[resource_id] = None

    async def list_resources_with_allocations(self) -> list[ResourceWithAllocations]:
        await self._io()
        allocations = self._all_allocations()
        return [
            ResourceWithAllocations(
                resource=resource,
                allocations=tuple(a for a in allocations if a.resource_id == resource.id),
            )
            for resource in self._all_resources()
        ]

    async def list_allocations_for_user(self, user_id: str) -> list[AllocationWithResource]:
        await self._io()
        result = []
        for allocation in self._all_allocations():
            if allocation.user_id != user_id:
                continue
            resource = self._resource(allocation.resource_id)
            if resource is not None:
                result.append(AllocationWithResource(allocation=allocation, resource=resource))
        return result

    def commit(self) -> None:
        for resource_id, resource in self._resources.items():
            if resource is None:
                self._storage.resources.pop(resource_id, None)
            else:
                self._storage.resources[resource_id] = resource
        for key, allocation in self._allocations.items():
            if allocation is None:
                self._storage.allocations.pop(key, None)
            else:
                self._storage.allocations[key] = allocation


class InMemoryStorage:
    """Dict-backed storage with commit-or-discard transactions."""

    def __init__(self, io_delay: float = 0.0):
        self.io_delay = io_delay
        self.resources: dict[str, Resource] = {}
        self.allocations: dict[AllocationKey, Allocation] = {}

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryRepository]:
        repo = InMemoryRepository(self)
        yield repo
        repo.commit()
