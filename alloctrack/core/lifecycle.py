"""Resource lifecycle: create, resize and delete resources.

Resizing and deleting touch a resource that may carry claims, so both run
under the same per-resource lock as claim changes.
"""

from alloctrack.core.errors import CapacityExceededError, NotFoundError
from alloctrack.core.inputs import ResourceCreate, ResourceUpdate, parse_input
from alloctrack.core.ledger import allocated_amount
from alloctrack.core.locks import ResourceLocks
from alloctrack.core.records import Resource, ResourceWithAllocations
from alloctrack.core.repository import Storage
from alloctrack.logging import get_logger
from alloctrack.metrics import record_capacity_rejection, record_resource_event

logger = get_logger(__name__)


class ResourceService:
    """Validates resource changes against existing allocations."""

    def __init__(self, storage: Storage, locks: ResourceLocks):
        self._storage = storage
        self._locks = locks

    async def create_resource(self, name: str, total_amount: int) -> Resource:
        """Create a resource with strictly positive capacity."""
        data = parse_input(ResourceCreate, name=name, total_amount=total_amount)
        async with self._storage.transaction() as repo:
            resource = await repo.create_resource(data.name, data.total_amount)
        logger.info(
            "resource_created",
            resource_id=resource.id,
            name=resource.name,
            total_amount=resource.total_amount,
        )
        record_resource_event("created")
        return resource

    async def update_resource(
        self, resource_id: str, name: str, total_amount: int,
    ) -> Resource:
        """Rename and resize a resource.

        Raises:
            CapacityExceededError: ``total_amount`` is below what is already
                allocated; ``allocated`` carries the current total.
        """
        data = parse_input(
            ResourceUpdate, resource_id=resource_id, name=name, total_amount=total_amount,
        )
        async with self._locks.hold(data.resource_id):
            async with self._storage.transaction() as repo:
                state = await repo.get_resource_with_allocations(
                    data.resource_id, for_update=True,
                )
                if state is None:
                    raise NotFoundError("Resource", data.resource_id)

                allocated = allocated_amount(state.allocations)
                if data.total_amount < allocated:
                    logger.info(
                        "resource_shrink_rejected",
                        resource_id=data.resource_id,
                        requested=data.total_amount,
                        allocated=allocated,
                    )
                    record_capacity_rejection("resource")
                    raise CapacityExceededError(
                        f"Total {data.total_amount} is below the {allocated} already allocated",
                        allocated=allocated,
                    )
                resource = await repo.update_resource(
                    data.resource_id, data.name, data.total_amount,
                )
        logger.info(
            "resource_updated",
            resource_id=resource.id,
            total_amount=resource.total_amount,
            allocated=allocated,
        )
        record_resource_event("updated")
        return resource

    async def delete_resource(self, resource_id: str) -> None:
        """Delete a resource together with every allocation on it."""
        async with self._locks.hold(resource_id):
            async with self._storage.transaction() as repo:
                state = await repo.get_resource_with_allocations(
                    resource_id, for_update=True,
                )
                if state is None:
                    raise NotFoundError("Resource", resource_id)
                await repo.delete_resource(resource_id)
        logger.info(
            "resource_deleted",
            resource_id=resource_id,
            released_allocations=len(state.allocations),
        )
        record_resource_event("deleted")

    async def get_resource(self, resource_id: str) -> ResourceWithAllocations:
        async with self._storage.transaction() as repo:
            state = await repo.get_resource_with_allocations(resource_id)
        if state is None:
            raise NotFoundError("Resource", resource_id)
        return state

    async def list_resources(self) -> list[ResourceWithAllocations]:
        async with self._storage.transaction() as repo:
            return await repo.list_resources_with_allocations()
