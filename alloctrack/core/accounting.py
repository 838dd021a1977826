"""Allocation accounting core.

Changing a claim is a read-check-write over the whole allocation set of a
resource. That sequence runs under the resource's lock and inside a single
storage transaction, so two concurrent claims can never both pass the
capacity check against the same stale total, and a rejected claim leaves
nothing behind.
"""

from alloctrack.core.errors import CapacityExceededError, NotFoundError
from alloctrack.core.inputs import AllocationRequest, parse_input
from alloctrack.core.ledger import allocated_amount
from alloctrack.core.locks import ResourceLocks
from alloctrack.core.records import (
    AllocationResult,
    AllocationStatus,
    AllocationWithResource,
)
from alloctrack.core.repository import Storage
from alloctrack.logging import get_logger
from alloctrack.metrics import record_allocation_change, record_capacity_rejection

logger = get_logger(__name__)


class AllocationService:
    """Creates, changes and releases single-user claims on a resource."""

    def __init__(self, storage: Storage, locks: ResourceLocks):
        self._storage = storage
        self._locks = locks

    async def set_allocation(
        self, user_id: str, resource_id: str, desired_amount: int,
    ) -> AllocationResult:
        """Replace ``user_id``'s claim on ``resource_id`` with ``desired_amount``.

        The new amount replaces the user's previous claim rather than adding
        to it. Zero releases the claim and succeeds even if there was none.

        Raises:
            InvalidInputError: ids empty or amount not a non-negative int.
            NotFoundError: the resource does not exist.
            CapacityExceededError: ``desired_amount`` is more than the other
                users leave free; ``available`` carries that limit.
            ConflictError: the storage detected a concurrent write.
        """
        request = parse_input(
            AllocationRequest,
            user_id=user_id,
            resource_id=resource_id,
            amount=desired_amount,
        )

        async with self._locks.hold(request.resource_id):
            async with self._storage.transaction() as repo:
                state = await repo.get_resource_with_allocations(
                    request.resource_id, for_update=True,
                )
                if state is None:
                    raise NotFoundError("Resource", request.resource_id)

                total = allocated_amount(state.allocations)
                current = next(
                    (a for a in state.allocations if a.user_id == request.user_id),
                    None,
                )
                current_amount = current.amount if current else 0
                available = state.resource.total_amount - (total - current_amount)

                if request.amount > available:
                    logger.info(
                        "allocation_rejected",
                        user_id=request.user_id,
                        resource_id=request.resource_id,
                        requested=request.amount,
                        available=available,
                    )
                    record_capacity_rejection("allocation")
                    raise CapacityExceededError(
                        f"Requested {request.amount} but only {available} available",
                        available=available,
                    )

                if request.amount == 0:
                    await repo.delete_allocation(request.user_id, request.resource_id)
                    allocation = None
                    status = AllocationStatus.RELEASED
                else:
                    allocation = await repo.upsert_allocation(
                        request.user_id, request.resource_id, request.amount,
                    )
                    status = (
                        AllocationStatus.UPDATED if current else AllocationStatus.CREATED
                    )

        remaining = available - request.amount
        logger.info(
            "allocation_committed",
            user_id=request.user_id,
            resource_id=request.resource_id,
            status=status.value,
            previous=current_amount,
            amount=request.amount,
            remaining=remaining,
        )
        record_allocation_change(status.value)
        return AllocationResult(
            status=status, allocation=allocation, remaining_amount=remaining,
        )

    async def release_allocation(self, user_id: str, resource_id: str) -> AllocationResult:
        """Drop ``user_id``'s claim on ``resource_id``. Idempotent."""
        return await self.set_allocation(user_id, resource_id, 0)

    async def get_allocations_for_user(self, user_id: str) -> list[AllocationWithResource]:
        """Snapshot of every claim held by ``user_id``, resources embedded."""
        async with self._storage.transaction() as repo:
            return await repo.list_allocations_for_user(user_id)
