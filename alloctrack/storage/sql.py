"""SQL storage backed by SQLModel tables and an async SQLAlchemy session.

Each transaction owns one session. The resource row is read with
``SELECT ... FOR UPDATE`` when the caller asks for it, which serializes
writers across processes on PostgreSQL; SQLite ignores the clause and the
in-process resource locks do the work.
"""

from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import delete
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from alloctrack.core.errors import ConflictError, NotFoundError, StorageUnavailableError
from alloctrack.core.records import (
    Allocation,
    AllocationWithResource,
    Resource,
    ResourceWithAllocations,
)
from alloctrack.db.models import AllocationRow, ResourceRow, utc_now
from alloctrack.logging import get_logger
from alloctrack.metrics import record_conflict

logger = get_logger(__name__)

# SQLSTATE serialization_failure, deadlock_detected, lock_not_available
_CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}
_CONFLICT_MARKERS = (
    "database is locked",
    "database table is locked",
    "could not serialize",
    "deadlock detected",
)


def is_conflict(error: DBAPIError) -> bool:
    """True when the driver reports a transient concurrency failure."""
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(marker in message for marker in _CONFLICT_MARKERS)


class SqlRepository:
    """AllocationRepository over one open session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_resource_with_allocations(
        self, resource_id: str, *, for_update: bool = False,
    ) -> ResourceWithAllocations | None:
        query = select(ResourceRow).where(ResourceRow.id == resource_id)
        if for_update:
            query = query.with_for_update()
        result = await self._session.execute(query)
        row = result.scalar_one_or_none()
        if row is None:
            return None

        result = await self._session.execute(
            select(AllocationRow)
            .where(AllocationRow.resource_id == resource_id)
            .order_by(AllocationRow.created_at, AllocationRow.id)
        )
        return ResourceWithAllocations(
            resource=Resource.model_validate(row),
            allocations=tuple(Allocation.model_validate(a) for a in result.scalars().all()),
        )

    async def get_allocation(self, user_id: str, resource_id: str) -> Allocation | None:
        row = await self._get_allocation_row(user_id, resource_id)
        return Allocation.model_validate(row) if row else None

    async def upsert_allocation(
        self, user_id: str, resource_id: str, amount: int,
    ) -> Allocation:
        row = await self._get_allocation_row(user_id, resource_id)
        if row is None:
            row = AllocationRow(user_id=user_id, resource_id=resource_id, amount=amount)
            self._session.add(row)
        else:
            row.amount = amount
            row.updated_at = utc_now()
        await self._session.flush()
        return Allocation.model_validate(row)

    async def delete_allocation(self, user_id: str, resource_id: str) -> None:
        await self._session.execute(
            delete(AllocationRow).where(
                AllocationRow.user_id == user_id,
                AllocationRow.resource_id == resource_id,
            )
        )

    async def create_resource(self, name: str, total_amount: int) -> Resource:
        row = ResourceRow(name=name, total_amount=total_amount)
        self._session.add(row)
        await self._session.flush()
        return Resource.model_validate(row)

    async def update_resource(
        self, resource_id: str, name: str, total_amount: int,
    ) -> Resource:
        row = await self._session.get(ResourceRow, resource_id)
        if row is None:
            raise NotFoundError("Resource", resource_id)
        row.name = name
        row.total_amount = total_amount
        row.updated_at = utc_now()
        await self._session.flush()
        return Resource.model_validate(row)

    async def delete_resource(self, resource_id: str) -> None:
        # Explicit so the cascade does not depend on SQLite's foreign_keys pragma.
        await self._session.execute(
            delete(AllocationRow).where(AllocationRow.resource_id == resource_id)
        )
        await self._session.execute(
            delete(ResourceRow).where(ResourceRow.id == resource_id)
        )

    async def list_resources_with_allocations(self) -> list[ResourceWithAllocations]:
        result = await self._session.execute(
            select(ResourceRow).order_by(ResourceRow.created_at, ResourceRow.id)
        )
        resources = result.scalars().all()

        result = await self._session.execute(
            select(AllocationRow).order_by(AllocationRow.created_at, AllocationRow.id)
        )
        by_resource: dict[str, list[Allocation]] = defaultdict(list)
        for row in result.scalars().all():
            by_resource[row.resource_id].append(Allocation.model_validate(row))

        return [
            ResourceWithAllocations(
                resource=Resource.model_validate(row),
                allocations=tuple(by_resource[row.id]),
            )
            for row in resources
        ]

    async def list_allocations_for_user(self, user_id: str) -> list[AllocationWithResource]:
        result = await self._session.execute(
            select(AllocationRow, ResourceRow)
            .join(ResourceRow, ResourceRow.id == AllocationRow.resource_id)
            .where(AllocationRow.user_id == user_id)
            .order_by(AllocationRow.created_at, AllocationRow.id)
        )
        return [
            AllocationWithResource(
                allocation=Allocation.model_validate(allocation),
                resource=Resource.model_validate(resource),
            )
            for allocation, resource in result.all()
        ]

    async def _get_allocation_row(self, user_id: str, resource_id: str) -> AllocationRow | None:
        result = await self._session.execute(
            select(AllocationRow).where(
                AllocationRow.user_id == user_id,
                AllocationRow.resource_id == resource_id,
            )
        )
        return result.scalar_one_or_none()


class SqlStorage:
    """Storage whose transactions are database transactions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlRepository]:
        """Commit on normal exit; roll back and map driver errors otherwise."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield SqlRepository(session)
        except IntegrityError as e:
            logger.warning("storage_integrity_conflict", error=str(e.orig))
            record_conflict("integrity")
            raise ConflictError() from e
        except DBAPIError as e:
            if is_conflict(e):
                logger.warning("storage_conflict", error=str(e.orig))
                record_conflict("serialization")
                raise ConflictError() from e
            logger.error("storage_driver_error", error=str(e.orig))
            raise StorageUnavailableError("transaction") from e
        except SQLAlchemyError as e:
            logger.error("storage_error", error=str(e), error_type=type(e).__name__)
            raise StorageUnavailableError("transaction") from e
