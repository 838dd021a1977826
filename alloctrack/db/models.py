"""Database tables for alloctrack persistence.

All tables use SQLModel for Pydantic + SQLAlchemy integration. Users live
in the external identity provider; allocations reference them only by id.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


class ResourceRow(SQLModel, table=True):
    """A finite, named pool of capacity."""

    __tablename__ = "resources"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    name: str = Field(index=True)
    total_amount: int
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AllocationRow(SQLModel, table=True):
    """One user's claim on one resource.

    Unique per (user_id, resource_id); removed with its resource.
    """

    __tablename__ = "allocations"
    __table_args__ = (
        UniqueConstraint("user_id", "resource_id", name="uq_allocation_user_resource"),
        {"extend_existing": True},
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    user_id: str = Field(index=True)
    resource_id: str = Field(
        sa_column=Column(
            String,
            ForeignKey("resources.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    amount: int
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
