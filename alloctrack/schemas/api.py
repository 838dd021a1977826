"""HTTP schema definitions.

Request bodies are deliberately loose: amounts and names are checked once
by the accounting core, which answers with a typed error envelope.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from alloctrack.core.ledger import allocated_amount
from alloctrack.core.records import (
    Allocation,
    AllocationResult,
    AllocationWithResource,
    Resource,
    ResourceWithAllocations,
)


class ResourceWrite(BaseModel):
    """Payload for creating or updating a resource."""

    name: Any = Field(default=None, description="Non-empty resource name")
    total_amount: Any = Field(default=None, description="Total capacity in whole units")


class AllocationWrite(BaseModel):
    """Payload for setting the caller's claim on a resource."""

    resource_id: Any = Field(default=None, description="Resource to claim from")
    amount: Any = Field(default=None, description="Desired claim; 0 releases it")


class ResourceSummary(BaseModel):
    """A resource without allocation totals."""

    id: str
    name: str
    total_amount: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, resource: Resource) -> "ResourceSummary":
        return cls(**resource.model_dump())


class ResourceView(ResourceSummary):
    """A resource with its allocated and remaining capacity."""

    allocated_amount: int
    remaining_amount: int

    @classmethod
    def from_state(cls, state: ResourceWithAllocations) -> "ResourceView":
        allocated = allocated_amount(state.allocations)
        return cls(
            **state.resource.model_dump(),
            allocated_amount=allocated,
            remaining_amount=state.resource.total_amount - allocated,
        )


class AllocationView(BaseModel):
    """One claim, optionally with its resource embedded."""

    id: str
    user_id: str
    resource_id: str
    amount: int
    created_at: datetime
    updated_at: datetime
    resource: ResourceSummary | None = None

    @classmethod
    def from_record(cls, allocation: Allocation) -> "AllocationView":
        return cls(**allocation.model_dump())

    @classmethod
    def from_joined(cls, item: AllocationWithResource) -> "AllocationView":
        return cls(
            **item.allocation.model_dump(),
            resource=ResourceSummary.from_record(item.resource),
        )


class AllocationChange(BaseModel):
    """Response to a claim change."""

    status: str
    allocation: AllocationView | None
    remaining_amount: int

    @classmethod
    def from_result(cls, result: AllocationResult) -> "AllocationChange":
        return cls(
            status=result.status.value,
            allocation=(
                AllocationView.from_record(result.allocation)
                if result.allocation
                else None
            ),
            remaining_amount=result.remaining_amount,
        )


class ResourceListResponse(BaseModel):
    resources: list[ResourceView]
    count: int


class AllocationListResponse(BaseModel):
    allocations: list[AllocationView]
    count: int


class MessageResponse(BaseModel):
    message: str
