"""HTTP request and response schemas."""

from alloctrack.schemas.api import (
    AllocationChange,
    AllocationListResponse,
    AllocationView,
    AllocationWrite,
    MessageResponse,
    ResourceListResponse,
    ResourceSummary,
    ResourceView,
    ResourceWrite,
)

__all__ = [
    "AllocationChange",
    "AllocationListResponse",
    "AllocationView",
    "AllocationWrite",
    "MessageResponse",
    "ResourceListResponse",
    "ResourceSummary",
    "ResourceView",
    "ResourceWrite",
]
