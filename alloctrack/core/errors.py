"""Error hierarchy for the allocation accounting core.

Every error carries a stable code, a category and the HTTP status the
request layer should answer with. Capacity errors carry the computed limit
in ``details`` so callers can offer a corrected value without re-querying.
"""

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BUSINESS_RULE = "business_rule"
    CONFLICT = "conflict"
    STORAGE = "storage"


class AllocTrackError(Exception):
    """Base exception for all accounting errors."""

    retryable = False

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        http_status: int = 500,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.http_status = http_status
        self.details = details or {}

    def to_response(self) -> dict[str, Any]:
        """Convert to the REST error envelope."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "retryable": self.retryable,
                "details": self.details,
            }
        }


class InvalidInputError(AllocTrackError):
    """Malformed amount, name or total amount."""

    def __init__(self, message: str, field: str):
        super().__init__(
            message, "INVALID_INPUT", ErrorCategory.VALIDATION, 400,
            {"field": field},
        )
        self.field = field


class NotFoundError(AllocTrackError):
    """Referenced resource or allocation does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity} '{entity_id}' not found",
            "NOT_FOUND", ErrorCategory.NOT_FOUND, 404,
            {"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class CapacityExceededError(AllocTrackError):
    """A claim or a shrink would break the capacity invariant.

    Exactly one of ``available`` (claim rejected) or ``allocated`` (shrink
    rejected) is set.
    """

    def __init__(
        self,
        message: str,
        *,
        available: int | None = None,
        allocated: int | None = None,
    ):
        details: dict[str, Any] = {}
        if available is not None:
            details["available"] = available
        if allocated is not None:
            details["allocated"] = allocated
        super().__init__(
            message, "CAPACITY_EXCEEDED", ErrorCategory.BUSINESS_RULE, 409,
            details,
        )
        self.available = available
        self.allocated = allocated


class ConflictError(AllocTrackError):
    """Concurrent write detected by the storage layer."""

    retryable = True

    def __init__(self, message: str = "Concurrent modification, retry the request"):
        super().__init__(message, "CONFLICT", ErrorCategory.CONFLICT, 409)


class StorageUnavailableError(AllocTrackError):
    """Repository-layer failure (connectivity, driver errors)."""

    def __init__(self, operation: str):
        super().__init__(
            f"Storage {operation} failed",
            "STORAGE_UNAVAILABLE", ErrorCategory.STORAGE, 503,
            {"operation": operation},
        )
        self.operation = operation
