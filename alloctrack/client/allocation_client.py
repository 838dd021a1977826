"""HTTP client for the alloctrack server.

Usage:
    from alloctrack.client import AllocationClient

    with AllocationClient("http://localhost:3340", user_id="alice") as client:
        gpu = client.create_resource("GPU-A", 100)
        try:
            client.set_allocation(gpu.id, 60)
        except CapacityExceededError as e:
            client.set_allocation(gpu.id, e.available)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx


class AllocationClientError(Exception):
    """Base exception for client errors.

    Carries the server's error code and structured details when the server
    answered with an error envelope.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class AuthenticationError(AllocationClientError):
    """Raised when the request carried no user identity."""


class InvalidInputError(AllocationClientError):
    """Raised when the server rejected a malformed amount or name."""


class NotFoundError(AllocationClientError):
    """Raised when the resource does not exist."""


class CapacityExceededError(AllocationClientError):
    """Raised when a claim or a shrink would exceed capacity."""

    @property
    def available(self) -> int | None:
        return self.details.get("available")

    @property
    def allocated(self) -> int | None:
        return self.details.get("allocated")


class ConflictError(AllocationClientError):
    """Raised on a concurrent write; safe to retry."""


class StorageUnavailableError(AllocationClientError):
    """Raised when the server's storage is failing."""


_ERRORS_BY_CODE: dict[str, type[AllocationClientError]] = {
    "INVALID_INPUT": InvalidInputError,
    "NOT_FOUND": NotFoundError,
    "CAPACITY_EXCEEDED": CapacityExceededError,
    "CONFLICT": ConflictError,
    "STORAGE_UNAVAILABLE": StorageUnavailableError,
}


@dataclass
class ResourceInfo:
    """A resource as reported by the server."""

    id: str
    name: str
    total_amount: int
    allocated_amount: int
    remaining_amount: int
    created_at: str
    updated_at: str


@dataclass
class AllocationInfo:
    """One of the caller's claims."""

    id: str
    user_id: str
    resource_id: str
    amount: int
    created_at: str
    updated_at: str
    resource_name: str | None = None


@dataclass
class AllocationChange:
    """Outcome of setting or releasing a claim."""

    status: str
    allocation: AllocationInfo | None
    remaining_amount: int


def _resource(data: dict[str, Any]) -> ResourceInfo:
    return ResourceInfo(
        id=data["id"],
        name=data["name"],
        total_amount=data["total_amount"],
        allocated_amount=data["allocated_amount"],
        remaining_amount=data["remaining_amount"],
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


def _allocation(data: dict[str, Any]) -> AllocationInfo:
    resource = data.get("resource") or {}
    return AllocationInfo(
        id=data["id"],
        user_id=data["user_id"],
        resource_id=data["resource_id"],
        amount=data["amount"],
        created_at=data["created_at"],
        updated_at=data["updated_at"],
        resource_name=resource.get("name"),
    )


def _change(data: dict[str, Any]) -> AllocationChange:
    allocation = data.get("allocation")
    return AllocationChange(
        status=data["status"],
        allocation=_allocation(allocation) if allocation else None,
        remaining_amount=data["remaining_amount"],
    )


class AllocationClient:
    """Synchronous HTTP client acting on behalf of one user.

    Args:
        base_url: The server URL (e.g., "http://localhost:3340")
        user_id: Identity sent in the user header on every request
        timeout: Request timeout in seconds (default: 30)
        user_header: Header carrying the identity (default: "X-User-ID")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3340",
        user_id: str | None = None,
        timeout: float = 30.0,
        user_header: str = "X-User-ID",
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        self.user_header = user_header
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout)

    def __enter__(self) -> AllocationClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if self.user_id:
            headers[self.user_header] = self.user_id
        return self._client.request(method, path, headers=headers, **kwargs)

    def _check(self, response: httpx.Response) -> Any:
        """Return the JSON body or raise the typed error it describes."""
        if response.status_code == 401:
            raise AuthenticationError("Authentication required")
        if response.is_success:
            return response.json()

        try:
            error = response.json().get("error")
        except ValueError:
            error = None
        if not isinstance(error, dict):
            response.raise_for_status()
            raise AllocationClientError(f"Unexpected response {response.status_code}")

        error_cls = _ERRORS_BY_CODE.get(error.get("code"), AllocationClientError)
        raise error_cls(
            error.get("message", "Request failed"),
            code=error.get("code"),
            details=error.get("details"),
        )

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def health(self) -> dict[str, str]:
        return self._check(self._request("GET", "/health"))

    # -------------------------------------------------------------------------
    # Resources
    # -------------------------------------------------------------------------

    def list_resources(self) -> list[ResourceInfo]:
        data = self._check(self._request("GET", "/v1/resources"))
        return [_resource(r) for r in data["resources"]]

    def get_resource(self, resource_id: str) -> ResourceInfo:
        return _resource(self._check(self._request("GET", f"/v1/resources/{resource_id}")))

    def create_resource(self, name: str, total_amount: int) -> ResourceInfo:
        payload = {"name": name, "total_amount": total_amount}
        return _resource(self._check(self._request("POST", "/v1/resources", json=payload)))

    def update_resource(self, resource_id: str, name: str, total_amount: int) -> ResourceInfo:
        """Rename and resize a resource.

        Raises:
            CapacityExceededError: ``total_amount`` is below the allocated
                total, available as ``error.allocated``.
        """
        payload = {"name": name, "total_amount": total_amount}
        response = self._request("PUT", f"/v1/resources/{resource_id}", json=payload)
        return _resource(self._check(response))

    def delete_resource(self, resource_id: str) -> None:
        self._check(self._request("DELETE", f"/v1/resources/{resource_id}"))

    # -------------------------------------------------------------------------
    # Allocations
    # -------------------------------------------------------------------------

    def list_allocations(self) -> list[AllocationInfo]:
        data = self._check(self._request("GET", "/v1/allocations"))
        return [_allocation(a) for a in data["allocations"]]

    def set_allocation(
        self, resource_id: str, amount: int, retries: int = 0,
    ) -> AllocationChange:
        """Set this user's claim on a resource.

        Args:
            resource_id: Resource to claim from.
            amount: Desired claim; 0 releases it.
            retries: How many times to re-send the request after a
                ``ConflictError`` before giving up.

        Raises:
            CapacityExceededError: Not enough capacity; ``error.available``
                is the most this user can claim.
        """
        payload = {"resource_id": resource_id, "amount": amount}
        attempt = 0
        while True:
            try:
                return _change(self._check(self._request("POST", "/v1/allocations", json=payload)))
            except ConflictError:
                if attempt >= retries:
                    raise
                attempt += 1

    def release_allocation(self, resource_id: str) -> AllocationChange:
        response = self._request(
            "DELETE", "/v1/allocations", params={"resource_id": resource_id},
        )
        return _change(self._check(response))
