"""Tests for the allocation client library."""

import httpx
import pytest

from alloctrack.client import AllocationClient
from alloctrack.client.allocation_client import (
    AllocationClientError,
    AuthenticationError,
    CapacityExceededError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)


class TestAllocationClient(AllocationClient):
    """AllocationClient that sends its requests through the Starlette TestClient."""

    __test__ = False

    def __init__(self, test_client, user_id=None):
        self.base_url = ""
        self.user_id = user_id
        self.timeout = 30.0
        self.user_header = "X-User-ID"
        self._client = test_client

    def close(self):
        pass


@pytest.fixture
def admin(client):
    return TestAllocationClient(client, user_id="admin")


@pytest.fixture
def make_client(client):
    def factory(user_id):
        return TestAllocationClient(client, user_id=user_id)

    return factory


def mock_client(handler, user_id="alice") -> AllocationClient:
    """AllocationClient whose transport is answered by ``handler``."""
    api = AllocationClient("http://alloctrack.test", user_id=user_id)
    api._client = httpx.Client(
        base_url="http://alloctrack.test", transport=httpx.MockTransport(handler),
    )
    return api


class TestClientHealth:
    def test_health_check(self, admin):
        health = admin.health()
        assert health["status"] == "healthy"
        assert "version" in health


class TestClientResources:
    def test_create_and_list(self, admin):
        gpu = admin.create_resource("GPU-A", 100)
        assert gpu.name == "GPU-A"
        assert gpu.remaining_amount == 100

        resources = admin.list_resources()
        assert [r.id for r in resources] == [gpu.id]

    def test_update_below_allocated(self, admin, make_client):
        disk = admin.create_resource("Disk", 10)
        make_client("C").set_allocation(disk.id, 10)

        with pytest.raises(CapacityExceededError) as exc_info:
            admin.update_resource(disk.id, "Disk", 5)
        assert exc_info.value.allocated == 10
        assert exc_info.value.available is None
        assert exc_info.value.code == "CAPACITY_EXCEEDED"

    def test_update(self, admin):
        disk = admin.create_resource("Disk", 10)
        updated = admin.update_resource(disk.id, "Disk", 40)
        assert updated.total_amount == 40
        assert admin.get_resource(disk.id).remaining_amount == 40

    def test_delete(self, admin):
        disk = admin.create_resource("Disk", 10)
        admin.delete_resource(disk.id)
        with pytest.raises(NotFoundError):
            admin.get_resource(disk.id)

    def test_invalid_total(self, admin):
        with pytest.raises(InvalidInputError) as exc_info:
            admin.create_resource("Disk", -4)
        assert exc_info.value.details["field"] == "total_amount"

    def test_anonymous_writes_rejected(self, client):
        anonymous = TestAllocationClient(client)
        with pytest.raises(AuthenticationError):
            anonymous.create_resource("Disk", 10)


class TestClientAllocations:
    def test_claim_reject_and_retry_with_available(self, admin, make_client):
        gpu = admin.create_resource("GPU-A", 100)
        alice = make_client("A")
        bob = make_client("B")

        change = alice.set_allocation(gpu.id, 60)
        assert change.status == "created"
        assert change.remaining_amount == 40

        with pytest.raises(CapacityExceededError) as exc_info:
            bob.set_allocation(gpu.id, 50)
        assert exc_info.value.available == 40

        change = bob.set_allocation(gpu.id, exc_info.value.available)
        assert change.remaining_amount == 0

    def test_list_allocations(self, admin, make_client):
        gpu = admin.create_resource("GPU-A", 100)
        alice = make_client("A")
        alice.set_allocation(gpu.id, 12)

        allocations = alice.list_allocations()
        assert len(allocations) == 1
        assert allocations[0].amount == 12
        assert allocations[0].resource_name == "GPU-A"
        assert make_client("B").list_allocations() == []

    def test_release(self, admin, make_client):
        gpu = admin.create_resource("GPU-A", 100)
        alice = make_client("A")
        alice.set_allocation(gpu.id, 12)

        change = alice.release_allocation(gpu.id)
        assert change.status == "released"
        assert change.allocation is None
        assert change.remaining_amount == 100
        assert alice.release_allocation(gpu.id).status == "released"

    def test_unknown_resource(self, make_client):
        with pytest.raises(NotFoundError) as exc_info:
            make_client("A").set_allocation("missing", 1)
        assert exc_info.value.details == {"entity": "Resource", "id": "missing"}


class TestClientErrors:
    def test_conflict_is_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(
                    409,
                    json={"error": {"code": "CONFLICT", "message": "busy", "details": {}}},
                )
            return httpx.Response(
                200, json={"status": "released", "allocation": None, "remaining_amount": 7},
            )

        with mock_client(handler) as api:
            change = api.set_allocation("r1", 0, retries=2)

        assert change.remaining_amount == 7
        assert len(calls) == 3
        assert all(c.headers["X-User-ID"] == "alice" for c in calls)

    def test_conflict_raised_when_retries_exhausted(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                409, json={"error": {"code": "CONFLICT", "message": "busy"}},
            )

        with mock_client(handler) as api:
            with pytest.raises(ConflictError):
                api.set_allocation("r1", 1, retries=1)

    def test_capacity_errors_are_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(
                409,
                json={
                    "error": {
                        "code": "CAPACITY_EXCEEDED",
                        "message": "full",
                        "details": {"available": 3},
                    }
                },
            )

        with mock_client(handler) as api:
            with pytest.raises(CapacityExceededError):
                api.set_allocation("r1", 5, retries=3)
        assert len(calls) == 1

    def test_unknown_error_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                418, json={"error": {"code": "TEAPOT", "message": "short and stout"}},
            )

        with mock_client(handler) as api:
            with pytest.raises(AllocationClientError) as exc_info:
                api.list_resources()
        assert exc_info.value.code == "TEAPOT"

    def test_non_json_error_raises_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        with mock_client(handler) as api:
            with pytest.raises(httpx.HTTPStatusError):
                api.list_resources()

    def test_no_user_header_without_identity(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"resources": [], "count": 0})

        with mock_client(handler, user_id=None) as api:
            assert api.list_resources() == []
        assert "X-User-ID" not in seen[0].headers
