"""Tests for resource creation, resizing and deletion."""

import pytest

from alloctrack.core.errors import CapacityExceededError, InvalidInputError, NotFoundError
from alloctrack.core.ledger import allocated_amount


@pytest.mark.asyncio
class TestCreateResource:
    async def test_create(self, services):
        resource = await services.resources.create_resource("GPU-A", 100)
        assert resource.name == "GPU-A"
        assert resource.total_amount == 100
        assert resource.id

        state = await services.resources.get_resource(resource.id)
        assert state.allocations == ()

    async def test_name_is_stripped(self, services):
        resource = await services.resources.create_resource("  Disk  ", 5)
        assert resource.name == "Disk"

    @pytest.mark.parametrize("total", [0, -3, 2.5, "10", True])
    async def test_rejects_bad_total(self, services, total):
        with pytest.raises(InvalidInputError) as exc_info:
            await services.resources.create_resource("Disk", total)
        assert exc_info.value.field == "total_amount"

    @pytest.mark.parametrize("name", ["", "   ", None, 42])
    async def test_rejects_bad_name(self, services, name):
        with pytest.raises(InvalidInputError) as exc_info:
            await services.resources.create_resource(name, 10)
        assert exc_info.value.field == "name"

    async def test_rejected_create_persists_nothing(self, services):
        with pytest.raises(InvalidInputError):
            await services.resources.create_resource("Disk", 0)
        assert await services.resources.list_resources() == []


@pytest.mark.asyncio
class TestUpdateResource:
    async def test_cannot_shrink_below_allocated(self, services):
        disk = await services.resources.create_resource("Disk", 10)
        await services.allocations.set_allocation("C", disk.id, 10)

        with pytest.raises(CapacityExceededError) as exc_info:
            await services.resources.update_resource(disk.id, "Disk", 5)
        assert exc_info.value.allocated == 10
        assert exc_info.value.details == {"allocated": 10}

        state = await services.resources.get_resource(disk.id)
        assert state.resource.total_amount == 10

    async def test_shrink_to_allocated_total(self, services):
        disk = await services.resources.create_resource("Disk", 10)
        await services.allocations.set_allocation("C", disk.id, 6)

        resource = await services.resources.update_resource(disk.id, "Disk", 6)
        assert resource.total_amount == 6

    async def test_grow_and_rename(self, services):
        disk = await services.resources.create_resource("Disk", 10)
        resource = await services.resources.update_resource(disk.id, "Big Disk", 50)
        assert resource.name == "Big Disk"
        assert resource.total_amount == 50
        assert resource.id == disk.id

        state = await services.resources.get_resource(disk.id)
        assert state.resource.name == "Big Disk"

    async def test_zero_allowed_when_unclaimed(self, services):
        disk = await services.resources.create_resource("Disk", 10)
        resource = await services.resources.update_resource(disk.id, "Disk", 0)
        assert resource.total_amount == 0

        with pytest.raises(CapacityExceededError) as exc_info:
            await services.allocations.set_allocation("u", disk.id, 1)
        assert exc_info.value.available == 0

    async def test_negative_total_is_invalid(self, services):
        disk = await services.resources.create_resource("Disk", 10)
        with pytest.raises(InvalidInputError):
            await services.resources.update_resource(disk.id, "Disk", -1)

    async def test_empty_name_is_invalid(self, services):
        disk = await services.resources.create_resource("Disk", 10)
        with pytest.raises(InvalidInputError) as exc_info:
            await services.resources.update_resource(disk.id, "", 10)
        assert exc_info.value.field == "name"

    async def test_unknown_resource(self, services):
        with pytest.raises(NotFoundError):
            await services.resources.update_resource("missing", "Disk", 10)


@pytest.mark.asyncio
class TestDeleteResource:
    async def test_delete_cascades_to_allocations(self, services):
        gpu = await services.resources.create_resource("GPU", 10)
        disk = await services.resources.create_resource("Disk", 10)
        await services.allocations.set_allocation("u", gpu.id, 3)
        await services.allocations.set_allocation("v", gpu.id, 4)
        await services.allocations.set_allocation("u", disk.id, 5)

        await services.resources.delete_resource(gpu.id)

        with pytest.raises(NotFoundError):
            await services.resources.get_resource(gpu.id)
        items = await services.allocations.get_allocations_for_user("u")
        assert [i.resource.id for i in items] == [disk.id]
        assert await services.allocations.get_allocations_for_user("v") == []

    async def test_delete_unknown(self, services):
        with pytest.raises(NotFoundError):
            await services.resources.delete_resource("missing")

    async def test_delete_twice(self, services):
        disk = await services.resources.create_resource("Disk", 10)
        await services.resources.delete_resource(disk.id)
        with pytest.raises(NotFoundError):
            await services.resources.delete_resource(disk.id)


@pytest.mark.asyncio
class TestListResources:
    async def test_lists_with_allocations(self, services):
        gpu = await services.resources.create_resource("GPU", 10)
        await services.resources.create_resource("Disk", 20)
        await services.allocations.set_allocation("u", gpu.id, 3)
        await services.allocations.set_allocation("v", gpu.id, 4)

        states = {s.resource.name: s for s in await services.resources.list_resources()}
        assert set(states) == {"GPU", "Disk"}
        assert allocated_amount(states["GPU"].allocations) == 7
        assert states["Disk"].allocations == ()
