"""Quantity ledger: pure totals over allocation records.

Callers must pass every allocation of a resource to get a correct
remaining figure. Amounts are assumed non-negative; the accounting core
enforces that before anything is persisted.
"""

from collections.abc import Iterable

from alloctrack.core.records import Allocation, Resource


def allocated_amount(allocations: Iterable[Allocation]) -> int:
    """Sum of claimed amounts. Empty input gives 0."""
    return sum(allocation.amount for allocation in allocations)


def remaining_amount(resource: Resource, allocations: Iterable[Allocation]) -> int:
    """Capacity left on ``resource`` after ``allocations``."""
    return resource.total_amount - allocated_amount(allocations)
