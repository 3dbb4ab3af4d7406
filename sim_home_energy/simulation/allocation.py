"""
Priority-based power allocation kernel.

Every allocation strategy in the package reduces to this waterfall: devices
are served strictly in ``priority_order``, each receiving up to its demand,
until the available power runs out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

REMAINING_EPSILON_KW = 1e-9


@dataclass(frozen=True)
class PowerDemand:
    """Maximum power a device can accept this step (kW)."""
    id: str
    demand_kw: float


@dataclass(frozen=True)
class PowerAllocation:
    """Power granted to a device (kW)."""
    id: str
    allocated_kw: float


def allocate_by_priority(
    available_kw: float,
    demands: Sequence[PowerDemand],
    priority_order: Sequence[str],
) -> List[PowerAllocation]:
    """
    Allocate ``available_kw`` to devices following a strict priority order.

    Args:
        available_kw: Power available for allocation (kW). Must be >= 0.
        demands: Device demands. Entries with ``demand_kw <= 0`` count as 0.
        priority_order: Device ids in serving order. Ids missing from this
            list never receive power; ids without a demand receive 0.

    Returns:
        One allocation per id of ``priority_order`` (zero grants included), in
        the same order.

    Raises:
        ValueError: If ``available_kw`` is negative.

    Example:
        ```python
        demands = [PowerDemand("battery", 3.0), PowerDemand("ecs", 3.0)]
        allocate_by_priority(5.0, demands, ["ecs", "battery"])
        # -> ecs=3.0, battery=2.0
        ```
    """
    if available_kw < 0:
        raise ValueError(f"available_kw must be >= 0, got {available_kw}")

    demand_map: Dict[str, float] = {}
    for demand in demands:
        if demand.demand_kw > 0:
            demand_map[demand.id] = demand.demand_kw

    allocations: List[PowerAllocation] = []
    remaining_kw = available_kw
    for device_id in priority_order:
        granted = min(demand_map.get(device_id, 0.0), remaining_kw)
        allocations.append(PowerAllocation(id=device_id, allocated_kw=granted))
        remaining_kw -= granted
        if remaining_kw < REMAINING_EPSILON_KW:
            remaining_kw = 0.0
    return allocations


def allocations_to_map(allocations: Sequence[PowerAllocation]) -> Dict[str, float]:
    return {allocation.id: allocation.allocated_kw for allocation in allocations}


def total_allocated(allocations: Sequence[PowerAllocation]) -> float:
    return sum(allocation.allocated_kw for allocation in allocations)
