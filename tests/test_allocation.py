from __future__ import annotations

import pytest

from sim_home_energy.simulation.allocation import (
    PowerDemand,
    allocate_by_priority,
    allocations_to_map,
    total_allocated,
)

DEMANDS = [PowerDemand("battery", 3.0), PowerDemand("ecs", 3.0)]


@pytest.mark.parametrize(
    ("available", "order", "expected"),
    [
        (5.0, ["ecs", "battery"], {"ecs": 3.0, "battery": 2.0}),
        (5.0, ["battery", "ecs"], {"battery": 3.0, "ecs": 2.0}),
        (4.0, ["battery", "ecs"], {"battery": 3.0, "ecs": 1.0}),
        (0.0, ["battery", "ecs"], {"battery": 0.0, "ecs": 0.0}),
    ],
)
def test_allocation_follows_priority_order(available, order, expected) -> None:
    allocations = allocate_by_priority(available, DEMANDS, order)

    assert [a.id for a in allocations] == order
    assert allocations_to_map(allocations) == pytest.approx(expected)


def test_allocation_never_exceeds_available_or_demand() -> None:
    demands = [PowerDemand("a", 1.2), PowerDemand("b", 0.7), PowerDemand("c", 5.0)]
    allocations = allocate_by_priority(2.5, demands, ["c", "a", "b"])

    assert total_allocated(allocations) <= 2.5 + 1e-12
    by_id = allocations_to_map(allocations)
    for demand in demands:
        assert 0.0 <= by_id[demand.id] <= demand.demand_kw


def test_allocation_ignores_ids_without_demand_and_non_positive_demands() -> None:
    demands = [PowerDemand("a", -2.0), PowerDemand("b", 1.0)]
    allocations = allocate_by_priority(3.0, demands, ["a", "ghost", "b"])

    assert allocations_to_map(allocations) == {"a": 0.0, "ghost": 0.0, "b": 1.0}


def test_devices_missing_from_order_receive_nothing() -> None:
    allocations = allocate_by_priority(10.0, DEMANDS, ["ecs"])

    assert allocations_to_map(allocations) == {"ecs": 3.0}


def test_negative_available_is_rejected() -> None:
    with pytest.raises(ValueError):
        allocate_by_priority(-0.1, DEMANDS, ["ecs", "battery"])


def test_tiny_remainder_is_clamped_to_zero() -> None:
    demands = [PowerDemand("a", 1.0 - 1e-12), PowerDemand("b", 1.0)]
    allocations = allocate_by_priority(1.0, demands, ["a", "b"])

    assert allocations_to_map(allocations)["b"] == 0.0


def test_allocation_leaves_inputs_untouched() -> None:
    demands = [PowerDemand("b", 2.0), PowerDemand("a", 1.0)]
    order = ["a", "b"]
    allocate_by_priority(2.5, demands, order)

    assert demands == [PowerDemand("b", 2.0), PowerDemand("a", 1.0)]
    assert order == ["a", "b"]
