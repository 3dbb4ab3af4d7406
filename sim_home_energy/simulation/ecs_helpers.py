"""
Hot-water helper subsystem applied to tank requests before the strategy.

Two independent behaviours, both driven by the :class:`EcsServiceContract`:

Hysteresis latch
    Once a tank reaches the high threshold (just under target) its requests
    are suppressed until it cools to the low threshold
    (``target - max(0.1, band)``). Avoids on/off chatter around the set point.

Deadline preheat
    Inside the preheat window before the daily deadline, a tank below target
    is granted the power that closes its deficit this step straight out of
    the current surplus (a *forced allocation* that bypasses the strategy).
    The residual request is marked urgent so every strategy serves it first.

The helpers never mutate the incoming requests or devices; the latch lives
in an :class:`EcsHelperState` owned by the caller for one run.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from ..calendar_utils import SECONDS_PER_HOUR, seconds_until_hour
from .ecs_contract import MIN_HYSTERESIS_BAND_K, EcsServiceContract
from .strategies import StrategyRequest
from .thermal_tank import ThermalTank

RESIDUAL_REQUEST_EPSILON_KW = 1e-6
HIGH_THRESHOLD_OFFSET_K = 0.2


@dataclass
class EcsHelperState:
    """Per-device hysteresis latch (True = latched off)."""
    hysteresis_latch: Dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class ForcedAllocation:
    device: ThermalTank
    power_kw: float


@dataclass(frozen=True)
class EcsProcessingResult:
    """
    Attributes:
        requests: Requests the strategy should see (tank requests filtered
            and annotated, other requests untouched).
        forced_allocations: Grants the engine must apply directly.
        remaining_surplus_kw: Surplus left after forced allocations.
        blocked_device_ids: Tanks suppressed by the hysteresis latch.
    """
    requests: List[StrategyRequest]
    forced_allocations: List[ForcedAllocation]
    remaining_surplus_kw: float
    blocked_device_ids: List[str]


def hysteresis_thresholds(contract: EcsServiceContract) -> tuple[float, float]:
    """
    Returns ``(low, high)`` hysteresis thresholds in °C.
    """
    target = contract.target_celsius
    low = target - max(MIN_HYSTERESIS_BAND_K, contract.helpers.hysteresis_band_k)
    high = target - HIGH_THRESHOLD_OFFSET_K
    if high <= low:
        high = max(low + 0.1, target)
    return low, high


def _measured_temperature(request: StrategyRequest, tank: ThermalTank) -> float:
    value = request.state.get("temp_c")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return tank.temperature


def process_ecs_requests(
    requests: Sequence[StrategyRequest],
    contract: EcsServiceContract,
    dt_s: float,
    time_s: float,
    surplus_kw: float,
    ambient_temp_c: float | None,
    state: EcsHelperState,
) -> EcsProcessingResult:
    """
    Filter and annotate tank requests, issuing deadline forced allocations.

    Args:
        requests: Pending requests of every device for this step.
        contract: Active hot-water service contract.
        dt_s: Step duration (s).
        time_s: Step start time (s); only the time of day matters.
        surplus_kw: Surplus available before the strategy runs (kW).
        ambient_temp_c: Ambient around the tanks, used to size preheating.
        state: Hysteresis latch, updated in place.

    Returns:
        EcsProcessingResult with the requests the strategy should see.
    """
    helpers = contract.helpers
    low, high = hysteresis_thresholds(contract)
    available = max(0.0, surplus_kw)
    time_until_deadline_s = seconds_until_hour(contract.deadline_hour, time_s)
    window_s = helpers.deadline_preheat_window_hours * SECONDS_PER_HOUR
    in_deadline_window = helpers.deadline_enabled and window_s > 0 and time_until_deadline_s <= window_s

    filtered: List[StrategyRequest] = []
    forced: List[ForcedAllocation] = []
    blocked: List[str] = []

    for request in requests:
        tank = request.device
        if not isinstance(tank, ThermalTank):
            filtered.append(request)
            continue

        temp_c = _measured_temperature(request, tank)
        latched = state.hysteresis_latch.get(tank.id, False)
        if not helpers.hysteresis_enabled:
            latched = False
        elif not latched and temp_c >= high:
            latched = True
        elif latched and temp_c <= low:
            latched = False
        state.hysteresis_latch[tank.id] = latched

        if latched:
            blocked.append(tank.id)
            continue

        annotations = request.annotations
        residual_kw = request.request.max_accept_kw
        deficit_k = max(0.0, contract.target_celsius - temp_c)

        if in_deadline_window and deficit_k > 0:
            needed_kw = min(tank.power_to_reach_target(dt_s, ambient_temp_c), residual_kw)
            granted_kw = min(needed_kw, available)
            if granted_kw > 0:
                forced.append(ForcedAllocation(device=tank, power_kw=granted_kw))
                available = max(0.0, available - granted_kw)
                residual_kw = max(0.0, residual_kw - granted_kw)
            annotations = dataclasses.replace(
                annotations,
                deadline_urgent=True,
                deadline_priority=0,
                deadline_preheat_kw=annotations.deadline_preheat_kw + max(granted_kw, 0.0),
            )

        if residual_kw > RESIDUAL_REQUEST_EPSILON_KW:
            if annotations.deadline_priority is None:
                annotations = dataclasses.replace(annotations, deadline_priority=1)
            filtered.append(
                dataclasses.replace(
                    request,
                    request=dataclasses.replace(request.request, max_accept_kw=residual_kw),
                    annotations=annotations,
                )
            )

    return EcsProcessingResult(
        requests=filtered,
        forced_allocations=forced,
        remaining_surplus_kw=available,
        blocked_device_ids=blocked,
    )
