"""
Reactive allocation strategies.

A strategy maps a :class:`StrategyContext` (current surplus and the pending
device requests) to a list of :class:`StrategyAllocation`. All strategies
share one ordering discipline and delegate the actual split to
:func:`allocate_by_priority`; they only differ in the tier they assign to
each request:

1. deadline priority ascending (urgent ECS requests always win),
2. strategy tier ascending,
3. declared priority hint descending,
4. device id (deterministic tie-break).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from ..calendar_utils import hour_of_day
from .allocation import PowerDemand, allocate_by_priority
from .devices import (
    ELECTRICAL_STORAGE,
    SHIFTABLE_LOAD,
    THERMAL_STORAGE,
    VEHICLE_CHARGER,
    Device,
    DeviceState,
    PowerRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_SOC_THRESHOLD_PERCENT = 50.0
EVENING_WINDOW_START_HOUR = 18.0
RESERVE_SOC_TARGET_PERCENT = 60.0
BASE_RESERVE_TARGET_PERCENT = 55.0
EV_RESERVE_TARGET_PERCENT = 70.0
EV_ARRIVAL_SOON_HOURS = 6.0
EV_URGENCY_THRESHOLD_HOURS = 1.5
EV_REQUIRED_POWER_RATIO_URGENT = 0.8


@dataclass(frozen=True)
class RequestAnnotations:
    """
    Flags attached to a request by the ECS helpers.

    Attributes:
        hysteresis_blocked: Request suppressed by the hysteresis latch.
        deadline_urgent: Request sits inside the deadline preheat window.
        deadline_priority: Explicit deadline priority (0 = urgent).
        deadline_preheat_kw: Power already force-granted this step.
    """
    hysteresis_blocked: bool = False
    deadline_urgent: bool = False
    deadline_priority: Optional[int] = None
    deadline_preheat_kw: float = 0.0


@dataclass(frozen=True)
class StrategyRequest:
    device: Device
    request: PowerRequest
    state: DeviceState
    annotations: RequestAnnotations = field(default_factory=RequestAnnotations)


@dataclass(frozen=True)
class StrategyContext:
    surplus_kw: float
    requests: Sequence[StrategyRequest]
    time_s: float = 0.0
    dt_s: float = 0.0


@dataclass(frozen=True)
class StrategyAllocation:
    device_id: str
    power_kw: float


Strategy = Callable[[StrategyContext], List[StrategyAllocation]]
TierFn = Callable[[StrategyRequest], float]


def deadline_priority(request: StrategyRequest) -> int:
    annotations = request.annotations
    if annotations.deadline_priority is not None:
        return annotations.deadline_priority
    if annotations.deadline_urgent:
        return 0
    return 1


def is_thermal(request: StrategyRequest) -> bool:
    return THERMAL_STORAGE in request.device.capabilities


def is_electrical_storage(request: StrategyRequest) -> bool:
    return ELECTRICAL_STORAGE in request.device.capabilities


def is_vehicle_charger(request: StrategyRequest) -> bool:
    return VEHICLE_CHARGER in request.device.capabilities


def is_pool_pump(request: StrategyRequest) -> bool:
    return SHIFTABLE_LOAD in request.device.capabilities and "hours_remaining" in request.state


def state_number(state: DeviceState, key: str) -> Optional[float]:
    """Finite numeric state value, or None."""
    value = state.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return float(value)


def battery_soc_percent(requests: Sequence[StrategyRequest]) -> Optional[float]:
    """SOC (%) of the first electrical-storage request, if any reports one."""
    for request in requests:
        if not is_electrical_storage(request):
            continue
        soc = request.state.get("soc_percent")
        if isinstance(soc, (int, float)) and not isinstance(soc, bool):
            return float(soc)
        return None
    return None


def allocate_following_order(context: StrategyContext, tier: TierFn) -> List[StrategyAllocation]:
    """
    Sort the context requests with the shared discipline and allocate.

    Args:
        context: Strategy context.
        tier: Strategy-specific tier; lower values are served first.

    Returns:
        Positive grants only, in serving order.
    """
    ordered = sorted(
        context.requests,
        key=lambda req: (
            deadline_priority(req),
            tier(req),
            -req.request.priority_hint,
            req.device.id,
        ),
    )
    demands = [PowerDemand(id=req.device.id, demand_kw=req.request.max_accept_kw) for req in ordered]
    grants = allocate_by_priority(
        max(context.surplus_kw, 0.0),
        demands,
        [req.device.id for req in ordered],
    )
    return [
        StrategyAllocation(device_id=grant.id, power_kw=grant.allocated_kw)
        for grant in grants
        if grant.allocated_kw > 0.0
    ]


def _thermal_first_tier(request: StrategyRequest) -> float:
    return 0 if is_thermal(request) else 1


def _battery_first_tier(request: StrategyRequest) -> float:
    return 0 if is_electrical_storage(request) else 1


def ecs_first_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    return allocate_following_order(context, _thermal_first_tier)


def ecs_hysteresis_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    return ecs_first_strategy(context)


def deadline_helper_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    return ecs_first_strategy(context)


def battery_first_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    return allocate_following_order(context, _battery_first_tier)


def mix_soc_threshold_strategy(threshold_percent: float = DEFAULT_SOC_THRESHOLD_PERCENT) -> Strategy:
    """
    Battery first while its SOC is below ``threshold_percent``, ECS first after.

    The threshold is clamped to [0, 100].
    """
    threshold = max(0.0, min(threshold_percent, 100.0))

    def strategy(context: StrategyContext) -> List[StrategyAllocation]:
        soc = battery_soc_percent(context.requests)
        if soc is not None and soc < threshold:
            return allocate_following_order(context, _battery_first_tier)
        return allocate_following_order(context, _thermal_first_tier)

    return strategy


def reserve_evening_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    """
    Build a battery reserve before the evening, then heat water first.
    """
    hour = hour_of_day(context.time_s)
    soc = battery_soc_percent(context.requests)
    needs_reserve = soc is not None and soc < RESERVE_SOC_TARGET_PERCENT and hour < EVENING_WINDOW_START_HOUR

    def tier(request: StrategyRequest) -> float:
        if is_thermal(request):
            return 2 if needs_reserve else 0
        if is_electrical_storage(request):
            return 0 if needs_reserve else 1
        return 5

    return allocate_following_order(context, tier)


def _ev_required_power_kw(state: DeviceState) -> float:
    remaining = state_number(state, "energy_remaining_kwh") or 0.0
    time_remaining = state_number(state, "session_time_remaining_h") or 0.0
    if time_remaining <= 1e-6:
        return remaining * 10.0
    return remaining / time_remaining


def ev_departure_guard_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    """
    Make sure plugged-in vehicles leave charged without draining the battery reserve.

    A charging session is urgent when departure is less than
    ``EV_URGENCY_THRESHOLD_HOURS`` away or when the power still required
    reaches ``EV_REQUIRED_POWER_RATIO_URGENT`` of what the charger accepts;
    an urgent vehicle is served before anything else. Otherwise the battery
    reserve comes first while its SOC sits below 70 % (a vehicle is plugged
    in or arrives within ``EV_ARRIVAL_SOON_HOURS``) or 55 % (no vehicle
    around), and before the evening while below 60 %.
    """
    hour = hour_of_day(context.time_s)
    soc = battery_soc_percent(context.requests)

    has_active = False
    has_urgent = False
    soonest_arrival_h = math.inf
    for request in context.requests:
        if not is_vehicle_charger(request):
            continue
        if request.state.get("session_active") is not True:
            time_to_start = state_number(request.state, "session_time_to_start_h")
            if time_to_start is not None:
                soonest_arrival_h = min(soonest_arrival_h, max(time_to_start, 0.0))
            continue
        has_active = True
        time_remaining = state_number(request.state, "session_time_remaining_h") or 0.0
        if time_remaining <= EV_URGENCY_THRESHOLD_HOURS + 1e-6:
            has_urgent = True
        if _ev_required_power_kw(request.state) >= request.request.max_accept_kw * EV_REQUIRED_POWER_RATIO_URGENT:
            has_urgent = True

    arrival_soon = soonest_arrival_h <= EV_ARRIVAL_SOON_HOURS
    reserve_target = EV_RESERVE_TARGET_PERCENT if has_active or arrival_soon else BASE_RESERVE_TARGET_PERCENT
    needs_reserve = soc is not None and soc < reserve_target
    evening_reserve = soc is not None and soc < RESERVE_SOC_TARGET_PERCENT and hour < EVENING_WINDOW_START_HOUR
    prioritise_battery = needs_reserve or evening_reserve

    def tier(request: StrategyRequest) -> float:
        if is_vehicle_charger(request):
            if has_urgent:
                return -5
            if has_active:
                return 1 if prioritise_battery else 0
            return 3 if arrival_soon else 5
        if is_electrical_storage(request):
            if prioritise_battery:
                return -4
            return 3 if has_active and not has_urgent else 1
        if is_thermal(request):
            if prioritise_battery:
                return 4
            return 3 if has_urgent else 2
        return 6

    return allocate_following_order(context, tier)


def _ev_tier(request: StrategyRequest) -> float:
    state = request.state
    time_remaining = state_number(state, "session_time_remaining_h")
    if state.get("session_active") is True:
        if time_remaining is not None and time_remaining <= 1.2:
            return 0.5
        max_accept = request.request.max_accept_kw
        if time_remaining is not None and time_remaining > 0.0 and max_accept > 0.0:
            remaining = state_number(state, "energy_remaining_kwh") or 0.0
            if remaining / max(time_remaining, 1e-3) / max_accept >= 0.75:
                return 0.7
        return 2.5
    time_to_start = state_number(state, "session_time_to_start_h")
    if time_to_start is not None:
        if time_to_start <= 1.5:
            return 3
        if time_to_start <= 3.5:
            return 4
    return 6


def _pool_tier(request: StrategyRequest) -> float:
    if request.state.get("running") is True:
        return 3.2
    hours_remaining = state_number(request.state, "hours_remaining")
    if hours_remaining is not None:
        if hours_remaining <= 0.5:
            return 3.6
        if hours_remaining <= 1.5:
            return 4.2
        if hours_remaining <= 3.0:
            return 5
    return 6.5


def _multi_equipment_tier(request: StrategyRequest) -> float:
    if is_thermal(request):
        return -10
    if is_vehicle_charger(request):
        return _ev_tier(request)
    if is_pool_pump(request):
        return _pool_tier(request)
    if is_electrical_storage(request):
        return 7
    return 8


def multi_equipment_priority_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    """
    Hot water first, then vehicles by departure pressure, then the pool pump
    by remaining filtration time, the battery last.

    A running pump keeps its slot so it is not cycled on and off.
    """
    return allocate_following_order(context, _multi_equipment_tier)


def no_control_offpeak_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    return []


def no_control_hysteresis_strategy(context: StrategyContext) -> List[StrategyAllocation]:
    return []


_STRATEGIES: Dict[str, Strategy] = {
    "ecs_first": ecs_first_strategy,
    "ecs_hysteresis": ecs_hysteresis_strategy,
    "deadline_helper": deadline_helper_strategy,
    "battery_first": battery_first_strategy,
    "reserve_evening": reserve_evening_strategy,
    "ev_departure_guard": ev_departure_guard_strategy,
    "multi_equipment_priority": multi_equipment_priority_strategy,
    "no_control_offpeak": no_control_offpeak_strategy,
    "no_control_hysteresis": no_control_hysteresis_strategy,
}

STRATEGY_IDS = tuple(sorted([*_STRATEGIES, "mix_soc_threshold"]))


def resolve_strategy(strategy_id: str, threshold_percent: float | None = None) -> Strategy:
    """
    Look up a strategy by id.

    Args:
        strategy_id: One of :data:`STRATEGY_IDS`.
        threshold_percent: SOC threshold for ``mix_soc_threshold`` (default 50).

    Returns:
        The strategy callable. Unknown ids fall back to ``ecs_first``.
    """
    if strategy_id == "mix_soc_threshold":
        threshold = DEFAULT_SOC_THRESHOLD_PERCENT if threshold_percent is None else threshold_percent
        return mix_soc_threshold_strategy(threshold)
    strategy = _STRATEGIES.get(strategy_id)
    if strategy is None:
        logger.warning("Unknown strategy id %r, falling back to ecs_first", strategy_id)
        return ecs_first_strategy
    return strategy
