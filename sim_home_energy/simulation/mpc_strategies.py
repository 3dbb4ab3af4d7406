"""
Forecast-aware ("MPC") strategy heuristics.

These strategies receive an :class:`MPCStrategyContext`, i.e. the regular
strategy context plus a rolling forecast window and the Tempo colours of
today and tomorrow, and pick a tier ordering accordingly. They are greedy
heuristics, not optimisers; the allocation itself goes through the same
ordering discipline as the reactive strategies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..calendar_utils import SECONDS_PER_DAY, SECONDS_PER_HOUR
from .forecast import Forecast, TempoColor
from .strategies import (
    Strategy,
    StrategyAllocation,
    StrategyContext,
    StrategyRequest,
    allocate_following_order,
    battery_soc_percent,
    is_electrical_storage,
    is_thermal,
)
from .thermal_tank import ThermalTank

logger = logging.getLogger(__name__)

SUNNY_THRESHOLD_KWH = 20.0
CLOUDY_THRESHOLD_KWH = 10.0
RED_RESERVE_TARGET_PERCENT = 90.0
NORMAL_SOC_TARGET_PERCENT = 70.0
CLOUDY_SOC_TARGET_PERCENT = 80.0
MAX_LOOKAHEAD_HOURS = 48
HOURS_TO_TOMORROW = 24


@dataclass(frozen=True)
class MPCStrategyContext(StrategyContext):
    """
    Strategy context enriched with the look-ahead window.

    Attributes:
        forecast: Hourly samples starting at the current hour.
        tempo_color: Today's Tempo colour, if the tariff has one.
        tempo_color_tomorrow: Tomorrow's colour (``None`` on the last day).
    """
    forecast: Forecast = field(default_factory=Forecast.empty)
    tempo_color: Optional[TempoColor] = None
    tempo_color_tomorrow: Optional[TempoColor] = None


MPCStrategy = Callable[[MPCStrategyContext], List[StrategyAllocation]]


def current_hour(time_s: float) -> int:
    return int((time_s % SECONDS_PER_DAY) // SECONDS_PER_HOUR)


def estimate_tomorrow_pv(forecast: Forecast, hour: int) -> float:
    """
    Sum of forecast PV samples falling on tomorrow (kWh, hourly samples).

    Covers offsets ``[24 - hour, 48 - hour)`` of the window, clipped to the
    horizon: a 24 h window only sees the first ``hour`` hours of tomorrow.
    """
    horizon = min(forecast.horizon_hours, MAX_LOOKAHEAD_HOURS)
    start = max(0, HOURS_TO_TOMORROW - hour)
    end = min(horizon, 2 * HOURS_TO_TOMORROW - hour)
    samples = forecast.pv_next_kw
    return float(sum(samples[h] for h in range(start, end) if h < len(samples)))


def _is_dhw_tank(request: StrategyRequest) -> bool:
    return isinstance(request.device, ThermalTank)


def _thermal_first(request: StrategyRequest) -> float:
    if is_thermal(request):
        return 0
    if is_electrical_storage(request):
        return 1
    return 5


def _battery_first(request: StrategyRequest) -> float:
    if is_electrical_storage(request):
        return 0
    if is_thermal(request):
        return 1
    return 5


def _battery_then_thermal(request: StrategyRequest) -> float:
    if is_electrical_storage(request):
        return 0
    if is_thermal(request):
        return 2
    return 5


def _dhw_first(request: StrategyRequest) -> float:
    if _is_dhw_tank(request):
        return 0
    if is_thermal(request):
        return 1
    if is_electrical_storage(request):
        return 2
    return 5


def _battery_only(request: StrategyRequest) -> float:
    return 0 if is_electrical_storage(request) else 100


def _red_day(request: StrategyRequest) -> float:
    if is_thermal(request):
        return 0
    if is_electrical_storage(request):
        return 10
    return 5


def mpc_sunny_tomorrow_strategy(context: MPCStrategyContext) -> List[StrategyAllocation]:
    """
    Heat water first when tomorrow looks sunny, keeping battery room for it.
    """
    tomorrow_pv = estimate_tomorrow_pv(context.forecast, current_hour(context.time_s))
    if tomorrow_pv >= SUNNY_THRESHOLD_KWH:
        return allocate_following_order(context, _dhw_first)
    return allocate_following_order(context, _battery_first)


def mpc_cloudy_tomorrow_strategy(context: MPCStrategyContext) -> List[StrategyAllocation]:
    """
    Fill the battery first ahead of a cloudy day while it is below 80 %.
    """
    tomorrow_pv = estimate_tomorrow_pv(context.forecast, current_hour(context.time_s))
    soc = battery_soc_percent(context.requests)
    soc = 100.0 if soc is None else soc
    if tomorrow_pv <= CLOUDY_THRESHOLD_KWH and soc < CLOUDY_SOC_TARGET_PERCENT:
        return allocate_following_order(context, _battery_then_thermal)
    return allocate_following_order(context, _thermal_first)


def mpc_tempo_red_guard_strategy(context: MPCStrategyContext) -> List[StrategyAllocation]:
    """
    Reserve the battery before a Tempo RED day; avoid charging it on one.
    """
    soc = battery_soc_percent(context.requests)
    soc = 100.0 if soc is None else soc
    if context.tempo_color_tomorrow == "RED" and soc < RED_RESERVE_TARGET_PERCENT:
        return allocate_following_order(context, _battery_only)
    if context.tempo_color == "RED":
        return allocate_following_order(context, _red_day)
    return allocate_following_order(context, _thermal_first)


def mpc_balanced_strategy(context: MPCStrategyContext) -> List[StrategyAllocation]:
    """
    Combination of the other heuristics, in order:

    1. RED tomorrow and battery under 90 %: battery only.
    2. RED today: thermal loads first, battery last.
    3. Sunny tomorrow: hot water first.
    4. Cloudy tomorrow and battery under 70 %: battery first.
    5. Otherwise thermal first.
    """
    tomorrow_pv = estimate_tomorrow_pv(context.forecast, current_hour(context.time_s))
    soc = battery_soc_percent(context.requests)
    soc = 100.0 if soc is None else soc

    if context.tempo_color_tomorrow == "RED" and soc < RED_RESERVE_TARGET_PERCENT:
        return allocate_following_order(context, _battery_only)
    if context.tempo_color == "RED":
        return allocate_following_order(context, _red_day)
    if tomorrow_pv >= SUNNY_THRESHOLD_KWH:
        return allocate_following_order(context, _dhw_first)
    if tomorrow_pv <= CLOUDY_THRESHOLD_KWH and soc < NORMAL_SOC_TARGET_PERCENT:
        return allocate_following_order(context, _battery_then_thermal)
    return allocate_following_order(context, _thermal_first)


_MPC_STRATEGIES: Dict[str, MPCStrategy] = {
    "mpc_sunny_tomorrow": mpc_sunny_tomorrow_strategy,
    "mpc_cloudy_tomorrow": mpc_cloudy_tomorrow_strategy,
    "mpc_tempo_red_guard": mpc_tempo_red_guard_strategy,
    "mpc_balanced": mpc_balanced_strategy,
}

MPC_STRATEGY_IDS = tuple(_MPC_STRATEGIES)


def resolve_mpc_strategy(strategy_id: str) -> MPCStrategy:
    strategy = _MPC_STRATEGIES.get(strategy_id)
    if strategy is None:
        logger.warning("Unknown MPC strategy id %r, falling back to mpc_balanced", strategy_id)
        return mpc_balanced_strategy
    return strategy


def mpc_to_reactive(mpc_strategy: MPCStrategy) -> Strategy:
    """
    Adapt an MPC strategy to the plain strategy signature with an empty forecast.
    """

    def strategy(context: StrategyContext) -> List[StrategyAllocation]:
        return mpc_strategy(
            MPCStrategyContext(
                surplus_kw=context.surplus_kw,
                requests=context.requests,
                time_s=context.time_s,
                dt_s=context.dt_s,
            )
        )

    return strategy
