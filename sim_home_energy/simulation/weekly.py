"""
Seven-day orchestrator for forecast-aware strategies.

Runs the single-run engine once per day over the same device instances, so
battery SOC and tank temperature carry over from one day to the next. Each
day the hourly weather/tariff profiles are resampled to the engine step and
the MPC strategy is wrapped so that every step sees a fresh 24 h forecast
window starting at the current hour.

Because devices are mutated in place, comparing two strategies requires two
freshly built device sets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence

import numpy as np

from ..calendar_utils import SECONDS_PER_DAY, SECONDS_PER_HOUR, steps_per_day
from .battery import Battery
from .devices import Device
from .ecs_contract import ContractOverride
from .engine import SimulationInput, SimulationKPIs, SimulationResult, run_simulation
from .forecast import WeeklyForecast, build_forecast_horizon, resample_hourly_to_steps
from .kpis import EconomicConfig
from .mpc_strategies import MPCStrategy, MPCStrategyContext
from .strategies import Strategy, StrategyAllocation, StrategyContext
from .thermal_tank import ThermalTank

logger = logging.getLogger(__name__)

BaseLoadProfile = Literal["residential", "high-consumption"]


@dataclass(frozen=True)
class WeeklySimulationInput:
    """
    Attributes:
        dt_s: Engine step (s).
        forecast: Seven days of weather and tariffs.
        devices: Devices shared by the seven daily runs.
        mpc_strategy: Forecast-aware strategy.
        base_load_profile: Synthetic daily base-load shape.
        base_load_series_kw: Explicit daily base load overriding the profile
            (one day at ``dt_s`` resolution, reused every day).
        ecs_service: Partial hot-water contract.
        economic_config: Investment parameters for each daily run.
    """
    dt_s: float
    forecast: WeeklyForecast
    devices: Sequence[Device]
    mpc_strategy: MPCStrategy
    base_load_profile: BaseLoadProfile = "residential"
    base_load_series_kw: Optional[Sequence[float]] = None
    ecs_service: ContractOverride = None
    economic_config: Optional[EconomicConfig] = None


@dataclass(frozen=True)
class DailyResult:
    day: int
    date: str
    kpis: SimulationKPIs
    simulation: SimulationResult


@dataclass(frozen=True)
class WeeklyKPIs:
    """
    Weekly sums (kWh, EUR) and ratios (%).

    ``ecs_comfort_avg`` is the mean of the daily deadline hit rates (0-1).
    """
    pv_production_kwh: float
    consumption_kwh: float
    grid_import_kwh: float
    grid_export_kwh: float
    self_consumption_percent: float
    autarky_percent: float
    total_cost_eur: float
    import_cost_eur: float
    export_revenue_eur: float
    net_cost_with_penalties_eur: float
    ecs_comfort_avg: float
    ecs_rescue_total_kwh: float
    ecs_penalties_total_eur: float


@dataclass(frozen=True)
class WeeklySimulationResult:
    forecast: WeeklyForecast
    days: List[DailyResult]
    weekly_kpis: WeeklyKPIs


@dataclass(frozen=True)
class WeeklyGains:
    cost_reduction_eur: float
    cost_reduction_percent: float
    grid_import_reduction_kwh: float
    grid_import_reduction_percent: float
    self_consumption_gain_percent: float
    ecs_comfort_gain_percent: float


@dataclass(frozen=True)
class WeeklyComparison:
    mpc: WeeklySimulationResult
    baseline: WeeklySimulationResult
    gains: WeeklyGains


def generate_base_load_series(dt_s: float, profile: BaseLoadProfile = "residential") -> np.ndarray:
    """
    Synthetic one-day household load (kW) at ``dt_s`` resolution.

    A flat base level plus a morning bump around 07:30 and an evening peak
    around 20:00; ``high-consumption`` raises both the base and the peak.
    """
    n_steps = steps_per_day(dt_s)
    high = profile == "high-consumption"
    base_level = 1.2 if high else 0.8
    evening_peak = 2.5 if high else 1.5
    hours = np.arange(n_steps) * dt_s / SECONDS_PER_HOUR
    morning = np.exp(-((hours - 7.5) ** 2) / 1.5) * 0.5
    evening = np.exp(-((hours - 20.0) ** 2) / 3.0) * evening_peak
    return base_level + morning + evening


def _wrap_strategy(
    mpc_strategy: MPCStrategy,
    forecast: WeeklyForecast,
    day: int,
) -> Strategy:
    tempo_color = forecast.tariffs[day].tempo_color
    tempo_tomorrow = forecast.tariffs[day + 1].tempo_color if day < len(forecast.tariffs) - 1 else None

    def strategy(context: StrategyContext) -> List[StrategyAllocation]:
        hour = int((context.time_s % SECONDS_PER_DAY) // SECONDS_PER_HOUR)
        return mpc_strategy(
            MPCStrategyContext(
                surplus_kw=context.surplus_kw,
                requests=context.requests,
                time_s=context.time_s,
                dt_s=context.dt_s,
                forecast=build_forecast_horizon(forecast, day, hour),
                tempo_color=tempo_color,
                tempo_color_tomorrow=tempo_tomorrow,
            )
        )

    return strategy


def run_weekly_simulation(weekly_input: WeeklySimulationInput) -> WeeklySimulationResult:
    """
    Run seven consecutive daily simulations over shared devices.

    Args:
        weekly_input: Forecast, devices, strategy and options.

    Returns:
        The seven daily results and their weekly aggregates. Weekly energy
        and cost totals are plain sums of the daily totals.
    """
    dt_s = weekly_input.dt_s
    forecast = weekly_input.forecast
    n_steps = steps_per_day(dt_s)
    if weekly_input.base_load_series_kw is not None:
        base_load = np.asarray(weekly_input.base_load_series_kw, dtype=float)
    else:
        base_load = generate_base_load_series(dt_s, weekly_input.base_load_profile)

    batteries = [device for device in weekly_input.devices if isinstance(device, Battery)]
    tanks = [device for device in weekly_input.devices if isinstance(device, ThermalTank)]

    days: List[DailyResult] = []
    pv_kwh = consumption_kwh = import_kwh = export_kwh = 0.0
    import_cost = export_revenue = net_cost = rescue_kwh = penalties = 0.0
    comfort_sum = 0.0

    for day, (weather, tariff) in enumerate(zip(forecast.weather, forecast.tariffs)):
        simulation = run_simulation(
            SimulationInput(
                dt_s=dt_s,
                pv_series_kw=resample_hourly_to_steps(weather.pv_profile_kw, n_steps),
                base_load_series_kw=base_load,
                devices=weekly_input.devices,
                strategy=_wrap_strategy(weekly_input.mpc_strategy, forecast, day),
                ambient_temp_c=resample_hourly_to_steps(weather.ambient_temp_profile_c, n_steps),
                import_prices_eur_per_kwh=resample_hourly_to_steps(tariff.import_price_series, n_steps),
                export_prices_eur_per_kwh=resample_hourly_to_steps(tariff.export_price_series, n_steps),
                ecs_service=weekly_input.ecs_service,
                economic_config=weekly_input.economic_config,
            )
        )
        totals = simulation.totals
        economics = simulation.kpis.economics
        pv_kwh += totals.pv_production_kwh
        consumption_kwh += totals.consumption_kwh
        import_kwh += totals.grid_import_kwh
        export_kwh += totals.grid_export_kwh
        import_cost += economics.import_cost
        export_revenue += economics.export_revenue
        net_cost += economics.net_cost_with_penalties
        rescue_kwh += totals.ecs_rescue_kwh
        penalties += simulation.kpis.ecs_penalties_total_eur
        comfort_sum += simulation.kpis.ecs_hit_rate

        days.append(DailyResult(day=day, date=weather.date, kpis=simulation.kpis, simulation=simulation))
        logger.debug(
            "Day %d (%s) done: battery SOC %s kWh, tank temperature %s °C",
            day,
            weather.date,
            [round(battery.soc_kwh, 2) for battery in batteries],
            [round(tank.temperature, 1) for tank in tanks],
        )

    weekly_kpis = WeeklyKPIs(
        pv_production_kwh=pv_kwh,
        consumption_kwh=consumption_kwh,
        grid_import_kwh=import_kwh,
        grid_export_kwh=export_kwh,
        self_consumption_percent=(pv_kwh - export_kwh) / pv_kwh * 100.0 if pv_kwh > 0 else 0.0,
        autarky_percent=(consumption_kwh - import_kwh) / consumption_kwh * 100.0 if consumption_kwh > 0 else 0.0,
        total_cost_eur=import_cost,
        import_cost_eur=import_cost,
        export_revenue_eur=export_revenue,
        net_cost_with_penalties_eur=net_cost,
        ecs_comfort_avg=comfort_sum / len(days) if days else 0.0,
        ecs_rescue_total_kwh=rescue_kwh,
        ecs_penalties_total_eur=penalties,
    )
    return WeeklySimulationResult(forecast=forecast, days=days, weekly_kpis=weekly_kpis)


def _percent_of(delta: float, reference: float) -> float:
    return delta / reference * 100.0 if reference > 0 else 0.0


def compare_weekly_simulations(
    mpc: WeeklySimulationResult,
    baseline: WeeklySimulationResult,
) -> WeeklyComparison:
    """
    Gains of ``mpc`` over ``baseline`` (positive = better).
    """
    cost_reduction = baseline.weekly_kpis.net_cost_with_penalties_eur - mpc.weekly_kpis.net_cost_with_penalties_eur
    import_reduction = baseline.weekly_kpis.grid_import_kwh - mpc.weekly_kpis.grid_import_kwh
    gains = WeeklyGains(
        cost_reduction_eur=cost_reduction,
        cost_reduction_percent=_percent_of(cost_reduction, baseline.weekly_kpis.net_cost_with_penalties_eur),
        grid_import_reduction_kwh=import_reduction,
        grid_import_reduction_percent=_percent_of(import_reduction, baseline.weekly_kpis.grid_import_kwh),
        self_consumption_gain_percent=(
            mpc.weekly_kpis.self_consumption_percent - baseline.weekly_kpis.self_consumption_percent
        ),
        ecs_comfort_gain_percent=(mpc.weekly_kpis.ecs_comfort_avg - baseline.weekly_kpis.ecs_comfort_avg) * 100.0,
    )
    return WeeklyComparison(mpc=mpc, baseline=baseline, gains=gains)
