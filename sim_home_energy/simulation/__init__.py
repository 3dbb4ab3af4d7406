"""
Core home-energy simulation models.

This package collects every component involved in the time-stepped
simulation:

* Device models (battery, hot-water tank, vehicle charger, pool pump)
  sharing a capability-tagged plan/apply/state contract.
* The priority allocation kernel and the reactive and forecast-aware
  strategies built on it.
* The hot-water service contract and its helper subsystem (hysteresis,
  deadline preheat).
* The single-run engine with flow reconstruction and end-of-run rescue,
  the seven-day orchestrator, and KPI/economic post-processing.

Modules are kept together so that higher layers (`application`,
`result_builder`, providers) import from a single namespace.
"""

from __future__ import annotations

from .allocation import PowerAllocation, PowerDemand, allocate_by_priority, allocations_to_map, total_allocated
from .battery import Battery, BatterySpecs
from .devices import (
    ELECTRICAL_STORAGE,
    SHIFTABLE_LOAD,
    THERMAL_STORAGE,
    VEHICLE_CHARGER,
    Device,
    DevicePlan,
    EnvContext,
    PowerOffer,
    PowerRequest,
)
from .ecs_contract import (
    EcsHelpersConfig,
    EcsServiceContract,
    default_ecs_service_contract,
    merge_ecs_service_contract,
)
from .ecs_helpers import EcsHelperState, EcsProcessingResult, ForcedAllocation, process_ecs_requests
from .ecs_kpis import AggregatedEcsDeadlineKpis, DailyEcsDeadlineKpi, aggregate_ecs_deadline_kpis
from .ev_charger import EVChargeSession, EVCharger, EVChargerSpecs
from .engine import (
    DeviceStepState,
    FlowRecord,
    SimulationInput,
    SimulationKPIs,
    SimulationResult,
    SimulationStep,
    SimulationTotals,
    run_simulation,
)
from .forecast import (
    DailyTariff,
    DailyWeather,
    Forecast,
    WeeklyForecast,
    build_forecast_horizon,
    resample_hourly_to_steps,
)
from .kpis import EconomicConfig, EconomicKPIs, KPIInput, compute_economics, compute_kpis
from .mpc_strategies import (
    MPC_STRATEGY_IDS,
    MPCStrategyContext,
    mpc_balanced_strategy,
    mpc_cloudy_tomorrow_strategy,
    mpc_sunny_tomorrow_strategy,
    mpc_tempo_red_guard_strategy,
    mpc_to_reactive,
    resolve_mpc_strategy,
)
from .pool_pump import PoolPump, PoolPumpSpecs, PreferredWindow
from .strategies import (
    STRATEGY_IDS,
    RequestAnnotations,
    StrategyAllocation,
    StrategyContext,
    StrategyRequest,
    battery_first_strategy,
    ecs_first_strategy,
    mix_soc_threshold_strategy,
    ev_departure_guard_strategy,
    multi_equipment_priority_strategy,
    resolve_strategy,
)
from .thermal_tank import ThermalTank, ThermalTankSpecs, WaterDrawEvent
from .weekly import (
    WeeklyComparison,
    WeeklyKPIs,
    WeeklySimulationInput,
    WeeklySimulationResult,
    compare_weekly_simulations,
    generate_base_load_series,
    run_weekly_simulation,
)

__all__ = [
    # Devices
    "Device",
    "DevicePlan",
    "EnvContext",
    "PowerOffer",
    "PowerRequest",
    "ELECTRICAL_STORAGE",
    "THERMAL_STORAGE",
    "SHIFTABLE_LOAD",
    "VEHICLE_CHARGER",
    "Battery",
    "BatterySpecs",
    "ThermalTank",
    "ThermalTankSpecs",
    "WaterDrawEvent",
    "EVCharger",
    "EVChargerSpecs",
    "EVChargeSession",
    "PoolPump",
    "PoolPumpSpecs",
    "PreferredWindow",
    # Allocation + strategies
    "PowerDemand",
    "PowerAllocation",
    "allocate_by_priority",
    "allocations_to_map",
    "total_allocated",
    "RequestAnnotations",
    "StrategyRequest",
    "StrategyContext",
    "StrategyAllocation",
    "STRATEGY_IDS",
    "ecs_first_strategy",
    "battery_first_strategy",
    "mix_soc_threshold_strategy",
    "ev_departure_guard_strategy",
    "multi_equipment_priority_strategy",
    "resolve_strategy",
    "MPC_STRATEGY_IDS",
    "MPCStrategyContext",
    "mpc_sunny_tomorrow_strategy",
    "mpc_cloudy_tomorrow_strategy",
    "mpc_tempo_red_guard_strategy",
    "mpc_balanced_strategy",
    "resolve_mpc_strategy",
    "mpc_to_reactive",
    # Hot water
    "EcsHelpersConfig",
    "EcsServiceContract",
    "default_ecs_service_contract",
    "merge_ecs_service_contract",
    "EcsHelperState",
    "EcsProcessingResult",
    "ForcedAllocation",
    "process_ecs_requests",
    "AggregatedEcsDeadlineKpis",
    "DailyEcsDeadlineKpi",
    "aggregate_ecs_deadline_kpis",
    # Engine + KPIs
    "SimulationInput",
    "SimulationResult",
    "SimulationStep",
    "SimulationTotals",
    "SimulationKPIs",
    "DeviceStepState",
    "FlowRecord",
    "run_simulation",
    "KPIInput",
    "compute_kpis",
    "EconomicConfig",
    "EconomicKPIs",
    "compute_economics",
    # Forecast + weekly
    "DailyWeather",
    "DailyTariff",
    "WeeklyForecast",
    "Forecast",
    "resample_hourly_to_steps",
    "build_forecast_horizon",
    "WeeklySimulationInput",
    "WeeklySimulationResult",
    "WeeklyKPIs",
    "WeeklyComparison",
    "generate_base_load_series",
    "run_weekly_simulation",
    "compare_weekly_simulations",
]
