from .calendar_utils import SECONDS_PER_DAY, SECONDS_PER_HOUR, build_week_dates, seconds_until_hour
from .simulation.allocation import PowerAllocation, PowerDemand, allocate_by_priority
from .simulation.battery import Battery, BatterySpecs
from .simulation.ecs_contract import EcsHelpersConfig, EcsServiceContract, merge_ecs_service_contract
from .simulation.ev_charger import EVChargeSession, EVCharger, EVChargerSpecs
from .simulation.engine import SimulationInput, SimulationResult, run_simulation
from .simulation.forecast import DailyTariff, DailyWeather, Forecast, WeeklyForecast
from .simulation.kpis import EconomicConfig
from .simulation.pool_pump import PoolPump, PoolPumpSpecs, PreferredWindow
from .simulation.mpc_strategies import MPC_STRATEGY_IDS, resolve_mpc_strategy
from .simulation.strategies import STRATEGY_IDS, resolve_strategy
from .simulation.thermal_tank import ThermalTank, ThermalTankSpecs, WaterDrawEvent
from .simulation.weekly import WeeklySimulationInput, compare_weekly_simulations, run_weekly_simulation
from .providers import DataProvider, MockDataProvider, MockTariffProvider, MockWeatherProvider
from .scenario_setup import (
    SCENARIO_PRESETS,
    ScenarioConfig,
    ScenarioPreset,
    build_devices,
    build_scenario_config,
    get_scenario_preset,
    load_preset_scenario,
    load_scenario_data,
)
from .result_builder import ResultBuilder
from .application import SimulationApplication

__all__ = [
    "SECONDS_PER_DAY",
    "SECONDS_PER_HOUR",
    "build_week_dates",
    "seconds_until_hour",
    "PowerDemand",
    "PowerAllocation",
    "allocate_by_priority",
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
    "EcsHelpersConfig",
    "EcsServiceContract",
    "merge_ecs_service_contract",
    "SimulationInput",
    "SimulationResult",
    "run_simulation",
    "EconomicConfig",
    "STRATEGY_IDS",
    "resolve_strategy",
    "MPC_STRATEGY_IDS",
    "resolve_mpc_strategy",
    "DailyWeather",
    "DailyTariff",
    "Forecast",
    "WeeklyForecast",
    "WeeklySimulationInput",
    "run_weekly_simulation",
    "compare_weekly_simulations",
    "DataProvider",
    "MockWeatherProvider",
    "MockTariffProvider",
    "MockDataProvider",
    "ScenarioConfig",
    "build_scenario_config",
    "build_devices",
    "load_scenario_data",
    "SCENARIO_PRESETS",
    "ScenarioPreset",
    "get_scenario_preset",
    "load_preset_scenario",
    "ResultBuilder",
    "SimulationApplication",
]
