from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .calendar_utils import SECONDS_PER_DAY, SECONDS_PER_HOUR, steps_per_day
from .config import get_default_step_seconds
from .simulation import (
    Battery,
    BatterySpecs,
    Device,
    EconomicConfig,
    EcsServiceContract,
    EVChargeSession,
    EVCharger,
    EVChargerSpecs,
    PoolPump,
    PoolPumpSpecs,
    PreferredWindow,
    ThermalTank,
    ThermalTankSpecs,
    WaterDrawEvent,
    merge_ecs_service_contract,
)
from .simulation.mpc_strategies import MPC_STRATEGY_IDS
from .simulation.strategies import STRATEGY_IDS

ScenarioSource = Mapping[str, Any] | str | Path | None

DEFAULT_SCENARIO: Dict[str, Any] = {
    "name": "default-home",
    "preset": None,
    "battery": {
        "id": "battery",
        "capacity_kwh": 10.0,
        "p_max_kw": 3.0,
        "eta_charge": 0.95,
        "eta_discharge": 0.95,
        "soc_init_kwh": 5.0,
        "soc_min_kwh": 0.5,
    },
    "tank": {
        "id": "dhw",
        "volume_l": 200.0,
        "heating_power_kw": 2.4,
        "efficiency": 0.95,
        "loss_coeff_w_per_k": 2.0,
        "ambient_temp_c": 20.0,
        "target_temp_c": 55.0,
        "initial_temp_c": 45.0,
        "draws": [
            {"hour": 7.0, "volume_l": 40.0},
            {"hour": 20.0, "volume_l": 60.0},
        ],
    },
    "ev": None,
    "pool": None,
    "strategy": "ecs_first",
    "threshold_percent": None,
    "ecs_service": None,
    "economics": {"investment_eur": 0.0, "days_per_year": 365.0},
    "week": {
        "start_date": "2025-03-17",
        "weather_preset": "sunny-week",
        "tariff_type": "tempo",
        "tempo_preset": "tempo-spring",
        "base_load_profile": "residential",
        "mpc_strategy": "mpc_balanced",
        "baseline_strategy": "ecs_first",
    },
}


class BatteryConfig(BaseModel):
    """Battery section of a scenario payload."""
    model_config = ConfigDict(frozen=True)

    id: str = "battery"
    label: str = "Battery"
    capacity_kwh: float = Field(gt=0, description="Nominal capacity (kWh)")
    p_max_kw: float = Field(gt=0, description="Charge/discharge power limit (kW)")
    eta_charge: float = Field(0.95, gt=0, le=1)
    eta_discharge: float = Field(0.95, gt=0, le=1)
    soc_init_kwh: float = Field(0.0, ge=0)
    soc_min_kwh: float = Field(0.0, ge=0)
    soc_max_kwh: Optional[float] = Field(default=None, gt=0)


class WaterDrawConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    hour: float = Field(ge=0, lt=24)
    volume_l: float = Field(ge=0)
    cold_water_temp_c: float = 12.0


class ThermalTankConfig(BaseModel):
    """Hot-water tank section of a scenario payload."""
    model_config = ConfigDict(frozen=True)

    id: str = "dhw"
    label: str = "Hot-water tank"
    volume_l: float = Field(gt=0)
    heating_power_kw: float = Field(gt=0)
    efficiency: float = Field(1.0, gt=0, le=1)
    loss_coeff_w_per_k: float = Field(2.0, ge=0)
    ambient_temp_c: float = 20.0
    target_temp_c: float = 55.0
    initial_temp_c: float = 45.0
    draws: List[WaterDrawConfig] = Field(default_factory=list)


class EVSessionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    arrival_hour: float = Field(18.0, ge=0, lt=24)
    departure_hour: float = Field(7.0, ge=0, lt=24)
    energy_need_kwh: float = Field(10.0, ge=0)


class EVChargerConfig(BaseModel):
    """Vehicle charger section of a scenario payload."""
    model_config = ConfigDict(frozen=True)

    id: str = "ev"
    label: str = "EV charger"
    max_power_kw: float = Field(7.4, gt=0)
    session: EVSessionConfig = Field(default_factory=EVSessionConfig)


class PreferredWindowConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_hour: float = Field(ge=0, le=24)
    end_hour: float = Field(ge=0, le=24)


class PoolPumpConfig(BaseModel):
    """Pool pump section of a scenario payload."""
    model_config = ConfigDict(frozen=True)

    id: str = "pool"
    label: str = "Pool pump"
    power_kw: float = Field(1.2, gt=0)
    min_hours_per_day: float = Field(6.0, ge=0, le=24)
    preferred_windows: List[PreferredWindowConfig] = Field(default_factory=list)


class WeekConfig(BaseModel):
    """Inputs of the seven-day forecast-aware run."""
    model_config = ConfigDict(frozen=True)

    start_date: str = "2025-03-17"
    weather_preset: str = "sunny-week"
    tariff_type: str = "tempo"
    tempo_preset: str = "tempo-spring"
    base_load_profile: str = "residential"
    mpc_strategy: str = "mpc_balanced"
    baseline_strategy: str = "ecs_first"


class ScenarioConfig(BaseModel):
    """
    Complete, validated scenario.

    ``ecs_service`` stays a raw mapping: it is merged over the default
    contract with the sanitising merge rather than validated strictly.
    """
    model_config = ConfigDict(frozen=True)

    name: str = "scenario"
    preset: Optional[str] = None
    dt_s: float = Field(default_factory=get_default_step_seconds, gt=0)
    battery: Optional[BatteryConfig] = None
    tank: Optional[ThermalTankConfig] = None
    ev: Optional[EVChargerConfig] = None
    pool: Optional[PoolPumpConfig] = None
    strategy: str = "ecs_first"
    threshold_percent: Optional[float] = None
    ecs_service: Optional[Dict[str, Any]] = None
    economics: Dict[str, float] = Field(default_factory=dict)
    week: WeekConfig = Field(default_factory=WeekConfig)

    @model_validator(mode="after")
    def _check_strategies(self) -> "ScenarioConfig":
        if self.preset is not None and self.preset not in SCENARIO_PRESETS:
            raise ValueError(f"Unknown scenario preset {self.preset!r}. Available: {', '.join(SCENARIO_PRESETS)}")
        if self.strategy not in STRATEGY_IDS:
            raise ValueError(f"Unknown strategy {self.strategy!r}. Available: {', '.join(STRATEGY_IDS)}")
        if self.week.baseline_strategy not in STRATEGY_IDS:
            raise ValueError(f"Unknown baseline strategy {self.week.baseline_strategy!r}")
        if self.week.mpc_strategy not in MPC_STRATEGY_IDS:
            raise ValueError(f"Unknown MPC strategy {self.week.mpc_strategy!r}")
        return self


# -- Scenario presets ---------------------------------------------------------

SeriesFn = Callable[[float], np.ndarray]

DRAW_PROFILES: Dict[str, List[Dict[str, float]]] = {
    "light": [
        {"hour": 7.0, "volume_l": 30.0},
        {"hour": 20.0, "volume_l": 40.0},
    ],
    "medium": [
        {"hour": 7.0, "volume_l": 40.0},
        {"hour": 20.0, "volume_l": 60.0},
    ],
    "heavy": [
        {"hour": 6.5, "volume_l": 60.0},
        {"hour": 7.5, "volume_l": 50.0},
        {"hour": 19.5, "volume_l": 70.0},
        {"hour": 21.0, "volume_l": 50.0},
    ],
}


def _step_times_s(dt_s: float) -> np.ndarray:
    return np.arange(steps_per_day(dt_s)) * dt_s


def solar_day_series(
    dt_s: float,
    sunrise_hour: float,
    sunset_hour: float,
    peak_kw: float,
    cloud_attenuation: float = 1.0,
) -> np.ndarray:
    """
    One-day PV series: ``sin(pi * x) ** 1.3`` between sunrise and sunset.

    Args:
        dt_s: Step size (s).
        sunrise_hour: First productive hour.
        sunset_hour: Last productive hour.
        peak_kw: Clear-sky peak (kW).
        cloud_attenuation: Multiplier applied to the whole day.
    """
    t = _step_times_s(dt_s)
    sunrise_s = sunrise_hour * SECONDS_PER_HOUR
    sunset_s = sunset_hour * SECONDS_PER_HOUR
    x = np.clip((t - sunrise_s) / (sunset_s - sunrise_s), 0.0, 1.0)
    shape = np.sin(np.pi * x) ** 1.3
    daylight = (t >= sunrise_s) & (t <= sunset_s)
    return np.where(daylight, shape * peak_kw * cloud_attenuation, 0.0)


def evening_peak_load_series(dt_s: float, base_kw: float, evening_peak_kw: float, noise_kw: float = 0.0) -> np.ndarray:
    """Flat base with a small 07:00 bump, a 19:00 peak and a slow ripple."""
    t = _step_times_s(dt_s)
    hours = t / SECONDS_PER_HOUR
    morning = np.exp(-((hours - 7.0) ** 2) / 3.0) * 0.3
    evening = np.exp(-((hours - 19.0) ** 2) / 2.0) * evening_peak_kw
    ripple = np.sin(t / SECONDS_PER_DAY * 12.0 * np.pi) * noise_kw
    return base_kw + morning + evening + ripple


def dual_level_load_series(dt_s: float, day_kw: float, evening_kw: float) -> np.ndarray:
    """
    Household away during the day: ``evening_kw`` from 18:00 to 06:00,
    ``day_kw`` in between, with eased 06-08 and 17-18 transitions and a
    breakfast bump around 07:20.
    """
    hours = _step_times_s(dt_s) / SECONDS_PER_HOUR
    gap = evening_kw - day_kw
    morning_blend = 1.0 - np.clip((hours - 6.0) / 2.0, 0.0, 1.0) ** 1.4
    level = np.select(
        [
            (hours >= 18.0) | (hours < 6.0),
            hours < 8.0,
            hours >= 17.0,
        ],
        [
            np.full_like(hours, evening_kw),
            day_kw + gap * morning_blend,
            day_kw + gap * (hours - 17.0),
        ],
        default=day_kw,
    )
    breakfast = max(gap, 0.0) * 0.35 * np.exp(-((hours - 7.3) ** 2) / 0.45)
    return level + breakfast


def tou_price_series(dt_s: float, onpeak_hours: Sequence[int], onpeak_price: float, offpeak_price: float) -> np.ndarray:
    """Import price per step: ``onpeak_price`` during the listed hours of day."""
    hours = (_step_times_s(dt_s) // SECONDS_PER_HOUR).astype(int)
    return np.where(np.isin(hours, list(onpeak_hours)), onpeak_price, offpeak_price)


@dataclass(frozen=True)
class PresetSeries:
    pv_kw: np.ndarray
    base_load_kw: np.ndarray
    import_prices_eur_per_kwh: Optional[np.ndarray] = None


@dataclass(frozen=True)
class ScenarioPreset:
    """
    A ready-made household: a scenario payload plus the day it is run on.

    Attributes:
        id: Stable preset id, referenced by a scenario's ``preset`` key.
        label: Short human-readable name.
        description: What the preset stresses.
        tags: Free-form keywords.
        scenario: Payload merged over :data:`DEFAULT_SCENARIO`.
        pv: Builds the PV series for a step size.
        base_load: Builds the base-load series for a step size.
        import_prices: Builds the import price series; None keeps the
            forecast tariff.
    """
    id: str
    label: str
    description: str
    scenario: Mapping[str, Any]
    pv: SeriesFn
    base_load: SeriesFn
    import_prices: Optional[SeriesFn] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def generate(self, dt_s: float) -> PresetSeries:
        return PresetSeries(
            pv_kw=self.pv(dt_s),
            base_load_kw=self.base_load(dt_s),
            import_prices_eur_per_kwh=self.import_prices(dt_s) if self.import_prices is not None else None,
        )


def _battery(capacity_kwh, p_max_kw, soc_init_kwh, soc_min_kwh, eta=0.95) -> Dict[str, Any]:
    return {
        "capacity_kwh": capacity_kwh,
        "p_max_kw": p_max_kw,
        "eta_charge": eta,
        "eta_discharge": eta,
        "soc_init_kwh": soc_init_kwh,
        "soc_min_kwh": soc_min_kwh,
    }


def _tank(
    volume_l, heating_power_kw, loss_coeff_w_per_k, target_temp_c, initial_temp_c, draws, ambient_temp_c=20.0
) -> Dict[str, Any]:
    return {
        "volume_l": volume_l,
        "heating_power_kw": heating_power_kw,
        "efficiency": 0.95,
        "loss_coeff_w_per_k": loss_coeff_w_per_k,
        "ambient_temp_c": ambient_temp_c,
        "target_temp_c": target_temp_c,
        "initial_temp_c": initial_temp_c,
        "draws": DRAW_PROFILES[draws],
    }


_COLD_MORNING_SCENARIO: Dict[str, Any] = {
    "battery": _battery(10.0, 1.0, 6.0, 0.0),
    "tank": _tank(300.0, 2.6, 4.0, 55.0, 15.0, "heavy"),
}
_COLD_MORNING_PV = partial(solar_day_series, sunrise_hour=8.0, sunset_hour=18.0, peak_kw=3.2)
_COLD_MORNING_LOAD = partial(dual_level_load_series, day_kw=0.35, evening_kw=1.1)
_COLD_MORNING_PRICES = partial(
    tou_price_series, onpeak_hours=(6, 7, 8, 9, 19, 20, 21), onpeak_price=0.34, offpeak_price=0.17
)

_PRESETS = (
    ScenarioPreset(
        id="summer-sunny",
        label="Sunny summer day",
        description="Strong PV with the household home in the evening and a pool to filter.",
        tags=("summer", "sunny", "pool"),
        scenario={
            "battery": _battery(10.0, 4.0, 5.0, 1.0),
            "tank": _tank(250.0, 2.0, 10.0, 55.0, 45.0, "medium"),
            "pool": {"power_kw": 1.2, "min_hours_per_day": 6.0, "preferred_windows": [{"start_hour": 10, "end_hour": 16}]},
        },
        pv=partial(solar_day_series, sunrise_hour=6.0, sunset_hour=20.0, peak_kw=6.0),
        base_load=partial(evening_peak_load_series, base_kw=0.6, evening_peak_kw=1.5, noise_kw=0.1),
    ),
    ScenarioPreset(
        id="winter-overcast",
        label="Overcast winter day",
        description="Weak PV, cold tank and a heavier base load.",
        tags=("winter", "overcast"),
        scenario={
            "battery": _battery(8.0, 3.0, 4.0, 0.5, eta=0.94),
            "tank": _tank(300.0, 3.0, 12.0, 55.0, 35.0, "medium"),
        },
        pv=partial(solar_day_series, sunrise_hour=8.0, sunset_hour=16.0, peak_kw=2.5, cloud_attenuation=0.6),
        base_load=partial(evening_peak_load_series, base_kw=0.9, evening_peak_kw=1.8, noise_kw=0.05),
    ),
    ScenarioPreset(
        id="cold-morning",
        label="Cold morning",
        description="Late PV, expensive morning peak and a cold tank to recover early.",
        tags=("winter", "hot-water", "contract"),
        scenario=_COLD_MORNING_SCENARIO,
        pv=_COLD_MORNING_PV,
        base_load=_COLD_MORNING_LOAD,
        import_prices=_COLD_MORNING_PRICES,
    ),
    ScenarioPreset(
        id="comfort-tank",
        label="Evening comfort",
        description="Hot water must be ready for evening showers under a reinforced peak tariff.",
        tags=("hot-water", "evening", "contract"),
        scenario={
            "battery": _battery(12.0, 3.2, 7.0, 1.0),
            "tank": _tank(270.0, 2.8, 6.0, 58.0, 48.0, "light"),
            "pool": {"power_kw": 1.1, "min_hours_per_day": 5.0, "preferred_windows": [{"start_hour": 11, "end_hour": 17}]},
        },
        pv=partial(solar_day_series, sunrise_hour=7.0, sunset_hour=19.0, peak_kw=4.2, cloud_attenuation=0.9),
        base_load=partial(dual_level_load_series, day_kw=0.5, evening_kw=1.25),
        import_prices=partial(
            tou_price_series, onpeak_hours=(7, 8, 9, 18, 19, 20, 21, 22), onpeak_price=0.32, offpeak_price=0.16
        ),
    ),
    ScenarioPreset(
        id="ev-evening",
        label="Evening EV charge",
        description="The car is plugged in at 18:00 and must leave charged at 07:00.",
        tags=("summer", "ev", "evening"),
        scenario={
            "battery": _battery(9.0, 3.6, 4.5, 1.0),
            "tank": _tank(200.0, 2.4, 8.0, 54.0, 48.0, "light"),
            "ev": {
                "max_power_kw": 7.4,
                "session": {"arrival_hour": 18.0, "departure_hour": 7.0, "energy_need_kwh": 22.0},
            },
            "strategy": "ev_departure_guard",
        },
        pv=partial(solar_day_series, sunrise_hour=6.0, sunset_hour=20.0, peak_kw=5.5, cloud_attenuation=0.85),
        base_load=partial(dual_level_load_series, day_kw=0.45, evening_kw=1.35),
        import_prices=partial(
            tou_price_series, onpeak_hours=(7, 8, 9, 18, 19, 20, 21), onpeak_price=0.31, offpeak_price=0.16
        ),
    ),
    ScenarioPreset(
        id="multi-equipment-stress",
        label="Multi-equipment stress",
        description="Cold day where the tank, the pool and the car compete for limited PV.",
        tags=("winter", "multi", "stress"),
        scenario={
            "battery": _battery(12.0, 4.5, 5.0, 1.0),
            "tank": _tank(260.0, 3.0, 9.0, 56.0, 45.0, "heavy", ambient_temp_c=18.0),
            "pool": {
                "power_kw": 1.3,
                "min_hours_per_day": 6.0,
                "preferred_windows": [{"start_hour": 10, "end_hour": 14}, {"start_hour": 16, "end_hour": 18}],
            },
            "ev": {
                "max_power_kw": 7.2,
                "session": {"arrival_hour": 18.0, "departure_hour": 7.0, "energy_need_kwh": 20.0},
            },
            "strategy": "multi_equipment_priority",
        },
        pv=partial(solar_day_series, sunrise_hour=7.0, sunset_hour=18.0, peak_kw=4.2, cloud_attenuation=0.7),
        base_load=partial(dual_level_load_series, day_kw=0.55, evening_kw=1.45),
        import_prices=partial(
            tou_price_series, onpeak_hours=(7, 8, 9, 18, 19, 20, 21), onpeak_price=0.33, offpeak_price=0.17
        ),
    ),
    ScenarioPreset(
        id="empty-battery",
        label="Empty battery",
        description="Winter sun with a nearly empty battery.",
        tags=("winter", "battery"),
        scenario={
            "battery": _battery(10.0, 2.0, 0.5, 0.0),
            "tank": _tank(300.0, 3.0, 4.0, 55.0, 35.0, "medium"),
        },
        pv=partial(solar_day_series, sunrise_hour=8.0, sunset_hour=18.0, peak_kw=3.8),
        base_load=partial(dual_level_load_series, day_kw=0.0, evening_kw=0.8),
    ),
    ScenarioPreset(
        id="soc-thresholds",
        label="SOC thresholds",
        description="Cold-morning household used to compare SOC thresholds of the mixed strategy.",
        tags=("mix", "threshold"),
        scenario={**_COLD_MORNING_SCENARIO, "strategy": "mix_soc_threshold", "threshold_percent": 40.0},
        pv=_COLD_MORNING_PV,
        base_load=_COLD_MORNING_LOAD,
        import_prices=_COLD_MORNING_PRICES,
    ),
)

SCENARIO_PRESETS: Dict[str, ScenarioPreset] = {preset.id: preset for preset in _PRESETS}


def get_scenario_preset(preset_id: str) -> ScenarioPreset:
    """
    Raises:
        ValueError: For an unknown preset id.
    """
    preset = SCENARIO_PRESETS.get(preset_id)
    if preset is None:
        raise ValueError(f"Unknown scenario preset {preset_id!r}. Available: {', '.join(SCENARIO_PRESETS)}")
    return preset


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_scenario_data(source: ScenarioSource = None) -> Dict[str, Any]:
    """
    Load a scenario payload and merge it over :data:`DEFAULT_SCENARIO`.

    A payload naming a ``preset`` is merged over that preset, itself merged
    over the defaults; the preset id doubles as the scenario name unless the
    payload sets one.

    Args:
        source: Path to a JSON file, mapping, or None for the default scenario.

    Returns:
        Plain dictionary; nested sections are merged key by key, and a section
        explicitly set to ``None`` (e.g. ``"battery": null``) removes it.

    Raises:
        ValueError: For an unknown preset id.
    """
    if source is None:
        return copy.deepcopy(DEFAULT_SCENARIO)
    if isinstance(source, (str, Path)):
        payload = json.loads(Path(source).read_text(encoding="utf-8"))
    else:
        payload = dict(source)

    base = DEFAULT_SCENARIO
    preset_id = payload.get("preset")
    if preset_id is not None:
        preset = get_scenario_preset(preset_id)
        base = _deep_merge(DEFAULT_SCENARIO, {"name": preset.id, **preset.scenario})
    return _deep_merge(base, payload)


def load_preset_scenario(preset_id: str, overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Scenario payload of a preset, with optional overrides merged on top."""
    return load_scenario_data({**(overrides or {}), "preset": preset_id})


def build_scenario_config(source: ScenarioSource = None) -> ScenarioConfig:
    """
    Load and validate a scenario.

    Raises:
        pydantic.ValidationError: For structurally invalid payloads.
    """
    return ScenarioConfig.model_validate(load_scenario_data(source))


def build_devices(config: ScenarioConfig) -> List[Device]:
    """
    Build a fresh device set (battery, tank, vehicle charger, pool pump).

    Devices carry state, so every run that must start from the initial
    conditions needs its own call.
    """
    devices: List[Device] = []
    if config.battery is not None:
        battery_cfg = config.battery
        devices.append(
            Battery(
                battery_cfg.id,
                battery_cfg.label,
                BatterySpecs(
                    capacity_kwh=battery_cfg.capacity_kwh,
                    p_max_kw=battery_cfg.p_max_kw,
                    eta_charge=battery_cfg.eta_charge,
                    eta_discharge=battery_cfg.eta_discharge,
                    soc_init_kwh=battery_cfg.soc_init_kwh,
                    soc_min_kwh=battery_cfg.soc_min_kwh,
                    soc_max_kwh=battery_cfg.soc_max_kwh,
                ),
            )
        )
    if config.tank is not None:
        tank_cfg = config.tank
        devices.append(
            ThermalTank(
                tank_cfg.id,
                tank_cfg.label,
                ThermalTankSpecs(
                    volume_l=tank_cfg.volume_l,
                    heating_power_kw=tank_cfg.heating_power_kw,
                    efficiency=tank_cfg.efficiency,
                    loss_coeff_w_per_k=tank_cfg.loss_coeff_w_per_k,
                    ambient_temp_c=tank_cfg.ambient_temp_c,
                    target_temp_c=tank_cfg.target_temp_c,
                    initial_temp_c=tank_cfg.initial_temp_c,
                    draw_profile=tuple(
                        WaterDrawEvent(
                            hour=draw.hour,
                            volume_l=draw.volume_l,
                            cold_water_temp_c=draw.cold_water_temp_c,
                        )
                        for draw in tank_cfg.draws
                    ),
                ),
            )
        )
    if config.ev is not None:
        ev_cfg = config.ev
        devices.append(
            EVCharger(
                ev_cfg.id,
                ev_cfg.label,
                EVChargerSpecs(
                    max_power_kw=ev_cfg.max_power_kw,
                    session=EVChargeSession(
                        arrival_hour=ev_cfg.session.arrival_hour,
                        departure_hour=ev_cfg.session.departure_hour,
                        energy_need_kwh=ev_cfg.session.energy_need_kwh,
                    ),
                ),
            )
        )
    if config.pool is not None:
        pool_cfg = config.pool
        devices.append(
            PoolPump(
                pool_cfg.id,
                pool_cfg.label,
                PoolPumpSpecs(
                    power_kw=pool_cfg.power_kw,
                    min_hours_per_day=pool_cfg.min_hours_per_day,
                    preferred_windows=tuple(
                        PreferredWindow(start_hour=window.start_hour, end_hour=window.end_hour)
                        for window in pool_cfg.preferred_windows
                    ),
                ),
            )
        )
    return devices


def build_ecs_contract(config: ScenarioConfig) -> EcsServiceContract:
    return merge_ecs_service_contract(None, config.ecs_service)


def build_economic_config(config: ScenarioConfig) -> EconomicConfig:
    return EconomicConfig(
        investment_eur=float(config.economics.get("investment_eur", 0.0)),
        days_per_year=float(config.economics.get("days_per_year", 365.0)),
    )
