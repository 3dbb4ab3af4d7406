"""
Domestic hot-water (ECS) tank modelled as a single lumped thermal capacity.

No stratification: the tank has one temperature, heated by a resistive
element and cooled by standing losses toward ambient and by optional daily
hot-water draws.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import FrozenSet, Set, Tuple

from ..calendar_utils import hour_of_day
from .devices import (
    NEED_TO_HEAT,
    THERMAL_STORAGE,
    DevicePlan,
    DeviceState,
    EnvContext,
    PowerRequest,
)

WATER_HEAT_CAPACITY_WH_PER_L_PER_K = 1.163
HEATING_PRIORITY_HINT = 80.0
DRAW_TOLERANCE_HOURS = 0.25
HOT_MARGIN_K = 0.5


@dataclass(frozen=True)
class WaterDrawEvent:
    """
    One daily hot-water draw (shower, dishes, ...).

    Attributes:
        hour: Hour of day (0-24) at which the draw happens.
        volume_l: Volume of hot water drawn (L).
        cold_water_temp_c: Temperature of the replacement cold water (°C).
    """
    hour: float
    volume_l: float
    cold_water_temp_c: float = 12.0


@dataclass(frozen=True)
class ThermalTankSpecs:
    """
    Attributes:
        volume_l: Water volume (L).
        heating_power_kw: Resistive element rating (kW).
        efficiency: Electrical-to-heat efficiency (0-1).
        loss_coeff_w_per_k: Standing loss coefficient (W/K).
        ambient_temp_c: Default ambient when the step does not provide one.
        target_temp_c: Thermostat set point; the tank never exceeds it.
        initial_temp_c: Temperature at construction.
        draw_profile: Optional daily draw events.
    """
    volume_l: float
    heating_power_kw: float
    efficiency: float = 1.0
    loss_coeff_w_per_k: float = 2.0
    ambient_temp_c: float = 20.0
    target_temp_c: float = 55.0
    initial_temp_c: float = 45.0
    draw_profile: Tuple[WaterDrawEvent, ...] = field(default_factory=tuple)


class ThermalTank:
    """
    Hot-water tank device.

    Requests its full heating power while below target; ``apply`` integrates
    heat gain (power × efficiency) minus losses ``loss_coeff × (T − ambient)``
    and clamps the result to ``[ambient, target]``.
    """

    capabilities: FrozenSet[str] = frozenset({THERMAL_STORAGE})

    def __init__(self, id: str, label: str, specs: ThermalTankSpecs) -> None:
        if specs.volume_l <= 0.0:
            raise ValueError("volume_l must be positive")
        if not 0.0 < specs.efficiency <= 1.0:
            raise ValueError("efficiency must be within (0, 1]")
        self.id = id
        self.label = label
        self.specs = specs
        self.temp_c = min(specs.initial_temp_c, specs.target_temp_c)
        self._last_hour: float | None = None
        self._processed_draws: Set[int] = set()

    @property
    def temperature(self) -> float:
        return self.temp_c

    @property
    def target_temp_c(self) -> float:
        return self.specs.target_temp_c

    @property
    def max_power_kw(self) -> float:
        return self.specs.heating_power_kw

    @property
    def volume_l(self) -> float:
        return self.specs.volume_l

    @property
    def thermal_capacity_wh_per_k(self) -> float:
        return WATER_HEAT_CAPACITY_WH_PER_L_PER_K * self.specs.volume_l

    def plan(self, dt_s: float, env: EnvContext) -> DevicePlan:
        if self.temp_c >= self.specs.target_temp_c:
            return DevicePlan()
        return DevicePlan(
            request=PowerRequest(
                max_accept_kw=self.specs.heating_power_kw,
                need=NEED_TO_HEAT,
                priority_hint=HEATING_PRIORITY_HINT,
            )
        )

    def _ambient(self, env: EnvContext | None) -> float:
        if env is not None and env.ambient_temp_c is not None:
            return env.ambient_temp_c
        return self.specs.ambient_temp_c

    def _apply_water_draws(self, time_s: float, ambient_c: float) -> None:
        if not self.specs.draw_profile:
            return
        current_hour = hour_of_day(time_s)
        # a new day starts whenever the time of day wraps backwards
        if self._last_hour is not None and current_hour < self._last_hour:
            self._processed_draws.clear()
        self._last_hour = current_hour

        for index, draw in enumerate(self.specs.draw_profile):
            if index in self._processed_draws:
                continue
            if abs(current_hour - draw.hour) >= DRAW_TOLERANCE_HOURS:
                continue
            drawn_l = min(draw.volume_l, self.specs.volume_l)
            remaining_l = self.specs.volume_l - drawn_l
            mixed = (self.temp_c * remaining_l + draw.cold_water_temp_c * drawn_l) / self.specs.volume_l
            self.temp_c = max(mixed, ambient_c)
            self._processed_draws.add(index)

    def apply(self, power_kw: float, dt_s: float, env: EnvContext | None = None) -> None:
        ambient = self._ambient(env)
        time_s = env.time_s if env is not None else 0.0
        self._apply_water_draws(time_s, ambient)

        capacity = self.thermal_capacity_wh_per_k
        gain_wh = max(power_kw, 0.0) * dt_s * self.specs.efficiency * 1000.0 / 3600.0
        loss_wh = self.specs.loss_coeff_w_per_k * (self.temp_c - ambient) * dt_s / 3600.0
        next_temp = self.temp_c + (gain_wh - loss_wh) / capacity
        self.temp_c = min(self.specs.target_temp_c, max(next_temp, ambient))

    def power_to_reach_target(self, dt_s: float, ambient_temp_c: float | None = None) -> float:
        """
        Electrical power that exactly closes the temperature deficit in one step.

        Accounts for the standing loss over the step and is capped at the
        heating element rating. Returns 0 when already at target.
        """
        ambient = self.specs.ambient_temp_c if ambient_temp_c is None else ambient_temp_c
        target = self.specs.target_temp_c
        if self.temp_c >= target - 1e-6:
            return 0.0
        capacity = self.thermal_capacity_wh_per_k
        loss_effect_c = -(self.specs.loss_coeff_w_per_k * (self.temp_c - ambient) * dt_s / 3600.0) / capacity
        required_gain_c = target - self.temp_c - loss_effect_c
        if required_gain_c <= 0.0:
            return 0.0
        required_kw = required_gain_c * capacity * 3600.0 / (dt_s * 1000.0 * self.specs.efficiency)
        if not math.isfinite(required_kw):
            return 0.0
        return max(0.0, min(required_kw, self.specs.heating_power_kw))

    def energy_to_reach_target_kwh(self) -> float:
        """
        Electrical energy needed to lift the tank to target instantaneously.
        """
        deficit_k = max(self.specs.target_temp_c - self.temp_c, 0.0)
        return deficit_k * self.thermal_capacity_wh_per_k / 1000.0 / self.specs.efficiency

    def enforce_target_temperature(self) -> None:
        """Hard override used by the end-of-run rescue."""
        self.temp_c = self.specs.target_temp_c

    def state(self) -> DeviceState:
        return {
            "temp_c": self.temp_c,
            "target_c": self.specs.target_temp_c,
            "is_hot": self.temp_c >= self.specs.target_temp_c - HOT_MARGIN_K,
        }
