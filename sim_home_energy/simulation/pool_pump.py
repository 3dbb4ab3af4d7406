"""
Pool filtration pump: a shiftable load that must run a minimum number of
hours per day and prefers to run inside its preferred windows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from ..calendar_utils import SECONDS_PER_HOUR, hour_of_day
from .devices import (
    NEED_TO_LOAD,
    SHIFTABLE_LOAD,
    DevicePlan,
    DeviceState,
    EnvContext,
    PowerRequest,
)

PREFERRED_PRIORITY_HINT = 40.0
OFF_WINDOW_PRIORITY_HINT = 20.0
RUNNING_THRESHOLD_KW = 1e-3
HOURS_EPSILON = 1e-9


@dataclass(frozen=True)
class PreferredWindow:
    """Daily window ``[start_hour, end_hour)``; wraps midnight when start > end."""
    start_hour: float
    end_hour: float

    def contains(self, hour: float) -> bool:
        if self.start_hour <= self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour


@dataclass(frozen=True)
class PoolPumpSpecs:
    """
    Attributes:
        power_kw: Rated pump power (kW).
        min_hours_per_day: Filtration time required each day (h).
        preferred_windows: Windows in which the pump asks with a higher hint.
    """
    power_kw: float
    min_hours_per_day: float
    preferred_windows: Tuple[PreferredWindow, ...] = field(default_factory=tuple)


class PoolPump:
    """
    Pool pump device.

    Requests up to its rated power until the day's filtration hours are done.
    A partial grant counts as a proportional share of run time. The run-time
    counter restarts when the time of day wraps backwards.
    """

    capabilities: FrozenSet[str] = frozenset({SHIFTABLE_LOAD})

    def __init__(self, id: str, label: str, specs: PoolPumpSpecs) -> None:
        if specs.power_kw < 0.0:
            raise ValueError("power_kw must be non-negative")
        if not 0.0 <= specs.min_hours_per_day <= 24.0:
            raise ValueError("min_hours_per_day must be within [0, 24]")
        self.id = id
        self.label = label
        self.specs = specs
        self.run_hours_today = 0.0
        self.last_power_kw = 0.0
        self._last_hour: Optional[float] = None
        self._last_end_s = 0.0

    def _run_hours_at(self, hour: float) -> float:
        if self._last_hour is not None and hour < self._last_hour:
            return 0.0
        return self.run_hours_today

    def hours_remaining(self, time_s: float) -> float:
        hour = hour_of_day(time_s)
        return max(self.specs.min_hours_per_day - self._run_hours_at(hour), 0.0)

    def in_preferred_window(self, time_s: float) -> bool:
        hour = hour_of_day(time_s)
        return any(window.contains(hour) for window in self.specs.preferred_windows)

    def plan(self, dt_s: float, env: EnvContext) -> DevicePlan:
        remaining_h = self.hours_remaining(env.time_s)
        if remaining_h <= HOURS_EPSILON or self.specs.power_kw <= 0.0 or dt_s <= 0.0:
            return DevicePlan()
        dt_h = dt_s / SECONDS_PER_HOUR
        hint = PREFERRED_PRIORITY_HINT if self.in_preferred_window(env.time_s) else OFF_WINDOW_PRIORITY_HINT
        return DevicePlan(
            request=PowerRequest(
                max_accept_kw=min(self.specs.power_kw, remaining_h * self.specs.power_kw / dt_h),
                need=NEED_TO_LOAD,
                priority_hint=hint,
            )
        )

    def apply(self, power_kw: float, dt_s: float, env: EnvContext) -> None:
        hour = hour_of_day(env.time_s)
        self.run_hours_today = self._run_hours_at(hour)
        self._last_hour = hour
        self._last_end_s = env.time_s + dt_s

        remaining_h = max(self.specs.min_hours_per_day - self.run_hours_today, 0.0)
        if self.specs.power_kw <= 0.0 or dt_s <= 0.0 or remaining_h <= HOURS_EPSILON:
            self.last_power_kw = 0.0
            return
        dt_h = dt_s / SECONDS_PER_HOUR
        applied = max(0.0, min(power_kw, self.specs.power_kw, remaining_h * self.specs.power_kw / dt_h))
        self.last_power_kw = applied
        self.run_hours_today += applied / self.specs.power_kw * dt_h

    def state(self) -> DeviceState:
        return {
            "running": self.last_power_kw > RUNNING_THRESHOLD_KW,
            "power_kw": self.last_power_kw,
            "run_hours_today": self.run_hours_today,
            "hours_remaining": self.hours_remaining(self._last_end_s),
        }
