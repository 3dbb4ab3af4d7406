"""
Electric-vehicle charger with a daily plug-in session and a departure deadline.

The vehicle arrives at ``arrival_hour`` every day and leaves at
``departure_hour`` (next day when departure is earlier than arrival). Within a
session the charger asks for the energy still missing, with a priority hint
that rises as departure approaches; delivered energy resets when a new
session starts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from ..calendar_utils import SECONDS_PER_DAY, SECONDS_PER_HOUR
from .devices import (
    NEED_TO_LOAD,
    VEHICLE_CHARGER,
    DevicePlan,
    DeviceState,
    EnvContext,
    PowerRequest,
    clamp,
)

SESSION_EPSILON_S = 1e-6
URGENT_WINDOW_S = 3600.0
URGENT_PRIORITY_HINT = 95.0
SESSION_PRIORITY_HINT = 70.0
REQUIRED_POWER_HINT_SPAN = 5.0
CHARGING_THRESHOLD_KW = 1e-3

SessionWindow = Tuple[float, float]


def normalize_hour(hour: float) -> float:
    """Fold any hour onto [0, 24); non-finite values map to midnight."""
    if not math.isfinite(hour):
        return 0.0
    return hour % 24.0


@dataclass(frozen=True)
class EVChargeSession:
    """
    Attributes:
        arrival_hour: Hour of day the vehicle is plugged in.
        departure_hour: Hour of day the vehicle leaves; equal to
            ``arrival_hour`` for a vehicle that stays plugged in all day.
        energy_need_kwh: Energy to deliver before departure (kWh).
    """
    arrival_hour: float
    departure_hour: float
    energy_need_kwh: float


@dataclass(frozen=True)
class EVChargerSpecs:
    max_power_kw: float
    session: EVChargeSession


class EVCharger:
    """
    Vehicle charger exposed through the device contract.

    Simulation times are run-relative; a run that restarts at ``time_s = 0``
    (the next day of a weekly run) continues the charger's own clock, so a
    session spanning midnight keeps its delivered energy.

    ``state`` reports the charger at the end of the last applied step, which
    is the start of the step being planned.
    """

    capabilities: FrozenSet[str] = frozenset({VEHICLE_CHARGER})

    def __init__(self, id: str, label: str, specs: EVChargerSpecs) -> None:
        self.id = id
        self.label = label
        self.specs = EVChargerSpecs(
            max_power_kw=max(specs.max_power_kw, 0.0),
            session=EVChargeSession(
                arrival_hour=normalize_hour(specs.session.arrival_hour),
                departure_hour=normalize_hour(specs.session.departure_hour),
                energy_need_kwh=max(specs.session.energy_need_kwh, 0.0),
            ),
        )
        self.last_power_kw = 0.0
        self._clock_s = 0.0
        self._last_dt_s = 0.0
        self._session_start_s: Optional[float] = None
        self._delivered_kwh = 0.0

    @property
    def session_duration_s(self) -> float:
        session = self.specs.session
        if session.energy_need_kwh <= 0.0 or self.specs.max_power_kw <= 0.0:
            return 0.0
        if session.departure_hour == session.arrival_hour:
            return float(SECONDS_PER_DAY)
        span_h = session.departure_hour - session.arrival_hour
        if span_h < 0.0:
            span_h += 24.0
        return span_h * SECONDS_PER_HOUR

    def _absolute_time(self, time_s: float) -> float:
        if time_s < self._clock_s - SESSION_EPSILON_S:
            days = math.ceil((self._clock_s - time_s - SESSION_EPSILON_S) / SECONDS_PER_DAY)
            return time_s + days * SECONDS_PER_DAY
        return time_s

    def _latest_arrival(self, time_s: float) -> float:
        arrival_s = self.specs.session.arrival_hour * SECONDS_PER_HOUR
        return math.floor((time_s - arrival_s) / SECONDS_PER_DAY) * SECONDS_PER_DAY + arrival_s

    def _window(self, time_s: float) -> Optional[SessionWindow]:
        duration = self.session_duration_s
        if duration <= 0.0:
            return None
        start = self._latest_arrival(time_s)
        if time_s < start + duration - SESSION_EPSILON_S:
            return start, start + duration
        return None

    def _is_tracked(self, window: SessionWindow) -> bool:
        return self._session_start_s is not None and abs(self._session_start_s - window[0]) <= SESSION_EPSILON_S

    def _remaining_kwh(self, window: Optional[SessionWindow]) -> float:
        delivered = self._delivered_kwh
        if window is not None and not self._is_tracked(window):
            delivered = 0.0
        return max(self.specs.session.energy_need_kwh - delivered, 0.0)

    def next_session_start(self, time_s: float) -> Optional[float]:
        """Start of the session in progress at ``time_s``, else of the next one."""
        duration = self.session_duration_s
        if duration <= 0.0:
            return None
        start = self._latest_arrival(time_s)
        if time_s < start + duration - SESSION_EPSILON_S:
            return start
        return start + SECONDS_PER_DAY

    def plan(self, dt_s: float, env: EnvContext) -> DevicePlan:
        time_s = self._absolute_time(env.time_s)
        window = self._window(time_s)
        if window is None:
            return DevicePlan()
        remaining = self._remaining_kwh(window)
        time_remaining_s = window[1] - time_s
        if remaining <= 0.0 or time_remaining_s <= SESSION_EPSILON_S:
            return DevicePlan()

        max_power = self.specs.max_power_kw
        required_kw = remaining / (time_remaining_s / SECONDS_PER_HOUR)
        base_hint = URGENT_PRIORITY_HINT if time_remaining_s <= URGENT_WINDOW_S else SESSION_PRIORITY_HINT
        hint = base_hint + math.floor(clamp(required_kw, 0.0, max_power) / max_power * REQUIRED_POWER_HINT_SPAN + 0.5)
        dt_h = max(dt_s / SECONDS_PER_HOUR, 1e-6)
        return DevicePlan(
            request=PowerRequest(
                max_accept_kw=min(max_power, remaining / dt_h),
                need=NEED_TO_LOAD,
                priority_hint=hint,
            )
        )

    def apply(self, power_kw: float, dt_s: float, env: EnvContext) -> None:
        time_s = self._absolute_time(env.time_s)
        self._clock_s = time_s
        self._last_dt_s = dt_s
        window = self._window(time_s)
        if window is None or dt_s <= 0.0:
            self.last_power_kw = 0.0
            return
        if not self._is_tracked(window):
            self._session_start_s = window[0]
            self._delivered_kwh = 0.0

        remaining = self._remaining_kwh(window)
        dt_h = dt_s / SECONDS_PER_HOUR
        applied = max(0.0, min(power_kw, self.specs.max_power_kw, remaining / dt_h))
        self.last_power_kw = applied
        self._delivered_kwh = min(self.specs.session.energy_need_kwh, self._delivered_kwh + applied * dt_h)

    def state(self) -> DeviceState:
        time_s = self._clock_s + self._last_dt_s
        window = self._window(time_s)
        remaining = self._remaining_kwh(window)
        active = window is not None and remaining > 0.0
        time_remaining_s = window[1] - time_s if window is not None else 0.0
        if active:
            time_to_start_h = 0.0
        else:
            next_start = self.next_session_start(time_s)
            time_to_start_h = math.inf if next_start is None else max(next_start - time_s, 0.0) / SECONDS_PER_HOUR
        return {
            "charging": self.last_power_kw > CHARGING_THRESHOLD_KW,
            "charging_power_kw": self.last_power_kw,
            "energy_remaining_kwh": remaining,
            "session_active": active,
            "session_time_remaining_h": time_remaining_s / SECONDS_PER_HOUR,
            "session_time_to_start_h": time_to_start_h,
            "session_energy_need_kwh": self.specs.session.energy_need_kwh,
            "session_duration_h": self.session_duration_s / SECONDS_PER_HOUR,
            "session_max_power_kw": self.specs.max_power_kw,
        }
