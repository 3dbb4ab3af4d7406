"""
Forecast containers for weekly, forecast-aware runs.

A :class:`WeeklyForecast` holds seven days of hourly weather (PV, ambient
temperature) and tariff (import/export price) profiles. During a run the
orchestrator slices a rolling :class:`Forecast` window out of it with
:func:`build_forecast_horizon`, and resamples each day to the engine step
with :func:`resample_hourly_to_steps`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Tuple

import numpy as np

from ..calendar_utils import DAYS_PER_WEEK

HOURS_PER_DAY = 24
DEFAULT_HORIZON_HOURS = 24

TempoColor = Literal["BLUE", "WHITE", "RED"]
TariffType = Literal["tempo", "tou", "fixed"]


@dataclass(frozen=True)
class DailyWeather:
    """
    Weather of one day.

    Attributes:
        day: Day index inside the week (0-6).
        date: ISO date.
        pv_profile_kw: 24 hourly PV power samples (kW).
        ambient_temp_profile_c: 24 hourly ambient temperatures (°C).
        description: Short human-readable summary.
        icon: Icon identifier (sun, cloud, ...).
    """
    day: int
    date: str
    pv_profile_kw: Tuple[float, ...]
    ambient_temp_profile_c: Tuple[float, ...]
    description: str = ""
    icon: str = ""

    @property
    def pv_total_kwh(self) -> float:
        return float(sum(self.pv_profile_kw))

    @property
    def avg_ambient_temp_c(self) -> float:
        return float(np.mean(self.ambient_temp_profile_c)) if self.ambient_temp_profile_c else 0.0


@dataclass(frozen=True)
class DailyTariff:
    """
    Tariff of one day.

    Attributes:
        day: Day index inside the week (0-6).
        date: ISO date.
        import_price_series: 24 hourly import prices (EUR/kWh).
        export_price_series: 24 hourly export prices (EUR/kWh).
        tariff_type: ``tempo``, ``tou`` or ``fixed``.
        tempo_color: Day colour for Tempo tariffs.
    """
    day: int
    date: str
    import_price_series: Tuple[float, ...]
    export_price_series: Tuple[float, ...]
    tariff_type: TariffType = "fixed"
    tempo_color: Optional[TempoColor] = None

    @property
    def peak_price(self) -> float:
        return max(self.import_price_series)

    @property
    def offpeak_price(self) -> float:
        return min(self.import_price_series)


@dataclass(frozen=True)
class WeeklyForecast:
    """
    Seven days of weather and tariffs.

    Raises:
        ValueError: If there are not exactly 7 days of each, or any hourly
            profile does not hold 24 samples.
    """
    start_date: str
    weather: Tuple[DailyWeather, ...]
    tariffs: Tuple[DailyTariff, ...]

    def __post_init__(self) -> None:
        if len(self.weather) != DAYS_PER_WEEK or len(self.tariffs) != DAYS_PER_WEEK:
            raise ValueError(
                f"weekly forecast needs {DAYS_PER_WEEK} weather and tariff days, "
                f"got {len(self.weather)} and {len(self.tariffs)}"
            )
        for weather in self.weather:
            _check_hourly(weather.pv_profile_kw, f"day {weather.day} pv_profile_kw")
            _check_hourly(weather.ambient_temp_profile_c, f"day {weather.day} ambient_temp_profile_c")
        for tariff in self.tariffs:
            _check_hourly(tariff.import_price_series, f"day {tariff.day} import_price_series")
            _check_hourly(tariff.export_price_series, f"day {tariff.day} export_price_series")


def _check_hourly(values: Sequence[float], label: str) -> None:
    if len(values) != HOURS_PER_DAY:
        raise ValueError(f"{label} must hold {HOURS_PER_DAY} hourly values, got {len(values)}")


@dataclass(frozen=True)
class Forecast:
    """
    Rolling look-ahead window, one sample per hour from the current hour.
    """
    horizon_hours: int
    pv_next_kw: Tuple[float, ...]
    import_prices_next: Tuple[float, ...]
    export_prices_next: Tuple[float, ...]
    ambient_temp_next_c: Tuple[float, ...]

    @classmethod
    def empty(cls) -> "Forecast":
        return cls(horizon_hours=0, pv_next_kw=(), import_prices_next=(), export_prices_next=(), ambient_temp_next_c=())


def resample_hourly_to_steps(hourly: Sequence[float], target_steps: int) -> np.ndarray:
    """
    Linearly interpolate 24 hourly samples onto ``target_steps`` steps.

    Step ``i`` sits at hour ``24 * i / target_steps``; the segment after
    hour 23 interpolates toward hour 0 of the same profile.

    Example:
        ```python
        steps = resample_hourly_to_steps([0.0] * 23 + [4.0], 48)
        # steps[46] == 4.0 (23:00), steps[47] == 2.0 (23:30, halfway to 00:00)
        ```
    """
    values = np.asarray(hourly, dtype=float)
    if target_steps <= 0 or values.size == 0:
        return np.zeros(max(target_steps, 0), dtype=float)
    positions = np.arange(target_steps) * (values.size / target_steps)
    index = np.floor(positions).astype(int)
    fraction = positions - index
    lower = values[index % values.size]
    upper = values[(index + 1) % values.size]
    return lower + (upper - lower) * fraction


def build_forecast_horizon(
    forecast: WeeklyForecast,
    day: int,
    hour: int,
    horizon_hours: int = DEFAULT_HORIZON_HOURS,
) -> Forecast:
    """
    Slice ``horizon_hours`` hourly samples starting at ``(day, hour)``.

    Walks forward across midnight into the following days; beyond the last
    day of the week the last day's profiles are repeated.
    """
    pv, imports, exports, temps = [], [], [], []
    last_day = len(forecast.weather) - 1
    for offset in range(horizon_hours):
        total = day * HOURS_PER_DAY + hour + offset
        target_day = min(total // HOURS_PER_DAY, last_day)
        target_hour = total % HOURS_PER_DAY
        weather = forecast.weather[target_day]
        tariff = forecast.tariffs[target_day]
        pv.append(weather.pv_profile_kw[target_hour])
        imports.append(tariff.import_price_series[target_hour])
        exports.append(tariff.export_price_series[target_hour])
        temps.append(weather.ambient_temp_profile_c[target_hour])
    return Forecast(
        horizon_hours=horizon_hours,
        pv_next_kw=tuple(pv),
        import_prices_next=tuple(imports),
        export_prices_next=tuple(exports),
        ambient_temp_next_c=tuple(temps),
    )
