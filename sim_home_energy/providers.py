from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .calendar_utils import build_week_dates
from .simulation.forecast import HOURS_PER_DAY, DailyTariff, DailyWeather, TariffType, TempoColor, WeeklyForecast

PV_PEAK_HOUR = 12
PV_SPREAD_HOURS = 6
TEMP_MIN_HOUR = 6
TEMP_HALF_SWING_C = 4.0

TEMPO_PRICES: Dict[TempoColor, Tuple[float, float]] = {
    # (off-peak, peak) EUR/kWh
    "BLUE": (0.1296, 0.1609),
    "WHITE": (0.1486, 0.1894),
    "RED": (0.1568, 0.7562),
}
TOU_PRICES = (0.1558, 0.2068)
FIXED_PRICE = 0.2062
EXPORT_PRICE = 0.10

TEMPO_PRESETS: Dict[str, Tuple[TempoColor, ...]] = {
    "tempo-spring": ("BLUE", "BLUE", "WHITE", "BLUE", "BLUE", "RED", "BLUE"),
    "tempo-winter-harsh": ("WHITE", "BLUE", "RED", "RED", "WHITE", "BLUE", "BLUE"),
    "tempo-summer": ("BLUE",) * 7,
}

# (pv_total_kwh, avg_temp_c, description, icon) per day
WEATHER_PRESETS: Dict[str, Tuple[Tuple[float, float, str, str], ...]] = {
    "sunny-week": (
        (28.0, 15.0, "Ensoleillé", "sun"),
        (30.0, 16.0, "Ensoleillé", "sun"),
        (32.0, 18.0, "Très ensoleillé", "sun"),
        (31.0, 17.0, "Ensoleillé", "sun"),
        (29.0, 16.0, "Ensoleillé", "sun"),
        (24.0, 15.0, "Partiellement ensoleillé", "sun-cloud"),
        (28.0, 16.0, "Ensoleillé", "sun"),
    ),
    "variable-week": (
        (12.0, 11.0, "Nuageux", "cloud"),
        (18.0, 13.0, "Partiellement nuageux", "sun-cloud"),
        (26.0, 15.0, "Ensoleillé", "sun"),
        (28.0, 16.0, "Ensoleillé", "sun"),
        (14.0, 12.0, "Nuageux", "cloud"),
        (8.0, 10.0, "Pluie légère", "rain"),
        (16.0, 12.0, "Partiellement nuageux", "sun-cloud"),
    ),
    "winter-week": (
        (6.0, 3.0, "Nuageux", "cloud"),
        (4.0, 2.0, "Couvert", "cloud"),
        (10.0, 4.0, "Partiellement ensoleillé", "sun-cloud"),
        (14.0, 5.0, "Ensoleillé", "sun"),
        (7.0, 3.0, "Nuageux", "cloud"),
        (5.0, 1.0, "Couvert", "cloud"),
        (6.0, 2.0, "Nuageux", "cloud"),
    ),
}

DEFAULT_WEATHER_PRESET = "sunny-week"
DEFAULT_TARIFF_TYPE: TariffType = "tempo"
DEFAULT_TEMPO_PRESET = "tempo-spring"


def generate_pv_profile(daily_total_kwh: float) -> Tuple[float, ...]:
    """
    Bell-shaped hourly PV profile (kW) peaking at noon, summing to the daily total.
    """
    hours = np.arange(HOURS_PER_DAY, dtype=float)
    shape = np.exp(-((hours - PV_PEAK_HOUR) ** 2) / (2 * PV_SPREAD_HOURS**2))
    profile = shape * (daily_total_kwh / shape.sum())
    return tuple(float(value) for value in profile)


def generate_temperature_profile(avg_temp_c: float) -> Tuple[float, ...]:
    """
    Sinusoidal hourly ambient temperature (°C) around ``avg_temp_c``, ±4 °C.
    """
    return tuple(
        avg_temp_c + TEMP_HALF_SWING_C * math.sin((h - TEMP_MIN_HOUR) / HOURS_PER_DAY * 2 * math.pi)
        for h in range(HOURS_PER_DAY)
    )


def is_offpeak_hour(hour: int) -> bool:
    return hour >= 22 or hour < 6


def hourly_import_prices(
    tariff_type: TariffType,
    tempo_color: Optional[TempoColor] = None,
) -> Tuple[float, ...]:
    """
    24 hourly import prices (EUR/kWh) for one day.

    Raises:
        ValueError: For an unknown tariff type.
    """
    if tariff_type == "fixed":
        return (FIXED_PRICE,) * HOURS_PER_DAY
    if tariff_type == "tou":
        offpeak, peak = TOU_PRICES
    elif tariff_type == "tempo":
        offpeak, peak = TEMPO_PRICES[tempo_color or "BLUE"]
    else:
        raise ValueError(f"Unknown tariff type: {tariff_type!r}. Available: tempo, tou, fixed")
    return tuple(offpeak if is_offpeak_hour(h) else peak for h in range(HOURS_PER_DAY))


class DataProvider(ABC):
    """
    Source of seven-day forecasts. The simulation core never fetches by itself.
    """

    @abstractmethod
    def fetch_weekly_forecast(
        self,
        start_date: str,
        location: Optional[str] = None,
        tariff_type: Optional[TariffType] = None,
    ) -> WeeklyForecast:
        ...


class MockWeatherProvider:
    """
    Deterministic weekly weather presets (``sunny-week``, ``variable-week``,
    ``winter-week``). The preset id plays the role of the location.
    """

    presets: Sequence[str] = tuple(WEATHER_PRESETS)

    def fetch_weekly_weather(self, start_date: str, location: Optional[str] = None) -> List[DailyWeather]:
        preset_id = location or DEFAULT_WEATHER_PRESET
        preset = WEATHER_PRESETS.get(preset_id)
        if preset is None:
            raise ValueError(f"Unknown weather preset: {preset_id!r}. Available: {', '.join(WEATHER_PRESETS)}")
        dates = build_week_dates(start_date, len(preset))
        return [
            DailyWeather(
                day=day,
                date=dates[day],
                pv_profile_kw=generate_pv_profile(pv_total),
                ambient_temp_profile_c=generate_temperature_profile(avg_temp),
                description=description,
                icon=icon,
            )
            for day, (pv_total, avg_temp, description, icon) in enumerate(preset)
        ]


class MockTariffProvider:
    """
    Tempo / time-of-use / fixed tariffs with a constant export price.

    Args:
        tempo_preset: Colour sequence used for ``tempo`` weeks.
    """

    def __init__(self, tempo_preset: str = DEFAULT_TEMPO_PRESET) -> None:
        if tempo_preset not in TEMPO_PRESETS:
            raise ValueError(f"Unknown Tempo preset: {tempo_preset!r}. Available: {', '.join(TEMPO_PRESETS)}")
        self.tempo_preset = tempo_preset

    def fetch_weekly_tariff(self, start_date: str, tariff_type: TariffType = DEFAULT_TARIFF_TYPE) -> List[DailyTariff]:
        colors = TEMPO_PRESETS[self.tempo_preset]
        dates = build_week_dates(start_date, len(colors))
        week: List[DailyTariff] = []
        for day, date in enumerate(dates):
            color = colors[day] if tariff_type == "tempo" else None
            week.append(
                DailyTariff(
                    day=day,
                    date=date,
                    import_price_series=hourly_import_prices(tariff_type, color),
                    export_price_series=(EXPORT_PRICE,) * HOURS_PER_DAY,
                    tariff_type=tariff_type,
                    tempo_color=color,
                )
            )
        return week


class MockDataProvider(DataProvider):
    """
    Combines :class:`MockWeatherProvider` and :class:`MockTariffProvider`.

    Example:
        ```python
        forecast = MockDataProvider().fetch_weekly_forecast(
            "2025-03-17", location="variable-week", tariff_type="tou"
        )
        forecast.tariffs[0].peak_price  # 0.2068
        ```
    """

    def __init__(
        self,
        weather_provider: Optional[MockWeatherProvider] = None,
        tariff_provider: Optional[MockTariffProvider] = None,
    ) -> None:
        self.weather_provider = weather_provider or MockWeatherProvider()
        self.tariff_provider = tariff_provider or MockTariffProvider()

    def fetch_weekly_forecast(
        self,
        start_date: str,
        location: Optional[str] = None,
        tariff_type: Optional[TariffType] = None,
    ) -> WeeklyForecast:
        weather = self.weather_provider.fetch_weekly_weather(start_date, location)
        tariffs = self.tariff_provider.fetch_weekly_tariff(start_date, tariff_type or DEFAULT_TARIFF_TYPE)
        return WeeklyForecast(start_date=start_date, weather=tuple(weather), tariffs=tuple(tariffs))
