from __future__ import annotations

import pytest
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sim_home_energy.simulation.battery import Battery, BatterySpecs  # noqa: E402
from sim_home_energy.simulation.forecast import DailyTariff, DailyWeather, WeeklyForecast  # noqa: E402
from sim_home_energy.simulation.thermal_tank import ThermalTank, ThermalTankSpecs  # noqa: E402

DT_S = 900.0
STEPS_PER_DAY = 96


def make_battery(
    capacity_kwh: float = 10.0,
    p_max_kw: float = 3.0,
    soc_init_kwh: float = 5.0,
    soc_min_kwh: float = 0.0,
    id: str = "battery",
    **kwargs,
) -> Battery:
    specs = BatterySpecs(
        capacity_kwh=capacity_kwh,
        p_max_kw=p_max_kw,
        soc_init_kwh=soc_init_kwh,
        soc_min_kwh=soc_min_kwh,
        **kwargs,
    )
    return Battery(id, "Battery", specs)


def make_tank(
    volume_l: float = 200.0,
    heating_power_kw: float = 2.0,
    initial_temp_c: float = 45.0,
    target_temp_c: float = 55.0,
    id: str = "dhw",
    **kwargs,
) -> ThermalTank:
    specs = ThermalTankSpecs(
        volume_l=volume_l,
        heating_power_kw=heating_power_kw,
        initial_temp_c=initial_temp_c,
        target_temp_c=target_temp_c,
        **kwargs,
    )
    return ThermalTank(id, "Hot-water tank", specs)


def bell_pv_series(peak_kw: float = 4.0, n_steps: int = STEPS_PER_DAY) -> list[float]:
    """Triangular PV day between 07:00 and 19:00, peaking at noon."""
    series = []
    for i in range(n_steps):
        hour = i * 24.0 / n_steps
        series.append(max(0.0, peak_kw * (1.0 - abs(hour - 13.0) / 6.0)))
    return series


@pytest.fixture()
def battery_factory():
    """Return the battery builder so tests can pick their own specs."""
    return make_battery


@pytest.fixture()
def tank_factory():
    """Return the hot-water tank builder so tests can pick their own specs."""
    return make_tank


@pytest.fixture()
def sunny_pv_series() -> list[float]:
    return bell_pv_series()


@pytest.fixture()
def flat_load_series() -> list[float]:
    return [0.5] * STEPS_PER_DAY


@pytest.fixture()
def simple_scenario_data() -> dict:
    """Return a small scenario payload exercising every section."""
    return {
        "name": "test-home",
        "dt_s": 3600,
        "battery": {"capacity_kwh": 5.0, "p_max_kw": 2.0, "soc_init_kwh": 1.0},
        "tank": {
            "volume_l": 150.0,
            "heating_power_kw": 2.0,
            "initial_temp_c": 40.0,
            "draws": [{"hour": 7.0, "volume_l": 30.0}],
        },
        "strategy": "battery_first",
        "ecs_service": {"mode": "penalize", "penalty_per_kelvin": 0.1},
        "economics": {"investment_eur": 1000.0},
        "week": {
            "start_date": "2025-04-07",
            "weather_preset": "variable-week",
            "tariff_type": "tou",
        },
    }


def make_weekly_forecast(tempo_colors=None, pv_scale: float = 1.0) -> WeeklyForecast:
    """
    Synthetic week where PV at (day, hour) is ``pv_scale * (day * 100 + hour)``
    so samples can be traced back to their origin.
    """
    colors = tempo_colors or [None] * 7
    weather = tuple(
        DailyWeather(
            day=day,
            date=f"2025-01-{13 + day:02d}",
            pv_profile_kw=tuple(pv_scale * (day * 100 + hour) for hour in range(24)),
            ambient_temp_profile_c=tuple(10.0 + day for _ in range(24)),
        )
        for day in range(7)
    )
    tariffs = tuple(
        DailyTariff(
            day=day,
            date=f"2025-01-{13 + day:02d}",
            import_price_series=tuple(0.15 if hour < 6 else 0.25 for hour in range(24)),
            export_price_series=(0.1,) * 24,
            tariff_type="tempo" if colors[day] else "tou",
            tempo_color=colors[day],
        )
        for day in range(7)
    )
    return WeeklyForecast(start_date="2025-01-13", weather=weather, tariffs=tariffs)


@pytest.fixture()
def weekly_forecast() -> WeeklyForecast:
    return make_weekly_forecast()
