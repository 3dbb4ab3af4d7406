from __future__ import annotations

from dataclasses import replace

import pytest

from sim_home_energy.simulation.forecast import (
    DailyTariff,
    DailyWeather,
    Forecast,
    WeeklyForecast,
    build_forecast_horizon,
    resample_hourly_to_steps,
)

from conftest import make_weekly_forecast


def test_resample_interpolates_and_wraps_to_midnight() -> None:
    steps = resample_hourly_to_steps([0.0] * 23 + [4.0], 48)

    assert len(steps) == 48
    assert steps[46] == pytest.approx(4.0)
    assert steps[47] == pytest.approx(2.0)
    assert steps[45] == pytest.approx(2.0)
    assert steps[0] == pytest.approx(0.0)


def test_resample_keeps_hourly_samples_on_step_boundaries() -> None:
    hourly = [float(h) for h in range(24)]

    assert list(resample_hourly_to_steps(hourly, 24)) == hourly
    quarter = resample_hourly_to_steps(hourly, 96)
    assert [quarter[4 * h] for h in range(24)] == pytest.approx(hourly)
    assert quarter[1] == pytest.approx(0.25)


def test_resample_degenerate_inputs() -> None:
    assert len(resample_hourly_to_steps([], 10)) == 10
    assert len(resample_hourly_to_steps([1.0] * 24, 0)) == 0


def test_daily_aggregates(weekly_forecast) -> None:
    weather = weekly_forecast.weather[1]
    tariff = weekly_forecast.tariffs[1]

    assert weather.pv_total_kwh == pytest.approx(sum(100 + h for h in range(24)))
    assert weather.avg_ambient_temp_c == pytest.approx(11.0)
    assert tariff.peak_price == pytest.approx(0.25)
    assert tariff.offpeak_price == pytest.approx(0.15)


def test_weekly_forecast_requires_seven_full_days(weekly_forecast) -> None:
    with pytest.raises(ValueError):
        WeeklyForecast(
            start_date="2025-01-13",
            weather=weekly_forecast.weather[:6],
            tariffs=weekly_forecast.tariffs,
        )

    short_day = replace(weekly_forecast.weather[0], pv_profile_kw=(1.0,) * 23)
    with pytest.raises(ValueError):
        WeeklyForecast(
            start_date="2025-01-13",
            weather=(short_day,) + weekly_forecast.weather[1:],
            tariffs=weekly_forecast.tariffs,
        )

    bad_tariff = DailyTariff(day=0, date="2025-01-13", import_price_series=(0.2,) * 24, export_price_series=())
    with pytest.raises(ValueError):
        WeeklyForecast(
            start_date="2025-01-13",
            weather=weekly_forecast.weather,
            tariffs=(bad_tariff,) + weekly_forecast.tariffs[1:],
        )


def test_horizon_crosses_midnight(weekly_forecast) -> None:
    horizon = build_forecast_horizon(weekly_forecast, 0, 23)

    assert horizon.horizon_hours == 24
    assert len(horizon.pv_next_kw) == 24
    assert horizon.pv_next_kw[0] == 23.0
    assert horizon.pv_next_kw[1] == 100.0
    assert horizon.ambient_temp_next_c[:2] == (10.0, 11.0)
    assert horizon.import_prices_next[:2] == (0.25, 0.15)


def test_horizon_beyond_the_week_repeats_the_last_day(weekly_forecast) -> None:
    horizon = build_forecast_horizon(weekly_forecast, 6, 23, horizon_hours=3)

    assert horizon.pv_next_kw == (623.0, 600.0, 601.0)


def test_horizon_length_is_configurable() -> None:
    forecast = make_weekly_forecast(pv_scale=0.5)
    horizon = build_forecast_horizon(forecast, 2, 0, horizon_hours=48)

    assert len(horizon.pv_next_kw) == 48
    assert horizon.pv_next_kw[24] == pytest.approx(150.0)


def test_empty_forecast() -> None:
    empty = Forecast.empty()

    assert empty.horizon_hours == 0
    assert empty.pv_next_kw == ()


def test_weather_defaults() -> None:
    weather = DailyWeather(day=0, date="2025-01-13", pv_profile_kw=(), ambient_temp_profile_c=())

    assert weather.pv_total_kwh == 0.0
    assert weather.avg_ambient_temp_c == 0.0
    assert weather.description == ""
