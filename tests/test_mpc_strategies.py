from __future__ import annotations

import logging

import pytest

from sim_home_energy.simulation.devices import EnvContext
from sim_home_energy.simulation.forecast import Forecast
from sim_home_energy.simulation.mpc_strategies import (
    MPC_STRATEGY_IDS,
    MPCStrategyContext,
    current_hour,
    estimate_tomorrow_pv,
    mpc_balanced_strategy,
    mpc_cloudy_tomorrow_strategy,
    mpc_sunny_tomorrow_strategy,
    mpc_tempo_red_guard_strategy,
    mpc_to_reactive,
    resolve_mpc_strategy,
)
from sim_home_energy.simulation.strategies import RequestAnnotations, StrategyContext, StrategyRequest

from conftest import make_battery, make_tank


def _flat_forecast(horizon_hours: int, pv_kw: float = 1.0) -> Forecast:
    return Forecast(
        horizon_hours=horizon_hours,
        pv_next_kw=(pv_kw,) * horizon_hours,
        import_prices_next=(0.2,) * horizon_hours,
        export_prices_next=(0.1,) * horizon_hours,
        ambient_temp_next_c=(15.0,) * horizon_hours,
    )


def _requests(soc_init_kwh: float = 5.0):
    battery = make_battery(capacity_kwh=10.0, p_max_kw=3.0, soc_init_kwh=soc_init_kwh)
    tank = make_tank(heating_power_kw=2.0)
    env = EnvContext(pv_kw=10.0, base_load_kw=0.0)
    return [
        StrategyRequest(device=battery, request=battery.plan(900.0, env).request, state=battery.state()),
        StrategyRequest(device=tank, request=tank.plan(900.0, env).request, state=tank.state()),
    ]


def _context(surplus_kw: float = 2.5, soc_init_kwh: float = 5.0, **kwargs) -> MPCStrategyContext:
    return MPCStrategyContext(surplus_kw=surplus_kw, requests=_requests(soc_init_kwh), dt_s=900.0, **kwargs)


def _granted(allocations):
    return {allocation.device_id: allocation.power_kw for allocation in allocations}


BATTERY_FIRST = {"battery": 2.5}
DHW_FIRST = {"dhw": 2.0, "battery": 0.5}


def test_current_hour() -> None:
    assert current_hour(0.0) == 0
    assert current_hour(13.5 * 3600.0) == 13
    assert current_hour(86400.0 + 3600.0) == 1


@pytest.mark.parametrize(
    ("horizon_hours", "hour", "expected"),
    [
        (24, 0, 0.0),
        (24, 10, 10.0),
        (48, 0, 24.0),
        (48, 10, 24.0),
        (72, 0, 24.0),
        (0, 0, 0.0),
    ],
)
def test_estimate_tomorrow_pv_window(horizon_hours, hour, expected) -> None:
    assert estimate_tomorrow_pv(_flat_forecast(horizon_hours), hour) == pytest.approx(expected)


def test_sunny_tomorrow_heats_water_first() -> None:
    sunny = mpc_sunny_tomorrow_strategy(_context(forecast=_flat_forecast(48)))
    dull = mpc_sunny_tomorrow_strategy(_context(forecast=_flat_forecast(48, pv_kw=0.5)))

    assert _granted(sunny) == pytest.approx(DHW_FIRST)
    assert _granted(dull) == pytest.approx(BATTERY_FIRST)


def test_cloudy_tomorrow_fills_battery_until_eighty_percent() -> None:
    low_soc = mpc_cloudy_tomorrow_strategy(_context())
    high_soc = mpc_cloudy_tomorrow_strategy(_context(soc_init_kwh=9.0))

    assert _granted(low_soc) == pytest.approx(BATTERY_FIRST)
    assert _granted(high_soc) == pytest.approx(DHW_FIRST)


def test_tempo_red_guard() -> None:
    before_red = mpc_tempo_red_guard_strategy(_context(tempo_color_tomorrow="RED"))
    before_red_full = mpc_tempo_red_guard_strategy(_context(soc_init_kwh=9.5, tempo_color_tomorrow="RED"))
    on_red = mpc_tempo_red_guard_strategy(_context(tempo_color="RED"))
    ordinary = mpc_tempo_red_guard_strategy(_context(tempo_color="BLUE", tempo_color_tomorrow="WHITE"))

    assert _granted(before_red) == pytest.approx(BATTERY_FIRST)
    assert list(_granted(before_red_full)) == ["dhw", "battery"]
    assert _granted(on_red) == pytest.approx(DHW_FIRST)
    assert _granted(ordinary) == pytest.approx(DHW_FIRST)


def test_battery_only_order_still_lets_urgent_tank_through() -> None:
    battery_request, tank_request = _requests()
    urgent = StrategyRequest(
        device=tank_request.device,
        request=tank_request.request,
        state=tank_request.state,
        annotations=RequestAnnotations(deadline_urgent=True),
    )
    context = MPCStrategyContext(
        surplus_kw=2.5,
        requests=[battery_request, urgent],
        tempo_color_tomorrow="RED",
    )

    assert _granted(mpc_tempo_red_guard_strategy(context)) == pytest.approx(DHW_FIRST)


@pytest.mark.parametrize(
    ("kwargs", "soc_init_kwh", "expected"),
    [
        ({"tempo_color_tomorrow": "RED", "forecast": _flat_forecast(48)}, 5.0, BATTERY_FIRST),
        ({"tempo_color": "RED"}, 5.0, DHW_FIRST),
        ({"forecast": _flat_forecast(48)}, 5.0, DHW_FIRST),
        ({}, 5.0, BATTERY_FIRST),
        ({}, 8.0, DHW_FIRST),
        ({"forecast": _flat_forecast(48, pv_kw=0.5)}, 5.0, DHW_FIRST),
    ],
    ids=["red-tomorrow", "red-today", "sunny", "cloudy-low-soc", "cloudy-high-soc", "in-between"],
)
def test_balanced_strategy_branches(kwargs, soc_init_kwh, expected) -> None:
    allocations = mpc_balanced_strategy(_context(soc_init_kwh=soc_init_kwh, **kwargs))

    assert _granted(allocations) == pytest.approx(expected)


def test_no_battery_counts_as_full() -> None:
    tank = make_tank()
    env = EnvContext(pv_kw=10.0, base_load_kw=0.0)
    context = MPCStrategyContext(
        surplus_kw=3.0,
        requests=[StrategyRequest(device=tank, request=tank.plan(900.0, env).request, state=tank.state())],
        tempo_color_tomorrow="RED",
    )

    assert _granted(mpc_balanced_strategy(context)) == pytest.approx({"dhw": 2.0})


def test_resolve_mpc_strategy(caplog) -> None:
    assert MPC_STRATEGY_IDS == ("mpc_sunny_tomorrow", "mpc_cloudy_tomorrow", "mpc_tempo_red_guard", "mpc_balanced")
    assert resolve_mpc_strategy("mpc_sunny_tomorrow") is mpc_sunny_tomorrow_strategy

    with caplog.at_level(logging.WARNING):
        strategy = resolve_mpc_strategy("crystal_ball")

    assert strategy is mpc_balanced_strategy
    assert "crystal_ball" in caplog.text


def test_mpc_to_reactive_runs_with_empty_forecast() -> None:
    seen = []

    def recorder(context: MPCStrategyContext):
        seen.append(context)
        return mpc_balanced_strategy(context)

    reactive = mpc_to_reactive(recorder)
    allocations = reactive(StrategyContext(surplus_kw=2.5, requests=_requests(), time_s=3600.0, dt_s=900.0))

    assert _granted(allocations) == pytest.approx(BATTERY_FIRST)
    assert seen[0].forecast.horizon_hours == 0
    assert seen[0].tempo_color is None
    assert seen[0].time_s == 3600.0
