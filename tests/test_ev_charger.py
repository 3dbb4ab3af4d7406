from __future__ import annotations

import math

import pytest

from sim_home_energy.simulation.devices import NEED_TO_LOAD, VEHICLE_CHARGER, Device, EnvContext, has_capability
from sim_home_energy.simulation.ev_charger import EVChargeSession, EVCharger, EVChargerSpecs

HOUR = 3600.0


def _charger(arrival=18.0, departure=7.0, need_kwh=22.0, max_power_kw=7.4) -> EVCharger:
    session = EVChargeSession(arrival_hour=arrival, departure_hour=departure, energy_need_kwh=need_kwh)
    return EVCharger("ev", "EV charger", EVChargerSpecs(max_power_kw=max_power_kw, session=session))


def _env(hour: float) -> EnvContext:
    return EnvContext(pv_kw=0.0, base_load_kw=0.0, time_s=hour * HOUR)


def test_charger_satisfies_protocol() -> None:
    charger = _charger()
    assert isinstance(charger, Device)
    assert has_capability(charger, VEHICLE_CHARGER)


@pytest.mark.parametrize(
    ("arrival", "departure", "need", "expected_h"),
    [
        (18.0, 7.0, 22.0, 13.0),
        (9.0, 17.0, 10.0, 8.0),
        (8.0, 8.0, 10.0, 24.0),
        (18.0, 7.0, 0.0, 0.0),
        (42.0, -17.0, 5.0, 13.0),
    ],
)
def test_session_duration(arrival, departure, need, expected_h) -> None:
    charger = _charger(arrival=arrival, departure=departure, need_kwh=need)
    assert charger.session_duration_s == pytest.approx(expected_h * HOUR)


def test_no_request_outside_the_session() -> None:
    assert _charger().plan(900.0, _env(12.0)).request is None


def test_request_at_arrival() -> None:
    request = _charger().plan(900.0, _env(18.0)).request

    assert request.need == NEED_TO_LOAD
    assert request.max_accept_kw == pytest.approx(7.4)
    # 22 kWh over 13 h is 1.69 kW, 23 % of the charger rating
    assert request.priority_hint == 71


def test_request_turns_urgent_in_the_last_hour() -> None:
    request = _charger().plan(900.0, _env(6.5)).request

    assert request.priority_hint == 100
    assert request.max_accept_kw == pytest.approx(7.4)


def test_request_limited_by_remaining_energy() -> None:
    request = _charger(need_kwh=1.0).plan(900.0, _env(18.0)).request
    assert request.max_accept_kw == pytest.approx(4.0)


def test_apply_delivers_energy_and_reports_state() -> None:
    charger = _charger()
    charger.apply(7.4, HOUR, _env(18.0))

    state = charger.state()
    assert state["charging"] is True
    assert state["charging_power_kw"] == pytest.approx(7.4)
    assert state["energy_remaining_kwh"] == pytest.approx(22.0 - 7.4)
    assert state["session_active"] is True
    assert state["session_time_remaining_h"] == pytest.approx(12.0)
    assert state["session_time_to_start_h"] == 0.0
    assert state["session_duration_h"] == pytest.approx(13.0)
    assert state["session_max_power_kw"] == pytest.approx(7.4)


def test_apply_clamps_power() -> None:
    charger = _charger(need_kwh=2.0)
    charger.apply(-3.0, HOUR, _env(18.0))
    assert charger.last_power_kw == 0.0

    charger.apply(20.0, HOUR, _env(19.0))
    assert charger.last_power_kw == pytest.approx(2.0)
    state = charger.state()
    assert state["energy_remaining_kwh"] == 0.0
    assert state["session_active"] is False
    assert state["session_time_to_start_h"] == 0.0
    assert charger.plan(900.0, _env(20.0)).request is None


def test_new_session_resets_delivered_energy() -> None:
    charger = _charger(need_kwh=2.0)
    charger.apply(2.0, HOUR, _env(18.0))
    assert charger.plan(900.0, _env(19.0)).request is None

    request = charger.plan(900.0, _env(24.0 + 18.0)).request
    assert request is not None
    assert request.max_accept_kw == pytest.approx(7.4)


def test_idle_charger_reports_time_to_arrival() -> None:
    state = _charger(arrival=8.0, departure=17.0).state()

    assert state["session_active"] is False
    assert state["session_time_to_start_h"] == pytest.approx(8.0)
    assert state["charging"] is False


def test_charger_without_need_never_starts() -> None:
    charger = _charger(need_kwh=0.0)

    assert charger.plan(900.0, _env(18.0)).request is None
    assert math.isinf(charger.state()["session_time_to_start_h"])


def test_run_restarting_at_midnight_keeps_the_overnight_session() -> None:
    charger = _charger(need_kwh=10.0)
    charger.apply(7.4, 900.0, _env(23.75))
    delivered = 7.4 * 0.25

    assert charger.state()["energy_remaining_kwh"] == pytest.approx(10.0 - delivered)
    request = charger.plan(900.0, _env(0.0)).request
    assert request.max_accept_kw == pytest.approx(7.4)

    charger.apply(7.4, 900.0, _env(0.0))
    assert charger.state()["energy_remaining_kwh"] == pytest.approx(10.0 - 2 * delivered)
    assert charger.state()["session_time_remaining_h"] == pytest.approx(6.75)
