from __future__ import annotations

import logging

import pytest

from sim_home_energy.simulation.devices import NEED_TO_LOAD, EnvContext, PowerRequest
from sim_home_energy.simulation.ev_charger import EVChargeSession, EVCharger, EVChargerSpecs
from sim_home_energy.simulation.pool_pump import PoolPump, PoolPumpSpecs
from sim_home_energy.simulation.strategies import (
    STRATEGY_IDS,
    RequestAnnotations,
    StrategyContext,
    StrategyRequest,
    battery_first_strategy,
    ecs_first_strategy,
    ev_departure_guard_strategy,
    mix_soc_threshold_strategy,
    multi_equipment_priority_strategy,
    reserve_evening_strategy,
    resolve_strategy,
)


def _requests(battery, tank, surplus_kw: float = 10.0):
    env = EnvContext(pv_kw=surplus_kw, base_load_kw=0.0)
    battery_plan = battery.plan(900.0, env)
    tank_plan = tank.plan(900.0, env)
    return [
        StrategyRequest(device=battery, request=battery_plan.request, state=battery.state()),
        StrategyRequest(device=tank, request=tank_plan.request, state=tank.state()),
    ]


def _granted(allocations):
    return {allocation.device_id: allocation.power_kw for allocation in allocations}


def test_ecs_first_serves_tank_before_battery(battery_factory, tank_factory) -> None:
    requests = _requests(battery_factory(p_max_kw=3.0), tank_factory(heating_power_kw=2.0))
    allocations = ecs_first_strategy(StrategyContext(surplus_kw=3.0, requests=requests))

    assert _granted(allocations) == pytest.approx({"dhw": 2.0, "battery": 1.0})
    assert [a.device_id for a in allocations] == ["dhw", "battery"]


def test_battery_first_serves_battery_before_tank(battery_factory, tank_factory) -> None:
    requests = _requests(battery_factory(p_max_kw=3.0), tank_factory(heating_power_kw=2.0))
    allocations = battery_first_strategy(StrategyContext(surplus_kw=4.0, requests=requests))

    assert _granted(allocations) == pytest.approx({"battery": 3.0, "dhw": 1.0})


def test_strategies_only_return_positive_grants(battery_factory, tank_factory) -> None:
    requests = _requests(battery_factory(), tank_factory())

    assert ecs_first_strategy(StrategyContext(surplus_kw=0.0, requests=requests)) == []
    assert battery_first_strategy(StrategyContext(surplus_kw=-2.0, requests=requests)) == []


def test_urgent_deadline_request_beats_strategy_tier(battery_factory, tank_factory) -> None:
    battery_request, tank_request = _requests(battery_factory(p_max_kw=3.0), tank_factory(heating_power_kw=2.0))
    urgent_tank = StrategyRequest(
        device=tank_request.device,
        request=tank_request.request,
        state=tank_request.state,
        annotations=RequestAnnotations(deadline_urgent=True, deadline_priority=0),
    )
    allocations = battery_first_strategy(StrategyContext(surplus_kw=2.5, requests=[battery_request, urgent_tank]))

    assert _granted(allocations) == pytest.approx({"dhw": 2.0, "battery": 0.5})


def test_equal_tier_ties_break_on_device_id(battery_factory) -> None:
    first = battery_factory(id="a-battery", p_max_kw=2.0)
    second = battery_factory(id="b-battery", p_max_kw=2.0)
    env = EnvContext(pv_kw=5.0, base_load_kw=0.0)
    requests = [
        StrategyRequest(device=second, request=second.plan(900.0, env).request, state=second.state()),
        StrategyRequest(device=first, request=first.plan(900.0, env).request, state=first.state()),
    ]
    allocations = battery_first_strategy(StrategyContext(surplus_kw=3.0, requests=requests))

    assert _granted(allocations) == pytest.approx({"a-battery": 2.0, "b-battery": 1.0})


def test_mix_soc_threshold_switches_on_battery_soc(battery_factory, tank_factory) -> None:
    strategy = mix_soc_threshold_strategy(50.0)

    low = _requests(battery_factory(soc_init_kwh=2.0), tank_factory())
    assert [a.device_id for a in strategy(StrategyContext(surplus_kw=1.0, requests=low))] == ["battery"]

    high = _requests(battery_factory(soc_init_kwh=8.0), tank_factory())
    assert [a.device_id for a in strategy(StrategyContext(surplus_kw=1.0, requests=high))] == ["dhw"]


def test_reserve_evening_builds_reserve_before_evening(battery_factory, tank_factory) -> None:
    requests = _requests(battery_factory(soc_init_kwh=2.0), tank_factory())

    morning = reserve_evening_strategy(StrategyContext(surplus_kw=1.0, requests=requests, time_s=10 * 3600.0))
    evening = reserve_evening_strategy(StrategyContext(surplus_kw=1.0, requests=requests, time_s=19 * 3600.0))

    assert [a.device_id for a in morning] == ["battery"]
    assert [a.device_id for a in evening] == ["dhw"]


def test_no_control_strategies_allocate_nothing(battery_factory, tank_factory) -> None:
    requests = _requests(battery_factory(), tank_factory())
    for strategy_id in ("no_control_offpeak", "no_control_hysteresis"):
        assert resolve_strategy(strategy_id)(StrategyContext(surplus_kw=5.0, requests=requests)) == []


def test_resolve_strategy_knows_every_id() -> None:
    assert set(STRATEGY_IDS) == {
        "ecs_first",
        "ecs_hysteresis",
        "deadline_helper",
        "battery_first",
        "mix_soc_threshold",
        "reserve_evening",
        "ev_departure_guard",
        "multi_equipment_priority",
        "no_control_offpeak",
        "no_control_hysteresis",
    }
    for strategy_id in STRATEGY_IDS:
        assert callable(resolve_strategy(strategy_id))


def test_unknown_strategy_falls_back_to_ecs_first(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        strategy = resolve_strategy("does-not-exist")

    assert strategy is ecs_first_strategy
    assert "does-not-exist" in caplog.text


def test_threshold_is_clamped(battery_factory, tank_factory) -> None:
    requests = _requests(battery_factory(soc_init_kwh=9.9), tank_factory())
    allocations = resolve_strategy("mix_soc_threshold", 250.0)(StrategyContext(surplus_kw=1.0, requests=requests))

    assert allocations[0].device_id == "battery"


def _vehicle_request(state: dict, max_accept_kw: float = 7.0, id: str = "ev") -> StrategyRequest:
    session = EVChargeSession(arrival_hour=18.0, departure_hour=7.0, energy_need_kwh=20.0)
    charger = EVCharger(id, "EV charger", EVChargerSpecs(max_power_kw=max_accept_kw, session=session))
    return StrategyRequest(
        device=charger,
        request=PowerRequest(max_accept_kw=max_accept_kw, need=NEED_TO_LOAD, priority_hint=70.0),
        state=state,
    )


def _pump_request(state: dict, id: str = "pool") -> StrategyRequest:
    pump = PoolPump(id, "Pool pump", PoolPumpSpecs(power_kw=1.2, min_hours_per_day=6.0))
    return StrategyRequest(
        device=pump,
        request=PowerRequest(max_accept_kw=1.2, need=NEED_TO_LOAD, priority_hint=20.0),
        state=state,
    )


def _session(time_remaining_h: float, energy_remaining_kwh: float = 5.0) -> dict:
    return {
        "session_active": True,
        "session_time_remaining_h": time_remaining_h,
        "energy_remaining_kwh": energy_remaining_kwh,
        "session_time_to_start_h": 0.0,
    }


def test_ev_guard_serves_urgent_vehicle_first(battery_factory, tank_factory) -> None:
    battery_request, _ = _requests(battery_factory(), tank_factory(), surplus_kw=8.0)
    requests = [battery_request, _vehicle_request(_session(time_remaining_h=1.0))]
    allocations = ev_departure_guard_strategy(StrategyContext(surplus_kw=8.0, requests=requests, time_s=6 * 3600.0))

    assert [a.device_id for a in allocations] == ["ev", "battery"]
    assert _granted(allocations) == pytest.approx({"ev": 7.0, "battery": 1.0})


def test_ev_guard_keeps_battery_reserve_for_relaxed_session(battery_factory, tank_factory) -> None:
    battery_request, _ = _requests(battery_factory(), tank_factory(), surplus_kw=4.0)
    requests = [battery_request, _vehicle_request(_session(time_remaining_h=10.0))]
    allocations = ev_departure_guard_strategy(StrategyContext(surplus_kw=4.0, requests=requests, time_s=20 * 3600.0))

    assert _granted(allocations) == pytest.approx({"battery": 3.0, "ev": 1.0})


def test_ev_guard_charges_vehicle_once_reserve_is_full(battery_factory, tank_factory) -> None:
    battery_request, tank_request = _requests(battery_factory(soc_init_kwh=8.0), tank_factory(), surplus_kw=8.0)
    requests = [battery_request, tank_request, _vehicle_request(_session(time_remaining_h=10.0))]
    allocations = ev_departure_guard_strategy(StrategyContext(surplus_kw=8.0, requests=requests, time_s=12 * 3600.0))

    assert [a.device_id for a in allocations] == ["ev", "dhw"]
    assert _granted(allocations) == pytest.approx({"ev": 7.0, "dhw": 1.0})


def test_multi_equipment_serving_order(battery_factory, tank_factory) -> None:
    battery_request, tank_request = _requests(battery_factory(), tank_factory(), surplus_kw=20.0)
    requests = [
        battery_request,
        _pump_request({"running": False, "hours_remaining": 2.0}, id="pool-a"),
        _pump_request({"running": True, "hours_remaining": 4.0}, id="pool-b"),
        _vehicle_request(_session(time_remaining_h=8.0, energy_remaining_kwh=2.0), id="ev-relaxed"),
        _vehicle_request(_session(time_remaining_h=1.0), id="ev-leaving"),
        tank_request,
    ]
    allocations = multi_equipment_priority_strategy(StrategyContext(surplus_kw=20.0, requests=requests))

    assert [a.device_id for a in allocations] == ["dhw", "ev-leaving", "ev-relaxed", "pool-b", "pool-a", "battery"]


@pytest.mark.parametrize(
    ("state", "ahead_of_relaxed"),
    [
        (_session(time_remaining_h=1.0), True),
        (_session(time_remaining_h=3.0, energy_remaining_kwh=18.0), True),
        (_session(time_remaining_h=8.0, energy_remaining_kwh=2.0), False),
    ],
)
def test_multi_equipment_ranks_vehicles_by_departure_pressure(state, ahead_of_relaxed) -> None:
    relaxed = _vehicle_request(_session(time_remaining_h=8.0, energy_remaining_kwh=2.0), id="a-relaxed")
    candidate = _vehicle_request(state, id="b-candidate")
    allocations = multi_equipment_priority_strategy(StrategyContext(surplus_kw=20.0, requests=[relaxed, candidate]))

    assert (allocations[0].device_id == "b-candidate") is ahead_of_relaxed


def test_pending_arrival_waits_behind_running_pump() -> None:
    arriving = _vehicle_request({"session_active": False, "session_time_to_start_h": 3.0})
    running_pump = _pump_request({"running": True, "hours_remaining": 1.0})
    allocations = multi_equipment_priority_strategy(
        StrategyContext(surplus_kw=1.0, requests=[arriving, running_pump])
    )

    assert _granted(allocations) == pytest.approx({"pool": 1.0})


@pytest.mark.parametrize("strategy_id", STRATEGY_IDS)
def test_strategies_leave_requests_untouched(strategy_id, battery_factory, tank_factory) -> None:
    battery_request, tank_request = _requests(battery_factory(), tank_factory(), surplus_kw=6.0)
    requests = (
        battery_request,
        tank_request,
        _vehicle_request(_session(time_remaining_h=2.0)),
        _pump_request({"running": True, "hours_remaining": 1.0}),
    )
    before = [(r.device, r.request, dict(r.state), r.annotations) for r in requests]
    device_states = [r.device.state() for r in requests]

    resolve_strategy(strategy_id, 40.0)(StrategyContext(surplus_kw=6.0, requests=requests, time_s=10 * 3600.0))

    assert [(r.device, r.request, dict(r.state), r.annotations) for r in requests] == before
    assert [r.device.state() for r in requests] == device_states
