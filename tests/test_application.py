from __future__ import annotations

import json

import pandas as pd
import pytest
from pydantic import ValidationError

from sim_home_energy.application import SimulationApplication
from sim_home_energy.providers import MockDataProvider, MockTariffProvider
from sim_home_energy.scenario_setup import get_scenario_preset


def test_run_day_summary(simple_scenario_data: dict):
    """One day at hourly resolution with the scenario's forecast day 0."""
    app = SimulationApplication()
    summary = app.run_day(scenario_data=simple_scenario_data)

    assert summary["scenario"] == "test-home"
    assert summary["strategy"] == "battery_first"
    assert summary["date"] == "2025-04-07"
    assert summary["n_steps"] == 24
    assert summary["ecs_mode"] == "penalize"
    assert len(summary["ecs_temp_series_c"]) == 24
    assert len(summary["battery_soc_series_kwh"]) == 24
    assert summary["pv_production_kwh"] > 0
    assert summary["pv_production_kwh"] + summary["grid_import_kwh"] == pytest.approx(
        summary["consumption_kwh"] + summary["grid_export_kwh"] + summary["battery_delta_kwh"]
    )
    assert set(summary["flows_kwh"]) >= {"pv_to_load", "grid_to_ecs", "battery_to_load"}
    assert "tables" not in summary


def test_run_day_with_explicit_series(simple_scenario_data: dict):
    app = SimulationApplication()
    summary = app.run_day(
        scenario_data=simple_scenario_data,
        day=3,
        pv_series_kw=[0.0] * 24,
        base_load_series_kw=[1.0] * 24,
    )

    assert summary["date"] == "2025-04-10"
    assert summary["pv_production_kwh"] == 0.0
    assert summary["self_production"] <= 1.0


def test_run_day_from_json_path(tmp_path, simple_scenario_data: dict):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(simple_scenario_data), encoding="utf-8")

    summary = SimulationApplication().run_day(scenario_data=path)

    assert summary["scenario"] == "test-home"


def test_run_day_tables(simple_scenario_data: dict):
    app = SimulationApplication(include_tables=True)
    summary = app.run_day(scenario_data=simple_scenario_data)

    steps = summary["tables"]["steps"]
    flows = summary["tables"]["flows"]
    assert isinstance(steps, pd.DataFrame)
    assert len(steps) == 24
    assert len(flows) == 25
    assert "dhw_temp_c" in steps.columns


def test_run_week(simple_scenario_data: dict):
    app = SimulationApplication(include_tables=True)
    summary = app.run_week(scenario_data=simple_scenario_data)

    assert summary["strategy"] == "mpc_balanced"
    assert len(summary["days"]) == 7
    assert summary["days"][0]["date"] == "2025-04-07"
    assert summary["grid_import_kwh"] == pytest.approx(sum(day["grid_import_kwh"] for day in summary["days"]))
    assert list(summary["tables"]["days"].index) == list(range(7))


def test_compare_week(simple_scenario_data: dict):
    simple_scenario_data["week"]["baseline_strategy"] = "battery_first"
    app = SimulationApplication(include_tables=True)
    summary = app.compare_week(scenario_data=simple_scenario_data)

    assert summary["mpc"]["strategy"] == "mpc_balanced"
    assert summary["baseline"]["strategy"] == "battery_first"
    gains = summary["gains"]
    assert gains["cost_reduction_eur"] == pytest.approx(
        summary["baseline"]["net_cost_with_penalties_eur"] - summary["mpc"]["net_cost_with_penalties_eur"]
    )
    comparison = summary["tables"]["comparison"]
    assert list(comparison.columns) == ["mpc", "baseline", "delta"]


def test_runs_do_not_share_device_state(simple_scenario_data: dict):
    app = SimulationApplication()

    first = app.run_day(scenario_data=simple_scenario_data)
    second = app.run_day(scenario_data=simple_scenario_data)

    assert first["battery_soc_series_kwh"] == second["battery_soc_series_kwh"]
    assert first["net_cost_with_penalties_eur"] == second["net_cost_with_penalties_eur"]


def test_injected_provider_is_used(simple_scenario_data: dict):
    provider = MockDataProvider(tariff_provider=MockTariffProvider("tempo-summer"))
    simple_scenario_data["week"]["tariff_type"] = "tempo"
    app = SimulationApplication(data_provider=provider)

    forecast = app.fetch_forecast(scenario_data=simple_scenario_data)

    assert {tariff.tempo_color for tariff in forecast.tariffs} == {"BLUE"}


def test_invalid_strategy_raises(simple_scenario_data: dict):
    simple_scenario_data["strategy"] = "does-not-exist"
    with pytest.raises(ValidationError):
        SimulationApplication().run_day(scenario_data=simple_scenario_data)


def test_run_day_on_a_preset_uses_its_series():
    summary = SimulationApplication().run_day(scenario_data={"preset": "ev-evening", "dt_s": 900})

    series = get_scenario_preset("ev-evening").generate(900.0)
    assert summary["scenario"] == "ev-evening"
    assert summary["strategy"] == "ev_departure_guard"
    assert summary["n_steps"] == 96
    assert summary["pv_production_kwh"] == pytest.approx(series.pv_kw.sum() * 0.25)
