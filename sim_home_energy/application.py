from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from .calendar_utils import steps_per_day
from .providers import DataProvider, MockDataProvider, MockTariffProvider
from .result_builder import ResultBuilder
from .scenario_setup import (
    ScenarioConfig,
    build_devices,
    build_economic_config,
    build_scenario_config,
    get_scenario_preset,
)
from .simulation import (
    MPC_STRATEGY_IDS,
    SimulationInput,
    SimulationResult,
    WeeklyForecast,
    WeeklySimulationInput,
    WeeklySimulationResult,
    compare_weekly_simulations,
    generate_base_load_series,
    resample_hourly_to_steps,
    resolve_mpc_strategy,
    resolve_strategy,
    run_simulation,
    run_weekly_simulation,
)

logger = logging.getLogger(__name__)

ScenarioData = Mapping[str, Any] | str | Path | None


def _day_summary(name: str, result: SimulationResult) -> Dict[str, Any]:
    """
    Flatten the totals and KPIs of a single run into plain floats.
    """
    totals = result.totals
    kpis = result.kpis
    economics = kpis.economics
    return {
        "scenario": name,
        "n_steps": len(result.steps),
        "ecs_mode": result.contract.mode,
        "pv_production_kwh": float(totals.pv_production_kwh),
        "consumption_kwh": float(totals.consumption_kwh),
        "grid_import_kwh": float(totals.grid_import_kwh),
        "grid_export_kwh": float(totals.grid_export_kwh),
        "battery_delta_kwh": float(totals.battery_delta_kwh),
        "ecs_rescue_kwh": float(totals.ecs_rescue_kwh),
        "flows_kwh": asdict(totals.flows),
        "self_consumption": float(kpis.self_consumption),
        "self_production": float(kpis.self_production),
        "battery_cycles": float(kpis.battery_cycles),
        "ecs_target_uptime": float(kpis.ecs_target_uptime),
        "ecs_hit_rate": float(kpis.ecs_hit_rate),
        "ecs_deficit_k": float(kpis.ecs_deficit_k),
        "ecs_penalty_eur": float(kpis.ecs_penalty_eur),
        "import_cost_eur": float(economics.import_cost),
        "export_revenue_eur": float(economics.export_revenue),
        "net_cost_eur": float(economics.net_cost),
        "net_cost_with_penalties_eur": float(economics.net_cost_with_penalties),
        "savings_eur": float(economics.savings),
        "payback_years": float(economics.payback_years),
        "ecs_temp_series_c": list(result.ecs_temp_series_c),
        "battery_soc_series_kwh": list(result.battery_soc_series_kwh),
    }


def _week_summary(name: str, strategy_id: str, result: WeeklySimulationResult) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"scenario": name, "strategy": strategy_id}
    summary.update({key: float(value) for key, value in asdict(result.weekly_kpis).items()})
    summary["days"] = [
        {
            "day": day.day,
            "date": day.date,
            "grid_import_kwh": float(day.simulation.totals.grid_import_kwh),
            "net_cost_with_penalties_eur": float(day.kpis.economics.net_cost_with_penalties),
            "ecs_hit_rate": float(day.kpis.ecs_hit_rate),
        }
        for day in result.days
    ]
    return summary


class SimulationApplication:
    """
    High-level entry point running scenarios end to end.

    Every run builds its own device set from the scenario, so consecutive
    calls (and the two legs of a comparison) never share battery or tank
    state.
    """

    def __init__(
        self,
        *,
        data_provider: Optional[DataProvider] = None,
        result_builder: Optional[ResultBuilder] = None,
        include_tables: bool = False,
    ) -> None:
        """
        Args:
            data_provider: Forecast source; a provider built from the
                scenario's Tempo preset is used when omitted.
            result_builder: Builds the pandas tables attached when
                ``include_tables`` is set.
            include_tables: Attach DataFrames under ``"tables"`` in summaries.
        """
        self.data_provider = data_provider
        self.result_builder = result_builder or ResultBuilder()
        self.include_tables = include_tables

    def _provider_for(self, config: ScenarioConfig) -> DataProvider:
        if self.data_provider is not None:
            return self.data_provider
        return MockDataProvider(tariff_provider=MockTariffProvider(config.week.tempo_preset))

    def fetch_forecast(self, *, scenario_data: ScenarioData = None) -> WeeklyForecast:
        config = build_scenario_config(scenario_data)
        return self._fetch_forecast(config)

    def _fetch_forecast(self, config: ScenarioConfig) -> WeeklyForecast:
        return self._provider_for(config).fetch_weekly_forecast(
            config.week.start_date,
            location=config.week.weather_preset,
            tariff_type=config.week.tariff_type,
        )

    def run_day(
        self,
        *,
        scenario_data: ScenarioData = None,
        day: int = 0,
        pv_series_kw: Optional[Sequence[float]] = None,
        base_load_series_kw: Optional[Sequence[float]] = None,
    ) -> Dict[str, Any]:
        """
        Run the scenario's reactive strategy over one day.

        Weather and tariffs come from day ``day`` of the scenario's weekly
        forecast. A preset scenario runs on the preset's own PV, base load
        and, when it has one, import tariff. Explicit PV and base-load series
        replace both.

        Args:
            scenario_data: Mapping, JSON path, or None for the default scenario.
            day: Day of the forecast week (0-6).
            pv_series_kw: Optional PV series at ``dt_s`` resolution.
            base_load_series_kw: Optional base-load series at ``dt_s`` resolution.

        Returns:
            Summary dictionary of totals, KPIs and series.
        """
        config = build_scenario_config(scenario_data)
        forecast = self._fetch_forecast(config)
        weather = forecast.weather[day]
        tariff = forecast.tariffs[day]
        n_steps = steps_per_day(config.dt_s)

        pv = resample_hourly_to_steps(weather.pv_profile_kw, n_steps)
        base_load = generate_base_load_series(config.dt_s, config.week.base_load_profile)
        import_prices = resample_hourly_to_steps(tariff.import_price_series, n_steps)
        if config.preset is not None:
            series = get_scenario_preset(config.preset).generate(config.dt_s)
            pv, base_load = series.pv_kw, series.base_load_kw
            if series.import_prices_eur_per_kwh is not None:
                import_prices = series.import_prices_eur_per_kwh
        if pv_series_kw is not None:
            pv = pv_series_kw
        if base_load_series_kw is not None:
            base_load = base_load_series_kw

        logger.debug("Running day %d of scenario %s with strategy %s", day, config.name, config.strategy)
        result = run_simulation(
            SimulationInput(
                dt_s=config.dt_s,
                pv_series_kw=pv,
                base_load_series_kw=base_load,
                devices=build_devices(config),
                strategy=resolve_strategy(config.strategy, config.threshold_percent),
                ambient_temp_c=resample_hourly_to_steps(weather.ambient_temp_profile_c, n_steps),
                import_prices_eur_per_kwh=import_prices,
                export_prices_eur_per_kwh=resample_hourly_to_steps(tariff.export_price_series, n_steps),
                ecs_service=config.ecs_service,
                economic_config=build_economic_config(config),
            )
        )
        summary = _day_summary(config.name, result)
        summary["strategy"] = config.strategy
        summary["date"] = weather.date
        if self.include_tables:
            summary["tables"] = {
                "steps": self.result_builder.steps_frame(result),
                "flows": self.result_builder.flows_frame(result),
            }
        return summary

    def _run_week(self, config: ScenarioConfig, forecast: WeeklyForecast, strategy_id: str) -> WeeklySimulationResult:
        if strategy_id in MPC_STRATEGY_IDS:
            strategy = resolve_mpc_strategy(strategy_id)
        else:
            strategy = resolve_strategy(strategy_id, config.threshold_percent)
        return run_weekly_simulation(
            WeeklySimulationInput(
                dt_s=config.dt_s,
                forecast=forecast,
                devices=build_devices(config),
                mpc_strategy=strategy,
                base_load_profile=config.week.base_load_profile,
                ecs_service=config.ecs_service,
                economic_config=build_economic_config(config),
            )
        )

    def run_week(self, *, scenario_data: ScenarioData = None) -> Dict[str, Any]:
        """
        Run the scenario's MPC strategy over its seven-day forecast.

        Returns:
            Weekly KPIs plus a short per-day breakdown.
        """
        config = build_scenario_config(scenario_data)
        forecast = self._fetch_forecast(config)
        result = self._run_week(config, forecast, config.week.mpc_strategy)
        summary = _week_summary(config.name, config.week.mpc_strategy, result)
        if self.include_tables:
            summary["tables"] = {"days": self.result_builder.weekly_days_frame(result)}
        return summary

    def compare_week(self, *, scenario_data: ScenarioData = None) -> Dict[str, Any]:
        """
        Run the MPC strategy and the reactive baseline on the same forecast.

        Both legs start from freshly built devices.

        Returns:
            Both weekly summaries and the gains of the MPC leg.
        """
        config = build_scenario_config(scenario_data)
        forecast = self._fetch_forecast(config)
        mpc = self._run_week(config, forecast, config.week.mpc_strategy)
        baseline = self._run_week(config, forecast, config.week.baseline_strategy)
        comparison = compare_weekly_simulations(mpc, baseline)
        summary = {
            "scenario": config.name,
            "mpc": _week_summary(config.name, config.week.mpc_strategy, mpc),
            "baseline": _week_summary(config.name, config.week.baseline_strategy, baseline),
            "gains": {key: float(value) for key, value in asdict(comparison.gains).items()},
        }
        if self.include_tables:
            summary["tables"] = {
                "comparison": self.result_builder.comparison_frame(comparison),
                "mpc_days": self.result_builder.weekly_days_frame(mpc),
                "baseline_days": self.result_builder.weekly_days_frame(baseline),
            }
        return summary
