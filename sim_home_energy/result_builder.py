from __future__ import annotations

from dataclasses import asdict, fields
from typing import Any, Dict, List

import pandas as pd

from .calendar_utils import SECONDS_PER_HOUR
from .simulation import FlowRecord, SimulationResult, WeeklyComparison, WeeklySimulationResult

FLOW_COLUMNS = [f.name for f in fields(FlowRecord)]


def _step_rows(result: SimulationResult) -> List[Dict[str, Any]]:
    """
    One flat row per step, with per-device power and state columns.
    """
    rows = []
    temps = result.ecs_temp_series_c
    for index, step in enumerate(result.steps):
        row: Dict[str, Any] = {
            "time_s": step.time_s,
            "hour": step.time_s / SECONDS_PER_HOUR,
            "pv_kw": step.pv_kw,
            "base_load_kw": step.base_load_kw,
            "consumption_kw": step.consumption_kw,
            "pv_used_on_site_kw": step.pv_used_on_site_kw,
            "grid_import_kw": step.grid_import_kw,
            "grid_export_kw": step.grid_export_kw,
            "battery_net_kw": step.battery_net_kw,
            "forced_ecs_kw": step.forced_ecs_kw,
            "ecs_temp_c": temps[index] if temps else None,
            "total_soc_kwh": result.battery_soc_series_kwh[index],
        }
        for device in step.devices:
            row[f"{device.device_id}_power_kw"] = device.power_kw
            for key, value in device.state.items():
                row[f"{device.device_id}_{key}"] = value
        rows.append(row)
    return rows


class ResultBuilder:
    """
    Tabular (pandas) views of simulation results.

    Nothing is written to disk; callers decide what to do with the frames.
    """

    def steps_frame(self, result: SimulationResult) -> pd.DataFrame:
        """
        Step-by-step powers, prices, tank temperature and battery SOC.

        Args:
            result: Single-run result.

        Returns:
            DataFrame indexed by step number.
        """
        df = pd.DataFrame(_step_rows(result))
        if df.empty:
            return df
        df["import_price_eur_per_kwh"] = list(result.import_prices_eur_per_kwh)
        df["export_price_eur_per_kwh"] = list(result.export_prices_eur_per_kwh)
        df.index.name = "step"
        return df

    def flows_frame(self, result: SimulationResult) -> pd.DataFrame:
        """
        The eight directed flows (kW) per step, plus a ``total_kwh`` row.
        """
        df = pd.DataFrame([asdict(flow) for flow in result.flows], columns=FLOW_COLUMNS)
        df.index.name = "step"
        totals = pd.DataFrame([asdict(result.totals.flows)], columns=FLOW_COLUMNS, index=["total_kwh"])
        return pd.concat([df, totals])

    def weekly_days_frame(self, weekly: WeeklySimulationResult) -> pd.DataFrame:
        """
        One row per simulated day with energy totals and cost/comfort KPIs.
        """
        rows = []
        for day in weekly.days:
            totals = day.simulation.totals
            economics = day.kpis.economics
            tariff = weekly.forecast.tariffs[day.day]
            rows.append(
                {
                    "day": day.day,
                    "date": day.date,
                    "tempo_color": tariff.tempo_color,
                    "pv_production_kwh": totals.pv_production_kwh,
                    "consumption_kwh": totals.consumption_kwh,
                    "grid_import_kwh": totals.grid_import_kwh,
                    "grid_export_kwh": totals.grid_export_kwh,
                    "self_consumption": day.kpis.self_consumption,
                    "self_production": day.kpis.self_production,
                    "import_cost_eur": economics.import_cost,
                    "export_revenue_eur": economics.export_revenue,
                    "net_cost_with_penalties_eur": economics.net_cost_with_penalties,
                    "ecs_hit_rate": day.kpis.ecs_hit_rate,
                    "ecs_rescue_kwh": totals.ecs_rescue_kwh,
                    "ecs_penalty_eur": day.kpis.ecs_penalties_total_eur,
                }
            )
        return pd.DataFrame(rows).set_index("day") if rows else pd.DataFrame()

    def comparison_frame(self, comparison: WeeklyComparison) -> pd.DataFrame:
        """
        Weekly KPIs of both runs side by side, with the gain of ``mpc``.
        """
        mpc = asdict(comparison.mpc.weekly_kpis)
        baseline = asdict(comparison.baseline.weekly_kpis)
        df = pd.DataFrame({"mpc": mpc, "baseline": baseline})
        df["delta"] = df["mpc"] - df["baseline"]
        df.index.name = "kpi"
        return df

    def gains_series(self, comparison: WeeklyComparison) -> pd.Series:
        return pd.Series(asdict(comparison.gains), name="gains")
