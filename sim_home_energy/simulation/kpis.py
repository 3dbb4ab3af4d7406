"""
Post-hoc KPI and economic aggregation over simulation series.

Everything here is pure and total: empty series, zero PV or zero load yield
0 (never NaN) so two strategies can always be compared.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..calendar_utils import SECONDS_PER_DAY, SECONDS_PER_HOUR


@dataclass(frozen=True)
class KPIInput:
    """
    Series consumed by the energy KPIs (one value per step).

    Attributes:
        dt_s: Step duration (s).
        pv_series_kw: PV production.
        base_load_series_kw: Non-controllable load.
        device_consumption_series_kw: Power consumed by controllable devices
            (excluding battery charging).
        pv_used_on_site_series_kw: PV consumed by the house and its loads.
        battery_delta_kwh: Per-step change of stored battery energy.
        battery_capacity_kwh: Total battery capacity.
        ecs_temp_series_c: Tank temperature after each step.
        ecs_target_temp_c: Tank target temperature.
    """
    dt_s: float
    pv_series_kw: Sequence[float]
    base_load_series_kw: Sequence[float]
    device_consumption_series_kw: Sequence[float]
    pv_used_on_site_series_kw: Sequence[float]
    battery_delta_kwh: Sequence[float]
    battery_capacity_kwh: float
    ecs_temp_series_c: Sequence[float]
    ecs_target_temp_c: float


@dataclass(frozen=True)
class EnergyKPIs:
    self_consumption: float
    self_production: float
    battery_cycles: float
    ecs_target_uptime: float


def energy_from_power_series(power_kw: Sequence[float], dt_s: float) -> float:
    """Integrate a power series (kW) into energy (kWh)."""
    if len(power_kw) == 0:
        return 0.0
    return float(np.sum(np.asarray(power_kw, dtype=float))) * dt_s / SECONDS_PER_HOUR


def self_consumption(data: KPIInput) -> float:
    """PV used on site over total on-site load energy."""
    base = np.asarray(data.base_load_series_kw, dtype=float)
    devices = np.asarray(data.device_consumption_series_kw, dtype=float)
    n = min(base.size, devices.size)
    load_kwh = energy_from_power_series(base[:n] + devices[:n], data.dt_s)
    if load_kwh <= 0:
        return 0.0
    return energy_from_power_series(data.pv_used_on_site_series_kw, data.dt_s) / load_kwh


def self_production(data: KPIInput) -> float:
    """PV used on site over total PV production."""
    pv_kwh = energy_from_power_series(data.pv_series_kw, data.dt_s)
    if pv_kwh <= 0:
        return 0.0
    return energy_from_power_series(data.pv_used_on_site_series_kw, data.dt_s) / pv_kwh


def battery_cycles_proxy(data: KPIInput) -> float:
    """Equivalent full cycles: sum of |SOC deltas| over twice the capacity."""
    if data.battery_capacity_kwh <= 0 or len(data.battery_delta_kwh) == 0:
        return 0.0
    throughput = float(np.sum(np.abs(np.asarray(data.battery_delta_kwh, dtype=float))))
    return throughput / (2.0 * data.battery_capacity_kwh)


def ecs_target_uptime(data: KPIInput) -> float:
    """Fraction of samples with the tank at or above target."""
    temps = np.asarray(data.ecs_temp_series_c, dtype=float)
    if temps.size == 0:
        return 0.0
    return float(np.count_nonzero(temps >= data.ecs_target_temp_c)) / temps.size


def compute_kpis(data: KPIInput) -> EnergyKPIs:
    return EnergyKPIs(
        self_consumption=self_consumption(data),
        self_production=self_production(data),
        battery_cycles=battery_cycles_proxy(data),
        ecs_target_uptime=ecs_target_uptime(data),
    )


@dataclass(frozen=True)
class EconomicConfig:
    """
    Economic parameters of a run.

    Attributes:
        investment_eur: Upfront cost of the installation (EUR). Only used for
            the payback estimate; 0 means "no investment to recover".
        days_per_year: Days used to annualise the simulated period's savings.
    """
    investment_eur: float = 0.0
    days_per_year: float = 365.0


@dataclass(frozen=True)
class EconomicKPIs:
    """
    Attributes:
        import_cost: Grid import billed at the import price (EUR).
        export_revenue: Export paid at the export price (EUR).
        net_cost: ``import_cost - export_revenue``.
        grid_only_cost: Counterfactual bill with every kWh bought from the grid.
        savings: ``grid_only_cost - net_cost``.
        payback_years: Years to recover the investment from annualised savings
            (0 without investment, ``inf`` when savings are not positive).
        ecs_penalty: Comfort penalty of the run (EUR).
        net_cost_with_penalties: ``net_cost + ecs_penalty``.
    """
    import_cost: float
    export_revenue: float
    net_cost: float
    grid_only_cost: float
    savings: float
    payback_years: float
    ecs_penalty: float
    net_cost_with_penalties: float


def _priced_energy(power_kw: Sequence[float], prices: Sequence[float], dt_s: float) -> float:
    power = np.asarray(power_kw, dtype=float)
    price = np.asarray(prices, dtype=float)
    n = min(power.size, price.size)
    if n == 0:
        return 0.0
    return float(np.dot(power[:n], price[:n])) * dt_s / SECONDS_PER_HOUR


def compute_economics(
    dt_s: float,
    grid_import_kw: Sequence[float],
    grid_export_kw: Sequence[float],
    consumption_kw: Sequence[float],
    import_prices: Sequence[float],
    export_prices: Sequence[float],
    ecs_penalty_eur: float = 0.0,
    config: EconomicConfig | None = None,
) -> EconomicKPIs:
    """
    Euro KPIs of a run from per-step power flows and prices.

    Args:
        dt_s: Step duration (s).
        grid_import_kw: Grid import per step.
        grid_export_kw: Grid export per step.
        consumption_kw: Total on-site consumption per step (for the
            grid-only counterfactual).
        import_prices: Import price per step (EUR/kWh).
        export_prices: Export price per step (EUR/kWh).
        ecs_penalty_eur: Comfort penalty to fold into the net cost.
        config: Investment/annualisation parameters.

    Returns:
        EconomicKPIs for the simulated period.
    """
    config = config or EconomicConfig()
    import_cost = _priced_energy(grid_import_kw, import_prices, dt_s)
    export_revenue = _priced_energy(grid_export_kw, export_prices, dt_s)
    net_cost = import_cost - export_revenue
    grid_only_cost = _priced_energy(consumption_kw, import_prices, dt_s)
    savings = grid_only_cost - net_cost

    period_days = len(consumption_kw) * dt_s / SECONDS_PER_DAY
    if config.investment_eur <= 0:
        payback_years = 0.0
    elif savings <= 0 or period_days <= 0:
        payback_years = math.inf
    else:
        annual_savings = savings / period_days * config.days_per_year
        payback_years = config.investment_eur / annual_savings

    penalty = max(ecs_penalty_eur, 0.0)
    return EconomicKPIs(
        import_cost=import_cost,
        export_revenue=export_revenue,
        net_cost=net_cost,
        grid_only_cost=grid_only_cost,
        savings=savings,
        payback_years=payback_years,
        ecs_penalty=penalty,
        net_cost_with_penalties=net_cost + penalty,
    )
