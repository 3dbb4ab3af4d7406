"""
Time-stepped simulation engine for one run (typically one day).

Per step the engine:

1. asks every device for a plan against the shared :class:`EnvContext`;
2. splits plans into requests (surplus candidates) and offers (deficit cover);
3. runs the hot-water helpers, which may force-grant part of the surplus;
4. runs the strategy on the residual surplus and requests, clamping every
   grant to the request, the strategy's figure and the surplus left;
5. covers the remaining deficit with offers, cheapest first;
6. applies each device exactly once with its net power;
7. reconstructs the eight directed energy flows from the net powers.

Flows are reconstructed so that, per step and in total,
``pv + grid_import == consumption + grid_export + battery_delta``.

In ``force`` mode an end-of-run rescue tops every tank that finished below
target up to it, billing the energy as grid import on the last step.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field, fields, replace
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..calendar_utils import SECONDS_PER_HOUR
from .battery import Battery
from .devices import ELECTRICAL_STORAGE, THERMAL_STORAGE, Device, DeviceState, EnvContext
from .ecs_contract import ContractOverride, EcsServiceContract, merge_ecs_service_contract
from .ecs_helpers import EcsHelperState, process_ecs_requests
from .ecs_kpis import AggregatedEcsDeadlineKpis, aggregate_ecs_deadline_kpis
from .kpis import EconomicConfig, EconomicKPIs, KPIInput, compute_economics, compute_kpis
from .strategies import Strategy, StrategyContext, StrategyRequest
from .thermal_tank import ThermalTank

logger = logging.getLogger(__name__)

DEFAULT_AMBIENT_TEMP_C = 20.0
DEFAULT_IMPORT_PRICE_EUR_PER_KWH = 0.20
DEFAULT_EXPORT_PRICE_EUR_PER_KWH = 0.10
POWER_EPSILON_KW = 1e-9

SeriesInput = Union[float, Sequence[float], None]


@dataclass(frozen=True)
class SimulationInput:
    """
    Everything needed to run the engine once.

    Attributes:
        dt_s: Step duration (s), strictly positive.
        pv_series_kw: PV production per step.
        base_load_series_kw: Non-controllable load per step (same length as PV).
        devices: Devices driven by the run. They are mutated in place, so
            two runs compared side by side need their own device sets.
        strategy: Allocation strategy for the PV surplus.
        ambient_temp_c: Scalar or per-step ambient temperature (default 20 °C).
        import_prices_eur_per_kwh: Scalar or per-step import price (default 0.20).
        export_prices_eur_per_kwh: Scalar or per-step export price (default 0.10).
        ecs_service: Partial hot-water contract merged over the defaults.
        economic_config: Investment parameters for the payback estimate.
    """
    dt_s: float
    pv_series_kw: Sequence[float]
    base_load_series_kw: Sequence[float]
    devices: Sequence[Device]
    strategy: Strategy
    ambient_temp_c: SeriesInput = None
    import_prices_eur_per_kwh: SeriesInput = None
    export_prices_eur_per_kwh: SeriesInput = None
    ecs_service: ContractOverride = None
    economic_config: Optional[EconomicConfig] = None


@dataclass(frozen=True)
class DeviceStepState:
    device_id: str
    power_kw: float
    state: DeviceState


@dataclass(frozen=True)
class FlowRecord:
    """
    Eight directed energy flows. kW in per-step records, kWh in totals.
    """
    pv_to_load: float = 0.0
    pv_to_ecs: float = 0.0
    pv_to_battery: float = 0.0
    pv_to_grid: float = 0.0
    battery_to_load: float = 0.0
    battery_to_ecs: float = 0.0
    grid_to_load: float = 0.0
    grid_to_ecs: float = 0.0


@dataclass(frozen=True)
class SimulationStep:
    """
    Attributes:
        time_s: Step start time (s).
        pv_kw: PV production.
        base_load_kw: Non-controllable load.
        pv_used_on_site_kw: PV consumed by loads and tanks.
        grid_import_kw: Power bought from the grid.
        grid_export_kw: Power sold to the grid.
        consumption_kw: Base load plus device consumption (battery charge excluded).
        battery_net_kw: Net AC power into electrical storage (negative = discharge).
        devices: Net power and post-step state of every device.
        forced_ecs_kw: Power force-granted by the deadline helper.
        hysteresis_blocked_ids: Tanks suppressed by the hysteresis latch.
    """
    time_s: float
    pv_kw: float
    base_load_kw: float
    pv_used_on_site_kw: float
    grid_import_kw: float
    grid_export_kw: float
    consumption_kw: float
    battery_net_kw: float
    devices: Tuple[DeviceStepState, ...]
    forced_ecs_kw: float = 0.0
    hysteresis_blocked_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SimulationTotals:
    """Energy totals of the run (kWh)."""
    pv_production_kwh: float
    base_load_kwh: float
    consumption_kwh: float
    ecs_consumption_kwh: float
    grid_import_kwh: float
    grid_export_kwh: float
    pv_used_on_site_kwh: float
    battery_charge_kwh: float
    battery_discharge_kwh: float
    battery_delta_kwh: float
    ecs_rescue_kwh: float
    flows: FlowRecord


@dataclass(frozen=True)
class SimulationKPIs:
    self_consumption: float
    self_production: float
    battery_cycles: float
    ecs_target_uptime: float
    ecs_hit_rate: float
    ecs_deficit_k: float
    ecs_avg_deficit_k: float
    ecs_penalty_eur: float
    ecs_penalties_total_eur: float
    ecs_rescue_kwh: float
    economics: EconomicKPIs
    ecs_deadlines: AggregatedEcsDeadlineKpis = field(default_factory=AggregatedEcsDeadlineKpis)


@dataclass(frozen=True)
class SimulationResult:
    dt_s: float
    contract: EcsServiceContract
    steps: Tuple[SimulationStep, ...]
    flows: Tuple[FlowRecord, ...]
    totals: SimulationTotals
    kpis: SimulationKPIs
    ecs_temp_series_c: Tuple[float, ...]
    battery_soc_series_kwh: Tuple[float, ...]
    import_prices_eur_per_kwh: Tuple[float, ...]
    export_prices_eur_per_kwh: Tuple[float, ...]


def fill_series(values: SeriesInput, n_steps: int, default: float) -> np.ndarray:
    """
    Broadcast a scalar or pad/truncate a sequence to ``n_steps`` values.

    Shorter sequences are filled forward with their last value; missing or
    empty input yields ``default`` everywhere.
    """
    if values is None:
        return np.full(n_steps, default, dtype=float)
    if isinstance(values, (int, float)):
        return np.full(n_steps, float(values), dtype=float)
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return np.full(n_steps, default, dtype=float)
    if arr.size >= n_steps:
        return arr[:n_steps].copy()
    return np.concatenate([arr, np.full(n_steps - arr.size, arr[-1])])


@dataclass
class _StepPower:
    load_kw: float
    ecs_kw: float
    charge_kw: float
    discharge_kw: float


def _split_net_power(devices: Sequence[Device], power: Dict[str, float], base_load_kw: float) -> _StepPower:
    load = base_load_kw
    ecs = charge = discharge = 0.0
    for device in devices:
        p = power.get(device.id, 0.0)
        if p < 0:
            discharge -= p
        elif ELECTRICAL_STORAGE in device.capabilities:
            charge += p
        elif THERMAL_STORAGE in device.capabilities:
            ecs += p
        else:
            load += p
    return _StepPower(load_kw=load, ecs_kw=ecs, charge_kw=charge, discharge_kw=discharge)


def reconstruct_flows(pv_kw: float, split: _StepPower) -> Tuple[FlowRecord, float, float]:
    """
    Split PV, storage and grid into the eight directed flows.

    PV serves loads first, then tanks, then electrical storage, and the rest
    is exported. Storage discharge serves the residual load, then tanks; the
    grid covers whatever remains.

    Returns:
        ``(flows, grid_import_kw, grid_export_kw)``. Import and export also
        carry storage charge not covered by PV and discharge not consumed on
        site, so the balance holds even for unusual plans.
    """
    pv_to_load = min(pv_kw, split.load_kw)
    pv_left = pv_kw - pv_to_load
    pv_to_ecs = min(pv_left, split.ecs_kw)
    pv_left -= pv_to_ecs
    pv_to_battery = min(pv_left, split.charge_kw)
    pv_to_grid = pv_left - pv_to_battery

    load_left = split.load_kw - pv_to_load
    ecs_left = split.ecs_kw - pv_to_ecs
    battery_to_load = min(split.discharge_kw, load_left)
    discharge_left = split.discharge_kw - battery_to_load
    battery_to_ecs = min(discharge_left, ecs_left)
    discharge_left -= battery_to_ecs

    flows = FlowRecord(
        pv_to_load=pv_to_load,
        pv_to_ecs=pv_to_ecs,
        pv_to_battery=pv_to_battery,
        pv_to_grid=pv_to_grid,
        battery_to_load=battery_to_load,
        battery_to_ecs=battery_to_ecs,
        grid_to_load=load_left - battery_to_load,
        grid_to_ecs=ecs_left - battery_to_ecs,
    )
    grid_import = flows.grid_to_load + flows.grid_to_ecs + (split.charge_kw - pv_to_battery)
    grid_export = pv_to_grid + discharge_left
    return flows, grid_import, grid_export


def _battery_soc_kwh(batteries: Sequence[Battery]) -> float:
    return sum(battery.soc_kwh for battery in batteries)


def _mean_tank_temperature(tanks: Sequence[ThermalTank]) -> float:
    return float(np.mean([tank.temperature for tank in tanks]))


def run_simulation(sim_input: SimulationInput) -> SimulationResult:
    """
    Run the engine over the whole input horizon.

    Args:
        sim_input: Series, devices, strategy and contract of the run.

    Returns:
        Immutable per-step records, flows, totals and KPIs.

    Raises:
        ValueError: On a non-positive step, mismatched PV/base-load lengths
            or duplicate device ids.
    """
    dt_s = sim_input.dt_s
    if dt_s <= 0:
        raise ValueError("dt_s must be positive")
    pv = np.asarray(sim_input.pv_series_kw, dtype=float)
    base_load = np.asarray(sim_input.base_load_series_kw, dtype=float)
    if pv.size != base_load.size:
        raise ValueError(
            f"pv_series_kw and base_load_series_kw must have the same length ({pv.size} != {base_load.size})"
        )
    devices = list(sim_input.devices)
    device_ids = [device.id for device in devices]
    if len(set(device_ids)) != len(device_ids):
        raise ValueError(f"device ids must be unique, got {device_ids}")

    n_steps = int(pv.size)
    ambient = fill_series(sim_input.ambient_temp_c, n_steps, DEFAULT_AMBIENT_TEMP_C)
    import_prices = fill_series(sim_input.import_prices_eur_per_kwh, n_steps, DEFAULT_IMPORT_PRICE_EUR_PER_KWH)
    export_prices = fill_series(sim_input.export_prices_eur_per_kwh, n_steps, DEFAULT_EXPORT_PRICE_EUR_PER_KWH)
    contract = merge_ecs_service_contract(EcsServiceContract(), sim_input.ecs_service)

    batteries = [device for device in devices if isinstance(device, Battery)]
    tanks = [device for device in devices if isinstance(device, ThermalTank)]
    helper_state = EcsHelperState()

    steps: List[SimulationStep] = []
    flows: List[FlowRecord] = []
    import_kw: List[float] = []
    export_kw: List[float] = []
    consumption_kw: List[float] = []
    device_consumption_kw: List[float] = []
    pv_used_kw: List[float] = []
    charge_kw: List[float] = []
    discharge_kw: List[float] = []
    ecs_kw: List[float] = []
    soc_deltas_kwh: List[float] = []
    soc_series: List[float] = []
    temp_series: List[float] = []

    logger.debug("Starting run: %d steps of %.0f s, %d devices, mode=%s", n_steps, dt_s, len(devices), contract.mode)

    for i in range(n_steps):
        time_s = i * dt_s
        env = EnvContext(
            pv_kw=float(pv[i]),
            base_load_kw=float(base_load[i]),
            ambient_temp_c=float(ambient[i]),
            price_import_eur_per_kwh=float(import_prices[i]),
            price_export_eur_per_kwh=float(export_prices[i]),
            time_s=time_s,
        )

        requests: List[StrategyRequest] = []
        offers = []
        for device in devices:
            plan = device.plan(dt_s, env)
            if plan.request is not None and plan.request.max_accept_kw > 0:
                requests.append(StrategyRequest(device=device, request=plan.request, state=device.state()))
            if plan.offer is not None and plan.offer.max_supply_kw > 0:
                offers.append((device, plan.offer))

        surplus = max(env.pv_kw - env.base_load_kw, 0.0)
        deficit = max(env.base_load_kw - env.pv_kw, 0.0)

        ecs = process_ecs_requests(
            requests,
            contract,
            dt_s=dt_s,
            time_s=time_s,
            surplus_kw=surplus,
            ambient_temp_c=env.ambient_temp_c,
            state=helper_state,
        )
        power: Dict[str, float] = defaultdict(float)
        forced_total = 0.0
        for forced in ecs.forced_allocations:
            power[forced.device.id] += forced.power_kw
            forced_total += forced.power_kw

        remaining = ecs.remaining_surplus_kw
        pending = {request.device.id: request for request in ecs.requests}
        granted: Dict[str, float] = defaultdict(float)
        allocations = sim_input.strategy(
            StrategyContext(
                surplus_kw=remaining,
                requests=tuple(ecs.requests),
                time_s=time_s,
                dt_s=dt_s,
            )
        )
        for allocation in allocations:
            request = pending.get(allocation.device_id)
            if request is None or allocation.power_kw <= 0:
                logger.debug("Dropping allocation %r at t=%.0f", allocation, time_s)
                continue
            headroom = request.request.max_accept_kw - granted[allocation.device_id]
            applied = min(allocation.power_kw, headroom, remaining)
            if applied <= 0:
                logger.debug("Clamped allocation for %s to zero at t=%.0f", allocation.device_id, time_s)
                continue
            granted[allocation.device_id] += applied
            power[allocation.device_id] += applied
            remaining -= applied
            if remaining < POWER_EPSILON_KW:
                remaining = 0.0

        for device, offer in sorted(offers, key=lambda item: (item[1].cost_penalty, item[0].id)):
            if deficit <= POWER_EPSILON_KW:
                break
            supplied = min(offer.max_supply_kw, deficit)
            if supplied <= 0:
                continue
            power[device.id] -= supplied
            deficit -= supplied

        soc_before = _battery_soc_kwh(batteries)
        device_states: List[DeviceStepState] = []
        for device in devices:
            device_power = power.get(device.id, 0.0)
            device.apply(device_power, dt_s, env)
            device_states.append(DeviceStepState(device_id=device.id, power_kw=device_power, state=device.state()))
        soc_after = _battery_soc_kwh(batteries)

        split = _split_net_power(devices, power, env.base_load_kw)
        flow, grid_import, grid_export = reconstruct_flows(env.pv_kw, split)
        consumption = split.load_kw + split.ecs_kw
        pv_used = flow.pv_to_load + flow.pv_to_ecs

        flows.append(flow)
        import_kw.append(grid_import)
        export_kw.append(grid_export)
        consumption_kw.append(consumption)
        device_consumption_kw.append(consumption - env.base_load_kw)
        pv_used_kw.append(pv_used)
        charge_kw.append(split.charge_kw)
        discharge_kw.append(split.discharge_kw)
        ecs_kw.append(split.ecs_kw)
        soc_deltas_kwh.append(soc_after - soc_before)
        soc_series.append(soc_after)
        if tanks:
            temp_series.append(_mean_tank_temperature(tanks))

        steps.append(
            SimulationStep(
                time_s=time_s,
                pv_kw=env.pv_kw,
                base_load_kw=env.base_load_kw,
                pv_used_on_site_kw=pv_used,
                grid_import_kw=grid_import,
                grid_export_kw=grid_export,
                consumption_kw=consumption,
                battery_net_kw=split.charge_kw - split.discharge_kw,
                devices=tuple(device_states),
                forced_ecs_kw=forced_total,
                hysteresis_blocked_ids=tuple(ecs.blocked_device_ids),
            )
        )

    rescue_kwh = 0.0
    if contract.mode == "force" and steps:
        rescue_kwh = _rescue_tanks(tanks, dt_s, steps, flows, import_kw, consumption_kw, device_consumption_kw, ecs_kw)
        if tanks:
            temp_series[-1] = _mean_tank_temperature(tanks)

    hours = dt_s / SECONDS_PER_HOUR
    flow_totals = FlowRecord(
        **{f.name: sum(getattr(flow, f.name) for flow in flows) * hours for f in fields(FlowRecord)}
    )
    totals = SimulationTotals(
        pv_production_kwh=float(np.sum(pv)) * hours,
        base_load_kwh=float(np.sum(base_load)) * hours,
        consumption_kwh=sum(consumption_kw) * hours,
        ecs_consumption_kwh=sum(ecs_kw) * hours,
        grid_import_kwh=sum(import_kw) * hours,
        grid_export_kwh=sum(export_kw) * hours,
        pv_used_on_site_kwh=sum(pv_used_kw) * hours,
        battery_charge_kwh=sum(charge_kw) * hours,
        battery_discharge_kwh=sum(discharge_kw) * hours,
        battery_delta_kwh=(sum(charge_kw) - sum(discharge_kw)) * hours,
        ecs_rescue_kwh=rescue_kwh,
        flows=flow_totals,
    )

    deadlines = aggregate_ecs_deadline_kpis(
        temp_series,
        dt_s,
        target_celsius=contract.target_celsius,
        deadline_hour=contract.deadline_hour,
        penalty_per_kelvin=contract.penalty_per_kelvin,
        mode=contract.mode,
    )
    energy = compute_kpis(
        KPIInput(
            dt_s=dt_s,
            pv_series_kw=pv,
            base_load_series_kw=base_load,
            device_consumption_series_kw=device_consumption_kw,
            pv_used_on_site_series_kw=pv_used_kw,
            battery_delta_kwh=soc_deltas_kwh,
            battery_capacity_kwh=sum(battery.usable_capacity_kwh for battery in batteries),
            ecs_temp_series_c=temp_series,
            ecs_target_temp_c=contract.target_celsius,
        )
    )
    economics = compute_economics(
        dt_s,
        grid_import_kw=import_kw,
        grid_export_kw=export_kw,
        consumption_kw=consumption_kw,
        import_prices=import_prices,
        export_prices=export_prices,
        ecs_penalty_eur=deadlines.total_penalty_eur,
        config=sim_input.economic_config,
    )
    kpis = SimulationKPIs(
        self_consumption=energy.self_consumption,
        self_production=energy.self_production,
        battery_cycles=energy.battery_cycles,
        ecs_target_uptime=energy.ecs_target_uptime,
        ecs_hit_rate=deadlines.hit_rate,
        ecs_deficit_k=deadlines.total_deficit_k,
        ecs_avg_deficit_k=deadlines.average_deficit_k,
        ecs_penalty_eur=deadlines.total_penalty_eur,
        ecs_penalties_total_eur=deadlines.total_penalty_eur,
        ecs_rescue_kwh=rescue_kwh,
        economics=economics,
        ecs_deadlines=deadlines,
    )

    logger.debug(
        "Run finished: import=%.3f kWh export=%.3f kWh rescue=%.3f kWh",
        totals.grid_import_kwh,
        totals.grid_export_kwh,
        rescue_kwh,
    )
    return SimulationResult(
        dt_s=dt_s,
        contract=contract,
        steps=tuple(steps),
        flows=tuple(flows),
        totals=totals,
        kpis=kpis,
        ecs_temp_series_c=tuple(temp_series),
        battery_soc_series_kwh=tuple(soc_series),
        import_prices_eur_per_kwh=tuple(float(p) for p in import_prices),
        export_prices_eur_per_kwh=tuple(float(p) for p in export_prices),
    )


def _rescue_tanks(
    tanks: Sequence[ThermalTank],
    dt_s: float,
    steps: List[SimulationStep],
    flows: List[FlowRecord],
    import_kw: List[float],
    consumption_kw: List[float],
    device_consumption_kw: List[float],
    ecs_kw: List[float],
) -> float:
    """
    Top every tank still below target up to it, billed on the last step.

    The extra energy is booked as a grid-to-ECS spike on the last step and
    the last step record, flow record and device states are replaced.

    Returns:
        Total rescue energy (kWh).
    """
    rescue_kwh = 0.0
    spikes: Dict[str, float] = {}
    for tank in tanks:
        if tank.temperature >= tank.target_temp_c - 1e-9:
            continue
        energy_kwh = tank.energy_to_reach_target_kwh()
        if energy_kwh <= 0 or not math.isfinite(energy_kwh):
            continue
        logger.info(
            "ECS rescue: %s at %.2f °C below target %.2f °C, adding %.3f kWh of grid import",
            tank.id,
            tank.temperature,
            tank.target_temp_c,
            energy_kwh,
        )
        tank.enforce_target_temperature()
        spikes[tank.id] = energy_kwh * SECONDS_PER_HOUR / dt_s
        rescue_kwh += energy_kwh

    if not spikes:
        return 0.0

    spike_kw = sum(spikes.values())
    last = len(steps) - 1
    flows[last] = replace(flows[last], grid_to_ecs=flows[last].grid_to_ecs + spike_kw)
    import_kw[last] += spike_kw
    consumption_kw[last] += spike_kw
    device_consumption_kw[last] += spike_kw
    ecs_kw[last] += spike_kw

    tanks_by_id = {tank.id: tank for tank in tanks}
    patched_devices = tuple(
        DeviceStepState(
            device_id=entry.device_id,
            power_kw=entry.power_kw + spikes[entry.device_id],
            state=tanks_by_id[entry.device_id].state(),
        )
        if entry.device_id in spikes
        else entry
        for entry in steps[last].devices
    )
    steps[last] = replace(
        steps[last],
        grid_import_kw=import_kw[last],
        consumption_kw=consumption_kw[last],
        devices=patched_devices,
    )
    return rescue_kwh
