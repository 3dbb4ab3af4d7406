"""
Residential battery model with state-of-charge dynamics.

Contains the :class:`BatterySpecs` dataclass describing the pack and the
:class:`Battery` device that plans charge/discharge against the step's net
PV surplus and integrates its state of charge with separate charge and
discharge efficiencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet

from .devices import (
    ELECTRICAL_STORAGE,
    NEED_TO_STORE,
    DevicePlan,
    DeviceState,
    EnvContext,
    PowerOffer,
    PowerRequest,
    clamp,
)

NET_POWER_EPSILON_KW = 0.05
"""Net surplus/deficit below which the battery stays idle (avoids chatter)."""

CHARGE_PRIORITY_HINT = 60.0
DISCHARGE_COST_PENALTY = 0.1


@dataclass(frozen=True)
class BatterySpecs:
    """
    Battery specifications for capacity, power and efficiency.

    All energies are absolute kWh values; ``soc_min_kwh`` and ``soc_max_kwh``
    bound the usable window inside the nominal capacity.

    Attributes:
        capacity_kwh: Nominal capacity of the pack (kWh).
        p_max_kw: Rated charge and discharge power (kW).
        eta_charge: Charging efficiency (0-1). Fraction of AC input stored.
        eta_discharge: Discharging efficiency (0-1). Fraction of stored
            energy delivered as AC output.
        soc_init_kwh: Initial stored energy (kWh), clamped into the window.
        soc_min_kwh: Lower bound of the usable window (kWh).
        soc_max_kwh: Upper bound of the usable window (kWh).

    Example:
        ```python
        specs = BatterySpecs(
            capacity_kwh=10.0,
            p_max_kw=3.0,
            soc_init_kwh=5.0,
            soc_min_kwh=1.0,
            soc_max_kwh=9.5,
        )
        ```
    """
    capacity_kwh: float
    p_max_kw: float
    eta_charge: float = 0.95
    eta_discharge: float = 0.95
    soc_init_kwh: float = 0.0
    soc_min_kwh: float = 0.0
    soc_max_kwh: float | None = None

    @property
    def soc_upper_kwh(self) -> float:
        return self.capacity_kwh if self.soc_max_kwh is None else self.soc_max_kwh


class Battery:
    """
    Home battery exposed to the engine through the device contract.

    The battery only reacts to the step's net PV balance:

    * surplus above ``NET_POWER_EPSILON_KW`` (or any positive surplus when the
      pack sits at ``soc_min``) produces a charge request capped by the
      remaining headroom, the rated power and the surplus itself;
    * deficit beyond ``-NET_POWER_EPSILON_KW`` produces a discharge offer
      capped by the stored energy above ``soc_min``, the rated power and the
      deficit.

    Energy Flow:
        Charging:    AC in → × eta_charge → SoC increases
        Discharging: SoC decreases → × eta_discharge → AC out

    Attributes:
        id: Stable device identifier (used for deterministic tie-breaks).
        label: Human-readable name.
        capabilities: ``{"electrical-storage"}``.
        specs: Pack specifications.
        soc_kwh: Current stored energy (the only mutable field).

    Notes:
        - ``soc_min_kwh <= soc_kwh <= soc_max_kwh`` holds after every ``apply``.
        - Rated power is enforced through the request/offer; callers must
          respect ``max_accept_kw`` / ``max_supply_kw``.
    """

    capabilities: FrozenSet[str] = frozenset({ELECTRICAL_STORAGE})

    def __init__(self, id: str, label: str, specs: BatterySpecs) -> None:
        if specs.capacity_kwh < 0.0:
            raise ValueError("capacity_kwh must be non-negative")
        if not 0.0 < specs.eta_charge <= 1.0 or not 0.0 < specs.eta_discharge <= 1.0:
            raise ValueError("efficiencies must be within (0, 1]")
        if specs.soc_min_kwh > specs.soc_upper_kwh:
            raise ValueError("soc_min_kwh must not exceed soc_max_kwh")

        self.id = id
        self.label = label
        self.specs = specs
        self.soc_kwh = clamp(specs.soc_init_kwh, specs.soc_min_kwh, specs.soc_upper_kwh)

    @property
    def usable_capacity_kwh(self) -> float:
        return max(self.specs.soc_upper_kwh - self.specs.soc_min_kwh, 0.0)

    def soc_fraction(self) -> float:
        """
        State of charge as a fraction of the usable window (0-1).
        """
        window = max(self.specs.soc_upper_kwh - self.specs.soc_min_kwh, 1e-6)
        return clamp((self.soc_kwh - self.specs.soc_min_kwh) / window, 0.0, 1.0)

    def max_charge_power_kw(self, dt_s: float) -> float:
        headroom_kwh = max(self.specs.soc_upper_kwh - self.soc_kwh, 0.0)
        if headroom_kwh <= 0.0:
            return 0.0
        limit_by_energy = (headroom_kwh / self.specs.eta_charge) * (3600.0 / dt_s)
        return clamp(limit_by_energy, 0.0, self.specs.p_max_kw)

    def max_discharge_power_kw(self, dt_s: float) -> float:
        available_kwh = max(self.soc_kwh - self.specs.soc_min_kwh, 0.0)
        if available_kwh <= 0.0:
            return 0.0
        limit_by_energy = available_kwh * self.specs.eta_discharge * (3600.0 / dt_s)
        return clamp(limit_by_energy, 0.0, self.specs.p_max_kw)

    def plan(self, dt_s: float, env: EnvContext) -> DevicePlan:
        """
        Propose a capacity-aware charge request or discharge offer.

        Args:
            dt_s: Step duration (s).
            env: Shared step environment; only PV and base load are used.

        Returns:
            DevicePlan with at most one of ``request`` / ``offer`` set.
        """
        net_surplus_kw = env.net_surplus_kw
        at_floor = self.soc_kwh <= self.specs.soc_min_kwh + 1e-6
        should_charge = net_surplus_kw > NET_POWER_EPSILON_KW or (net_surplus_kw > 1e-6 and at_floor)

        if should_charge:
            max_charge = self.max_charge_power_kw(dt_s)
            if max_charge > 0.0:
                return DevicePlan(
                    request=PowerRequest(
                        max_accept_kw=min(max_charge, net_surplus_kw),
                        need=NEED_TO_STORE,
                        priority_hint=CHARGE_PRIORITY_HINT,
                    )
                )
        elif net_surplus_kw < -NET_POWER_EPSILON_KW:
            max_discharge = self.max_discharge_power_kw(dt_s)
            if max_discharge > 0.0:
                return DevicePlan(
                    offer=PowerOffer(
                        max_supply_kw=min(max_discharge, -net_surplus_kw),
                        cost_penalty=DISCHARGE_COST_PENALTY,
                    )
                )
        return DevicePlan()

    def apply(self, power_kw: float, dt_s: float, env: EnvContext | None = None) -> None:
        """
        Integrate the state of charge for one step.

        Args:
            power_kw: Signed AC power; positive charges, negative discharges.
            dt_s: Step duration (s).
            env: Unused; accepted for contract compatibility.
        """
        if power_kw > 0.0:
            self.soc_kwh += power_kw * dt_s * self.specs.eta_charge / 3600.0
        elif power_kw < 0.0:
            self.soc_kwh += power_kw * dt_s / (3600.0 * self.specs.eta_discharge)
        self.soc_kwh = clamp(self.soc_kwh, self.specs.soc_min_kwh, self.specs.soc_upper_kwh)

    def state(self) -> DeviceState:
        return {
            "soc_kwh": self.soc_kwh,
            "soc_percent": self.soc_fraction() * 100.0,
        }
