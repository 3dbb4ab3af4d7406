"""
Device contract shared by every model driven by the simulation engine.

Units follow one convention throughout the package: power in kW, energy in
kWh, temperatures in °C and time in seconds.

Devices are polymorphic over a small closed set of capability tags rather
than a class hierarchy, so strategies can branch on what a device *can do*
without knowing its concrete type.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Protocol, Union, runtime_checkable

ELECTRICAL_STORAGE = "electrical-storage"
THERMAL_STORAGE = "thermal-storage"
SHIFTABLE_LOAD = "shiftable-load"
VEHICLE_CHARGER = "vehicle-charger"

CAPABILITIES: FrozenSet[str] = frozenset({ELECTRICAL_STORAGE, THERMAL_STORAGE, SHIFTABLE_LOAD, VEHICLE_CHARGER})

NEED_TO_STORE = "to_store"
NEED_TO_HEAT = "to_heat"
NEED_TO_LOAD = "to_load"

DeviceState = Dict[str, Union[float, bool]]


@dataclass(frozen=True)
class EnvContext:
    """
    Shared environment seen by every device during one simulation step.

    Attributes:
        pv_kw: Instantaneous PV production (kW).
        base_load_kw: Non-controllable household consumption (kW).
        ambient_temp_c: Ambient temperature around thermal devices (°C).
        price_import_eur_per_kwh: Grid import price for this step.
        price_export_eur_per_kwh: Grid export (feed-in) price for this step.
        time_s: Step start time from the beginning of the run (s).
    """
    pv_kw: float
    base_load_kw: float
    ambient_temp_c: Optional[float] = None
    price_import_eur_per_kwh: Optional[float] = None
    price_export_eur_per_kwh: Optional[float] = None
    time_s: float = 0.0

    @property
    def net_surplus_kw(self) -> float:
        """PV minus base load; negative when the house is short of PV."""
        return self.pv_kw - self.base_load_kw


@dataclass(frozen=True)
class PowerRequest:
    """A device's willingness to absorb power this step."""
    max_accept_kw: float
    need: str
    priority_hint: float = 0.0
    min_accept_kw: float = 0.0


@dataclass(frozen=True)
class PowerOffer:
    """A device's willingness to supply power this step (discharge)."""
    max_supply_kw: float
    cost_penalty: float = 0.0


@dataclass(frozen=True)
class DevicePlan:
    request: Optional[PowerRequest] = None
    offer: Optional[PowerOffer] = None


@runtime_checkable
class Device(Protocol):
    """
    Minimal protocol for a controllable device.

    ``plan`` proposes a request and/or offer without changing state,
    ``apply`` accepts a signed power (positive = consume, negative = supply)
    and advances the device by one step, ``state`` returns a snapshot.
    """
    id: str
    label: str
    capabilities: FrozenSet[str]

    def plan(self, dt_s: float, env: EnvContext) -> DevicePlan:
        ...

    def apply(self, power_kw: float, dt_s: float, env: EnvContext) -> None:
        ...

    def state(self) -> DeviceState:
        ...


def has_capability(device: Device, capability: str) -> bool:
    return capability in device.capabilities


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)
