"""
Domestic hot-water service contract.

The contract states what "hot water delivered" means for a run (target
temperature at a daily deadline) and how a miss is handled:

* ``force``: the engine tops the tank up at the end of the run (rescue),
  so the comfort deficit is always 0;
* ``penalize``: misses are allowed and priced at ``penalty_per_kelvin``;
* ``off``: no rescue and no penalty.

Contracts are immutable. User overrides are merged over a base with
:func:`merge_ecs_service_contract`, which sanitises every field instead of
raising, so a partial or partly invalid payload still yields a usable
contract.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

EcsServiceMode = Literal["force", "penalize", "off"]
ECS_SERVICE_MODES = ("force", "penalize", "off")

MIN_HYSTERESIS_BAND_K = 0.1


class EcsHelpersConfig(BaseModel):
    """
    Toggles and tuning of the ECS helper subsystem.

    Attributes:
        hysteresis_enabled: Enable the hysteresis latch.
        hysteresis_band_k: Gap between the target and the resume threshold (K).
        deadline_enabled: Enable forced preheating before the deadline.
        deadline_preheat_window_hours: Length of the preheat window (h).
    """

    model_config = ConfigDict(frozen=True)

    hysteresis_enabled: bool = True
    hysteresis_band_k: float = Field(1.5, ge=MIN_HYSTERESIS_BAND_K)
    deadline_enabled: bool = True
    deadline_preheat_window_hours: float = Field(1.0, ge=0.0)


class EcsServiceContract(BaseModel):
    """
    Comfort contract of the hot-water tank(s) for one run.

    Attributes:
        mode: ``force``, ``penalize`` or ``off``.
        target_celsius: Temperature to reach by the deadline (°C).
        deadline_hour: Hour of day of the daily deadline.
        penalty_per_kelvin: Penalty per missing kelvin in ``penalize`` mode (€/K).
        helpers: Helper subsystem configuration.

    Example:
        ```python
        contract = EcsServiceContract()
        strict = contract.derive(mode="penalize", penalty_per_kelvin=0.2)
        assert contract.mode == "force"
        ```
    """

    model_config = ConfigDict(frozen=True)

    mode: EcsServiceMode = "force"
    target_celsius: float = 55.0
    deadline_hour: float = Field(21.0, ge=0.0)
    penalty_per_kelvin: float = Field(0.08, ge=0.0)
    helpers: EcsHelpersConfig = Field(default_factory=EcsHelpersConfig)

    def derive(self, **overrides: Any) -> "EcsServiceContract":
        """Return a sanitised copy with ``overrides`` applied."""
        return merge_ecs_service_contract(self, overrides)


ContractOverride = Union[EcsServiceContract, Mapping[str, Any], None]


def default_ecs_service_contract() -> EcsServiceContract:
    return EcsServiceContract()


def _sanitize_number(value: Any, fallback: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if not math.isfinite(value):
        return fallback
    return float(value)


def _sanitize_flag(value: Any, fallback: bool) -> bool:
    return value if isinstance(value, bool) else fallback


def _sanitize_mode(value: Any, fallback: str) -> str:
    return value if value in ECS_SERVICE_MODES else fallback


def _as_mapping(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _merge_helpers(base: EcsHelpersConfig, override: Any) -> EcsHelpersConfig:
    raw = _as_mapping(override)
    return EcsHelpersConfig(
        hysteresis_enabled=_sanitize_flag(raw.get("hysteresis_enabled"), base.hysteresis_enabled),
        hysteresis_band_k=max(
            MIN_HYSTERESIS_BAND_K,
            _sanitize_number(raw.get("hysteresis_band_k"), base.hysteresis_band_k),
        ),
        deadline_enabled=_sanitize_flag(raw.get("deadline_enabled"), base.deadline_enabled),
        deadline_preheat_window_hours=max(
            0.0,
            _sanitize_number(raw.get("deadline_preheat_window_hours"), base.deadline_preheat_window_hours),
        ),
    )


def merge_ecs_service_contract(
    base: Optional[EcsServiceContract] = None,
    override: ContractOverride = None,
) -> EcsServiceContract:
    """
    Merge a partial override over a base contract.

    Args:
        base: Contract providing fallback values (defaults when ``None``).
        override: Partial mapping or full contract. Invalid entries (unknown
            mode, non-numeric or non-finite numbers, wrong types) are
            replaced by the base value; numeric bounds are clamped (band
            >= 0.1 K, window/deadline/penalty >= 0).

    Returns:
        A new contract. Neither argument is modified.
    """
    base = base if base is not None else default_ecs_service_contract()
    raw = _as_mapping(override)
    if not raw:
        return base.model_copy(deep=True)
    return EcsServiceContract(
        mode=_sanitize_mode(raw.get("mode"), base.mode),
        target_celsius=_sanitize_number(raw.get("target_celsius"), base.target_celsius),
        deadline_hour=max(0.0, _sanitize_number(raw.get("deadline_hour"), base.deadline_hour)),
        penalty_per_kelvin=max(0.0, _sanitize_number(raw.get("penalty_per_kelvin"), base.penalty_per_kelvin)),
        helpers=_merge_helpers(base.helpers, raw.get("helpers")),
    )
