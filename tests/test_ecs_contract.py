from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from sim_home_energy.simulation.ecs_contract import (
    EcsHelpersConfig,
    EcsServiceContract,
    default_ecs_service_contract,
    merge_ecs_service_contract,
)


def test_default_contract_values() -> None:
    contract = default_ecs_service_contract()

    assert contract.mode == "force"
    assert contract.target_celsius == 55.0
    assert contract.deadline_hour == 21.0
    assert contract.penalty_per_kelvin == pytest.approx(0.08)
    assert contract.helpers.hysteresis_enabled is True
    assert contract.helpers.hysteresis_band_k == pytest.approx(1.5)
    assert contract.helpers.deadline_enabled is True
    assert contract.helpers.deadline_preheat_window_hours == pytest.approx(1.0)


def test_partial_override_keeps_unspecified_fields() -> None:
    merged = merge_ecs_service_contract(None, {"mode": "penalize", "helpers": {"deadline_enabled": False}})

    assert merged.mode == "penalize"
    assert merged.target_celsius == 55.0
    assert merged.helpers.deadline_enabled is False
    assert merged.helpers.hysteresis_enabled is True


@pytest.mark.parametrize(
    "override",
    [
        {"mode": "sometimes"},
        {"target_celsius": "hot"},
        {"target_celsius": math.nan},
        {"target_celsius": math.inf},
        {"target_celsius": True},
        {"helpers": {"hysteresis_enabled": "yes"}},
        {"helpers": "not-a-mapping"},
    ],
)
def test_invalid_entries_fall_back_to_base(override) -> None:
    base = EcsServiceContract(mode="penalize", target_celsius=60.0)
    merged = merge_ecs_service_contract(base, override)

    assert merged == base


def test_numeric_bounds_are_clamped() -> None:
    merged = merge_ecs_service_contract(
        None,
        {
            "deadline_hour": -3,
            "penalty_per_kelvin": -1.0,
            "helpers": {"hysteresis_band_k": 0.01, "deadline_preheat_window_hours": -2.0},
        },
    )

    assert merged.deadline_hour == 0.0
    assert merged.penalty_per_kelvin == 0.0
    assert merged.helpers.hysteresis_band_k == pytest.approx(0.1)
    assert merged.helpers.deadline_preheat_window_hours == 0.0


def test_merge_never_mutates_its_inputs() -> None:
    base = default_ecs_service_contract()
    override = {"mode": "off", "helpers": {"hysteresis_band_k": 3.0}}

    merged = merge_ecs_service_contract(base, override)

    assert base.mode == "force"
    assert base.helpers.hysteresis_band_k == pytest.approx(1.5)
    assert override == {"mode": "off", "helpers": {"hysteresis_band_k": 3.0}}
    assert merged.mode == "off"


def test_empty_override_returns_equal_copy() -> None:
    base = EcsServiceContract(target_celsius=50.0)
    merged = merge_ecs_service_contract(base, {})

    assert merged == base
    assert merged is not base


def test_contract_can_be_merged_from_another_contract() -> None:
    other = EcsServiceContract(mode="off", deadline_hour=7.0)
    merged = merge_ecs_service_contract(None, other)

    assert merged.mode == "off"
    assert merged.deadline_hour == 7.0


def test_contracts_are_immutable() -> None:
    contract = default_ecs_service_contract()
    with pytest.raises(ValidationError):
        contract.mode = "off"


def test_derive_applies_overrides() -> None:
    contract = default_ecs_service_contract()
    strict = contract.derive(mode="penalize", penalty_per_kelvin=0.2)

    assert strict.mode == "penalize"
    assert strict.penalty_per_kelvin == pytest.approx(0.2)
    assert contract.mode == "force"


def test_direct_construction_validates_band() -> None:
    with pytest.raises(ValidationError):
        EcsHelpersConfig(hysteresis_band_k=0.05)
