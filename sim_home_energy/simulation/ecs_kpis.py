"""
Daily hot-water deadline evaluation.

For every simulated day the tank temperature is sampled around the deadline
(± ``tolerance_steps``), the best sample is compared with the target and the
shortfall is turned into a deficit and, in ``penalize`` mode, a penalty.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Sequence

from ..calendar_utils import SECONDS_PER_DAY, SECONDS_PER_HOUR

HIT_EPSILON = 1e-6


@dataclass(frozen=True)
class DailyEcsDeadlineKpi:
    day_index: int
    observed_temp_c: float
    deficit_k: float
    penalty_eur: float
    hit: bool


@dataclass(frozen=True)
class AggregatedEcsDeadlineKpis:
    daily: List[DailyEcsDeadlineKpi] = field(default_factory=list)
    hit_rate: float = 0.0
    average_deficit_k: float = 0.0
    total_deficit_k: float = 0.0
    total_penalty_eur: float = 0.0


def aggregate_ecs_deadline_kpis(
    temps_c: Sequence[float],
    dt_s: float,
    target_celsius: float,
    deadline_hour: float,
    penalty_per_kelvin: float,
    mode: str,
    tolerance_steps: int = 1,
) -> AggregatedEcsDeadlineKpis:
    """
    Evaluate the daily deadline over a temperature series.

    Args:
        temps_c: Tank temperature after each step.
        dt_s: Step duration (s).
        target_celsius: Temperature due at the deadline.
        deadline_hour: Hour of day of the deadline (clamped to [0, 24]).
        penalty_per_kelvin: EUR per missing kelvin (``penalize`` mode only).
        mode: Service mode. ``force`` always reports a zero deficit since the
            engine rescues the tank.
        tolerance_steps: Samples considered on each side of the deadline.

    Returns:
        Per-day evaluations and their aggregates; all zeros when no day has
        a sample near its deadline.
    """
    if not math.isfinite(dt_s) or dt_s <= 0 or len(temps_c) == 0:
        return AggregatedEcsDeadlineKpis()

    last_time_s = (len(temps_c) - 1) * dt_s
    tolerance_s = tolerance_steps * dt_s + HIT_EPSILON
    deadline_s = min(max(deadline_hour, 0.0), 24.0) * SECONDS_PER_HOUR
    total_days = int(last_time_s // SECONDS_PER_DAY) + 1

    evaluations: List[DailyEcsDeadlineKpi] = []
    for day in range(total_days):
        target_time_s = day * SECONDS_PER_DAY + deadline_s
        if target_time_s - tolerance_s > last_time_s:
            break
        approx_index = int(round(target_time_s / dt_s))
        observed = -math.inf
        has_sample = False
        for offset in range(-tolerance_steps, tolerance_steps + 1):
            index = approx_index + offset
            if index < 0 or index >= len(temps_c):
                continue
            if abs(index * dt_s - target_time_s) <= tolerance_s:
                has_sample = True
                value = temps_c[index]
                if math.isfinite(value) and value > observed:
                    observed = value
        if not has_sample:
            continue

        observed = observed if math.isfinite(observed) else 0.0
        deficit = 0.0 if mode == "force" else max(0.0, target_celsius - observed)
        penalty = deficit * max(penalty_per_kelvin, 0.0) if mode == "penalize" else 0.0
        evaluations.append(
            DailyEcsDeadlineKpi(
                day_index=day,
                observed_temp_c=observed,
                deficit_k=deficit,
                penalty_eur=penalty,
                hit=deficit <= HIT_EPSILON,
            )
        )

    if not evaluations:
        return AggregatedEcsDeadlineKpis()

    total_deficit = sum(entry.deficit_k for entry in evaluations)
    return AggregatedEcsDeadlineKpis(
        daily=evaluations,
        hit_rate=sum(1 for entry in evaluations if entry.hit) / len(evaluations),
        average_deficit_k=total_deficit / len(evaluations),
        total_deficit_k=total_deficit,
        total_penalty_eur=sum(entry.penalty_eur for entry in evaluations),
    )
