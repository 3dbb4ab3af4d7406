from __future__ import annotations

from datetime import date, timedelta
from typing import List

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
DAYS_PER_WEEK = 7
"""Number of simulated days in a weekly run."""


def normalize_time_of_day(time_s: float) -> float:
    """
    Fold an absolute simulation time onto [0, 86400).
    """
    return time_s % SECONDS_PER_DAY


def hour_of_day(time_s: float) -> float:
    """
    Fractional hour of day (0 <= h < 24) for an absolute simulation time.
    """
    return normalize_time_of_day(time_s) / SECONDS_PER_HOUR


def seconds_until_hour(target_hour: float, time_s: float) -> float:
    """
    Seconds from ``time_s`` until the next occurrence of ``target_hour``.

    Wraps around midnight: at 22:00 a 21:00 target is 23 hours away.
    Returns 0 when the current time is exactly the target.
    """
    target_s = normalize_time_of_day(target_hour * SECONDS_PER_HOUR)
    delta = target_s - normalize_time_of_day(time_s)
    if delta < 0:
        delta += SECONDS_PER_DAY
    return delta


def steps_per_day(dt_s: float) -> int:
    """
    Number of whole simulation steps in one day.
    """
    if dt_s <= 0:
        raise ValueError("dt_s must be positive")
    return int(SECONDS_PER_DAY // dt_s)


def build_week_dates(start_date: str, n_days: int = DAYS_PER_WEEK) -> List[str]:
    """
    Returns ISO dates for ``n_days`` consecutive days starting at ``start_date``.
    """
    first = date.fromisoformat(start_date)
    return [(first + timedelta(days=offset)).isoformat() for offset in range(n_days)]
