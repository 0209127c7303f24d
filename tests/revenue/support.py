from __future__ import annotations

import calendar
from datetime import datetime

from forecast_engine.features.job_records import JobRecord
from forecast_engine.revenue.weekly_patterns import week_bounds

WEEK_SPLIT = (0.20, 0.30, 0.30, 0.20)
JOBS_PER_WEEK = 200


def job(timestamp: datetime, revenue: float, *, origin: str = "Zona Centro", destination: str = "Queretaro") -> JobRecord:
    return JobRecord(
        timestamp=timestamp,
        status="finalizado",
        origin=origin,
        destination=destination,
        distance=120.0,
        revenue=revenue,
    )


def month_with_split(
    year: int,
    month: int,
    total: float,
    split: tuple[float, ...] = WEEK_SPLIT,
    jobs_per_week: int = JOBS_PER_WEEK,
) -> list[JobRecord]:
    """One month of jobs whose revenue lands in each week-of-month bucket by the given split."""

    days_in_month = calendar.monthrange(year, month)[1]
    records: list[JobRecord] = []
    for week, share in enumerate(split, start=1):
        first_day, _ = week_bounds(year, month, week, days_in_month)
        revenue = total * share / jobs_per_week
        for index in range(jobs_per_week):
            records.append(job(datetime(year, month, first_day, 8 + index % 10, index % 60), revenue))
    return records


def scenario_a_history() -> list[JobRecord]:
    return (
        month_with_split(2025, 1, 5_000_000.0)
        + month_with_split(2025, 2, 5_200_000.0)
        + month_with_split(2025, 3, 4_800_000.0)
    )


def spread_over_days(year: int, month: int, days: range, total: float, count: int) -> list[JobRecord]:
    per_job = total / count
    day_list = list(days)
    return [
        job(datetime(year, month, day_list[index % len(day_list)], 9 + index % 8), per_job)
        for index in range(count)
    ]


def scenario_a_current_month() -> list[JobRecord]:
    # April 2025 starts on a Tuesday, so days 1-5 are the first week bucket.
    return spread_over_days(2025, 4, range(1, 6), 1_000_000.0, 160)
