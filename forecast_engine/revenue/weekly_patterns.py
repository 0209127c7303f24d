"""
Historical within-month revenue distribution across four week-of-month buckets.
Weeks follow the calendar: the first bucket ends on the first Saturday, and the fourth absorbs the rest of the month.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import pandas as pd

from forecast_engine.features.job_records import JobRecord, records_to_frame
from forecast_engine.forecast_config import ForecastConfig

LOGGER = logging.getLogger("revenue")

WEEKS_PER_MONTH = 4


@dataclass(frozen=True)
class WeeklyPattern:
    week1: float
    week2: float
    week3: float
    week4: float
    weekend_boost: float
    confidence: float
    months_observed: int = 0

    @property
    def shares(self) -> tuple[float, float, float, float]:
        return (self.week1, self.week2, self.week3, self.week4)

    def share(self, week: int) -> float:
        return self.shares[week - 1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "week1": self.week1,
            "week2": self.week2,
            "week3": self.week3,
            "week4": self.week4,
            "weekend_boost": self.weekend_boost,
            "confidence": self.confidence,
            "months_observed": self.months_observed,
        }


def first_weekday_sunday_based(year: int, month: int) -> int:
    """Weekday of the month's first day with Sunday as 0."""

    return (date(year, month, 1).weekday() + 1) % 7


def week_of_month(value: date | datetime) -> int:
    offset = first_weekday_sunday_based(value.year, value.month)
    return min(math.ceil((value.day + offset) / 7), WEEKS_PER_MONTH)


def week_bounds(year: int, month: int, week: int, days_in_month: int) -> tuple[int, int]:
    """First and last day of month belonging to a week-of-month bucket."""

    offset = first_weekday_sunday_based(year, month)
    start = 1 if week == 1 else 7 * (week - 1) - offset + 1
    end = days_in_month if week == WEEKS_PER_MONTH else min(7 * week - offset, days_in_month)
    return start, end


def default_weekly_pattern(config: ForecastConfig, months_observed: int = 0) -> WeeklyPattern:
    week1, week2, week3, week4 = config.default_week_shares
    return WeeklyPattern(
        week1=week1,
        week2=week2,
        week3=week3,
        week4=week4,
        weekend_boost=config.weekend_boost,
        confidence=config.pattern_confidence_low,
        months_observed=months_observed,
    )


def weekly_revenue_shares(frame: pd.DataFrame) -> pd.DataFrame:
    """Per-month share of revenue in each week bucket; months without positive revenue are dropped."""

    if frame.empty:
        return pd.DataFrame(columns=list(range(1, WEEKS_PER_MONTH + 1)), dtype=float)

    weeks = frame["timestamp"].map(week_of_month)
    totals = (
        frame.assign(week=weeks)
        .pivot_table(index="month", columns="week", values="revenue", aggfunc="sum", fill_value=0.0)
        .reindex(columns=list(range(1, WEEKS_PER_MONTH + 1)), fill_value=0.0)
    )
    month_totals = totals.sum(axis=1)
    totals = totals.loc[month_totals > 0]
    return totals.div(month_totals.loc[month_totals > 0], axis=0)


def analyze_weekly_pattern(records: Iterable[JobRecord], config: ForecastConfig | None = None) -> WeeklyPattern:
    config = config or ForecastConfig()
    shares = weekly_revenue_shares(records_to_frame(records))
    months_observed = int(len(shares))

    if months_observed < config.pattern_min_months:
        LOGGER.info("Weekly pattern from defaults: %s month(s) of history observed", months_observed)
        return default_weekly_pattern(config, months_observed)

    averaged = shares.mean(axis=0)
    return WeeklyPattern(
        week1=float(averaged[1]),
        week2=float(averaged[2]),
        week3=float(averaged[3]),
        week4=float(averaged[4]),
        weekend_boost=config.weekend_boost,
        confidence=config.pattern_confidence_high,
        months_observed=months_observed,
    )
