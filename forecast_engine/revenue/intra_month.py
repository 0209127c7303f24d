"""
Month-end revenue extrapolation from partial-month accumulation.
Strategies are tried in priority order: strong pace, historical week-1 ratio, progressive accumulation, fallback.
Every projection is clamped into the realism band; the branch that fired decides the confidence tier.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

from forecast_engine.common.numeric import clamp, finite_or, safe_divide
from forecast_engine.features.job_records import JobRecord, as_date
from forecast_engine.forecast_config import ForecastConfig
from forecast_engine.revenue.realism_band import RealismBand
from forecast_engine.revenue.weekly_patterns import WEEKS_PER_MONTH, WeeklyPattern, week_of_month

LOGGER = logging.getLogger("revenue")

TIER_HIGH = "Alta"
TIER_MEDIUM = "Media"
TIER_LOW = "Baja"
TIER_ORDER = {TIER_LOW: 0, TIER_MEDIUM: 1, TIER_HIGH: 2}

# (max progress, front-loading adjustment)
PROGRESS_ADJUSTMENTS: tuple[tuple[float, float], ...] = ((0.25, 1.4), (0.50, 1.2), (0.75, 1.1))


@dataclass(frozen=True)
class MonthToDate:
    as_of: date
    days_elapsed: int
    days_in_month: int
    first_week_revenue: float
    month_to_date_revenue: float
    month_to_date_jobs: int
    week_bucket_revenue: dict[int, float] = field(default_factory=dict)

    @property
    def progress(self) -> float:
        return safe_divide(self.days_elapsed, self.days_in_month)

    def to_dict(self) -> dict[str, Any]:
        return {
            "as_of": self.as_of.isoformat(),
            "days_elapsed": self.days_elapsed,
            "days_in_month": self.days_in_month,
            "first_week_revenue": self.first_week_revenue,
            "month_to_date_revenue": self.month_to_date_revenue,
            "month_to_date_jobs": self.month_to_date_jobs,
            "week_bucket_revenue": dict(self.week_bucket_revenue),
        }


@dataclass(frozen=True)
class IntraMonthProjection:
    week_end_estimate: float
    month_end_estimate: float
    multiplier_used: float
    confidence: str
    methodology: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "week_end_estimate": self.week_end_estimate,
            "month_end_estimate": self.month_end_estimate,
            "multiplier_used": self.multiplier_used,
            "confidence": self.confidence,
            "methodology": self.methodology,
        }


def lower_tier(first: str, second: str) -> str:
    return first if TIER_ORDER[first] <= TIER_ORDER[second] else second


def downgrade_tier(tier: str) -> str:
    return {TIER_HIGH: TIER_MEDIUM, TIER_MEDIUM: TIER_LOW}.get(tier, TIER_LOW)


def summarize_month_to_date(
    records: Iterable[JobRecord],
    as_of: date,
    config: ForecastConfig | None = None,
) -> MonthToDate:
    """Accumulate the `as_of` month up to and including `as_of` itself."""

    config = config or ForecastConfig()
    as_of = as_date(as_of)
    month_start = datetime(as_of.year, as_of.month, 1)
    cutoff = datetime.combine(as_of, time.max)

    buckets = {week: 0.0 for week in range(1, WEEKS_PER_MONTH + 1)}
    first_week = 0.0
    total = 0.0
    jobs = 0
    for record in records:
        if not month_start <= record.timestamp <= cutoff:
            continue
        jobs += 1
        total += record.revenue
        buckets[week_of_month(record.timestamp)] += record.revenue
        if record.timestamp.day <= config.first_week_days:
            first_week += record.revenue

    return MonthToDate(
        as_of=as_of,
        days_elapsed=as_of.day,
        days_in_month=calendar.monthrange(as_of.year, as_of.month)[1],
        first_week_revenue=first_week,
        month_to_date_revenue=total,
        month_to_date_jobs=jobs,
        week_bucket_revenue=buckets,
    )


def pace_growth(pattern: WeeklyPattern, days_in_month: int, config: ForecastConfig) -> float:
    """Acceleration of later weeks over week 1 implied by the pattern, bounded to [0, max_pace_growth]."""

    remaining_days = days_in_month - config.first_week_days
    first_daily = safe_divide(pattern.week1, config.first_week_days)
    later_daily = safe_divide(1.0 - pattern.week1, remaining_days)
    growth = safe_divide(later_daily, first_daily, default=1.0) - 1.0
    return clamp(growth, 0.0, config.max_pace_growth)


def _progress_adjustment(progress: float) -> float:
    for limit, adjustment in PROGRESS_ADJUSTMENTS:
        if progress <= limit:
            return adjustment
    return 1.0


def project_month_end(
    month_to_date: MonthToDate,
    pattern: WeeklyPattern,
    band: RealismBand,
    config: ForecastConfig | None = None,
) -> IntraMonthProjection:
    config = config or ForecastConfig()
    mtd = max(finite_or(month_to_date.month_to_date_revenue, 0.0), 0.0)
    first_week = max(finite_or(month_to_date.first_week_revenue, 0.0), 0.0)
    day = month_to_date.days_elapsed
    days_in_month = month_to_date.days_in_month
    progress = month_to_date.progress

    if first_week >= config.strong_first_week_revenue and day >= config.first_week_days:
        growth = pace_growth(pattern, days_in_month, config)
        multiplier = safe_divide(days_in_month, day) * (1.0 + growth)
        estimate = max(mtd * multiplier, config.strong_week_minimum_revenue)
        tier = TIER_HIGH
        methodology = f"strong_pace (growth {growth:.1%})"
    elif day >= config.historical_ratio_min_days and first_week > 0:
        multiplier = min(
            safe_divide(1.0, pattern.week1, default=config.max_week1_multiplier),
            config.max_week1_multiplier,
        )
        estimate = first_week * multiplier
        tier = TIER_HIGH if pattern.confidence > 0.7 else TIER_MEDIUM
        methodology = "historical_week1_ratio"
    elif mtd > 0 and progress > 0:
        adjustment = _progress_adjustment(progress)
        multiplier = adjustment / progress
        estimate = mtd * multiplier
        tier = TIER_MEDIUM if progress > 0.25 else TIER_LOW
        methodology = f"progressive_accumulation (adjustment {adjustment:.1f})"
    else:
        multiplier = 1.0
        estimate = band.historical_avg if band.historical_avg > 0 else config.fallback_monthly_revenue
        tier = TIER_LOW
        methodology = "historical_average_fallback" if band.historical_avg > 0 else "fixed_fallback"

    bounded, clamped = band.clamp(estimate)
    if clamped:
        LOGGER.info("Intra-month estimate %.0f clamped to %.0f", estimate, bounded)
        methodology = f"{methodology}; clamped to realism band"

    return IntraMonthProjection(
        week_end_estimate=first_week if first_week > 0 else mtd,
        month_end_estimate=bounded,
        multiplier_used=round(finite_or(multiplier, 1.0), 4),
        confidence=tier,
        methodology=methodology,
    )
