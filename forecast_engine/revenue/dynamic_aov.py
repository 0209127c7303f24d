"""
Current-period versus historical average revenue per job (AOV).
The current period starts on the first day of the `as_of` month; historical is the trailing window before it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import pandas as pd

from forecast_engine.common.numeric import safe_divide
from forecast_engine.features.job_records import JobRecord, as_date, mean_positive_revenue, records_to_frame
from forecast_engine.forecast_config import ForecastConfig

LOGGER = logging.getLogger("revenue")


@dataclass(frozen=True)
class DynamicAOV:
    current_period_avg: float
    historical_avg: float
    deviation_pct: float
    significant_change: bool
    trend: int
    current_samples: int
    historical_samples: int

    @property
    def is_stable(self) -> bool:
        return not self.significant_change

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_period_avg": self.current_period_avg,
            "historical_avg": self.historical_avg,
            "deviation_pct": self.deviation_pct,
            "significant_change": self.significant_change,
            "trend": self.trend,
            "current_samples": self.current_samples,
            "historical_samples": self.historical_samples,
        }


def history_start(as_of: date, months: int) -> datetime:
    start = pd.Timestamp(as_of.year, as_of.month, 1) - pd.DateOffset(months=months)
    return start.to_pydatetime()


def calculate_dynamic_aov(
    records: Iterable[JobRecord],
    as_of: date,
    config: ForecastConfig | None = None,
) -> DynamicAOV:
    config = config or ForecastConfig()
    as_of = as_date(as_of)
    frame = records_to_frame(records)
    period_start = pd.Timestamp(as_of.year, as_of.month, 1)
    window_start = pd.Timestamp(history_start(as_of, config.history_window_months))

    if frame.empty:
        current = frame
        historical = frame
    else:
        current = frame.loc[(frame["timestamp"] >= period_start) & (frame["timestamp"].dt.date <= as_of)]
        historical = frame.loc[(frame["timestamp"] >= window_start) & (frame["timestamp"] < period_start)]

    historical_samples = int((historical["revenue"] > 0).sum())
    current_samples = int((current["revenue"] > 0).sum())

    if historical_samples == 0:
        LOGGER.warning("No historical AOV samples; using fallback AOV %.2f", config.aov_fallback)
        historical_avg = config.aov_fallback
    else:
        historical_avg = mean_positive_revenue(historical)

    current_avg = mean_positive_revenue(current) if current_samples else historical_avg

    deviation = safe_divide(current_avg - historical_avg, historical_avg) * 100.0
    significant = abs(deviation) > config.aov_significant_change_pct
    # sign of the drift, independent of significance
    rounded = round(deviation, 6)
    trend = int(rounded > 0) - int(rounded < 0)

    return DynamicAOV(
        current_period_avg=current_avg,
        historical_avg=historical_avg,
        deviation_pct=deviation,
        significant_change=significant,
        trend=trend,
        current_samples=current_samples,
        historical_samples=historical_samples,
    )
