"""
Monthly feature vectors and targets for the demand model.
Each non-empty month becomes `[job_count, avg_revenue, seasonal_signal, activity_flag]` with the job count as target.
Zone-level behavioral features for segmentation are derived from the same monthly aggregation.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
import pandas as pd

from forecast_engine.common.numeric import safe_divide
from forecast_engine.features.job_records import JobRecord, records_to_frame, zone_matches

FEATURE_NAMES: list[str] = ["job_count", "avg_revenue", "seasonal_signal", "activity_flag"]
ZONE_FEATURE_NAMES: list[str] = ["avg_demand", "avg_revenue_thousands", "volatility", "growth_rate"]
MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class MonthlyFeatures:
    months: list[str]
    features: np.ndarray
    targets: np.ndarray

    @property
    def sample_count(self) -> int:
        return int(self.features.shape[0])


def seasonal_signal(month: int) -> float:
    """Sinusoidal calendar encoding with period 12 so adjacent months stay numerically close."""

    return math.sin(2.0 * math.pi * month / MONTHS_PER_YEAR)


def monthly_summary(frame: pd.DataFrame) -> pd.DataFrame:
    """Per-month job count, revenue total, and positive-revenue average, ordered by month."""

    if frame.empty:
        return pd.DataFrame(columns=["month", "job_count", "revenue_total", "avg_revenue"])

    summary = (
        frame.assign(positive_revenue=frame["revenue"].where(frame["revenue"] > 0))
        .groupby("month", sort=True)
        .agg(
            job_count=("revenue", "size"),
            revenue_total=("revenue", "sum"),
            avg_revenue=("positive_revenue", "mean"),
        )
        .reset_index()
    )
    summary["avg_revenue"] = summary["avg_revenue"].fillna(0.0).astype(float)
    return summary[summary["job_count"] > 0].reset_index(drop=True)


def build_monthly_features(records: Iterable[JobRecord]) -> MonthlyFeatures:
    summary = monthly_summary(records_to_frame(records))
    if summary.empty:
        return MonthlyFeatures(
            months=[],
            features=np.zeros((0, len(FEATURE_NAMES)), dtype=float),
            targets=np.zeros(0, dtype=float),
        )

    calendar_month = summary["month"].str.slice(5, 7).astype(int)
    features = np.column_stack(
        [
            summary["job_count"].to_numpy(dtype=float),
            summary["avg_revenue"].to_numpy(dtype=float),
            calendar_month.map(seasonal_signal).to_numpy(dtype=float),
            np.ones(len(summary), dtype=float),
        ]
    )
    return MonthlyFeatures(
        months=summary["month"].tolist(),
        features=features,
        targets=summary["job_count"].to_numpy(dtype=float),
    )


def _volatility(monthly_counts: pd.Series) -> float:
    if len(monthly_counts) < 2:
        return 0.0
    counts = monthly_counts.to_numpy(dtype=float)
    return safe_divide(float(np.std(counts)), float(np.mean(counts)))


def _growth_rate(monthly_counts: pd.Series) -> float:
    if len(monthly_counts) < 2:
        return 0.0
    counts = monthly_counts.to_numpy(dtype=float)
    half = len(counts) // 2
    first_half = float(np.mean(counts[:half]))
    second_half = float(np.mean(counts[half:]))
    return safe_divide(second_half - first_half, first_half)


def build_zone_features(frame: pd.DataFrame, zone_name: str) -> list[float]:
    """Behavioral vector for one zone; zones with no matching jobs get the all-zero vector."""

    zone_frame = frame.loc[zone_matches(frame, zone_name)]
    if zone_frame.empty:
        return [0.0] * len(ZONE_FEATURE_NAMES)

    monthly_counts = zone_frame.groupby("month", sort=True).size()
    positive = zone_frame.loc[zone_frame["revenue"] > 0, "revenue"]
    avg_revenue = float(positive.mean()) if not positive.empty else 0.0
    return [
        len(zone_frame) / MONTHS_PER_YEAR,
        avg_revenue / 1000.0,
        _volatility(monthly_counts),
        _growth_rate(monthly_counts),
    ]
