"""
Job record model and pandas helpers shared by every forecasting component.
Records arrive from the data-fetch collaborator already filtered to non-cancelled jobs.
Revenue that is missing or invalid is normalized to 0 here and excluded from averages downstream.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import pandas as pd

from forecast_engine.common.numeric import finite_or

RECORD_COLUMNS: list[str] = ["timestamp", "status", "origin", "destination", "distance", "revenue"]


@dataclass(frozen=True)
class JobRecord:
    timestamp: datetime
    status: str
    origin: str
    destination: str
    distance: float
    revenue: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> JobRecord:
        timestamp = pd.Timestamp(row["timestamp"])
        if timestamp.tzinfo is not None:
            timestamp = timestamp.tz_convert("UTC").tz_localize(None)
        revenue = finite_or(row.get("revenue"), 0.0)
        return cls(
            timestamp=timestamp.to_pydatetime(),
            status=str(row.get("status") or ""),
            origin=str(row.get("origin") or ""),
            destination=str(row.get("destination") or ""),
            distance=max(finite_or(row.get("distance"), 0.0), 0.0),
            revenue=revenue if revenue > 0 else 0.0,
        )


@dataclass(frozen=True)
class Zone:
    zone_id: str
    zone_name: str


def records_to_frame(records: Iterable[JobRecord]) -> pd.DataFrame:
    """Build a time-ordered frame with a `month` key column; empty input yields an empty typed frame."""

    rows = [
        {
            "timestamp": record.timestamp,
            "status": record.status,
            "origin": record.origin,
            "destination": record.destination,
            "distance": record.distance,
            "revenue": record.revenue,
        }
        for record in records
    ]
    if not rows:
        frame = pd.DataFrame({column: pd.Series(dtype="object") for column in RECORD_COLUMNS})
        frame["timestamp"] = pd.to_datetime(frame["timestamp"])
        frame["revenue"] = frame["revenue"].astype(float)
        frame["month"] = pd.Series(dtype="object")
        return frame

    frame = pd.DataFrame(rows, columns=RECORD_COLUMNS)
    frame["timestamp"] = pd.to_datetime(frame["timestamp"])
    frame["revenue"] = pd.to_numeric(frame["revenue"], errors="coerce").fillna(0.0).clip(lower=0.0)
    frame["month"] = frame["timestamp"].dt.strftime("%Y-%m")
    return frame.sort_values("timestamp", kind="mergesort").reset_index(drop=True)


def mean_positive_revenue(frame: pd.DataFrame) -> float:
    positive = frame.loc[frame["revenue"] > 0, "revenue"]
    if positive.empty:
        return 0.0
    return float(positive.mean())


def zone_matches(frame: pd.DataFrame, zone_name: str) -> pd.Series:
    """Rows whose origin or destination mentions the zone name."""

    if frame.empty or not zone_name:
        return pd.Series(False, index=frame.index, dtype=bool)
    origin = frame["origin"].astype(str).str.contains(zone_name, case=False, regex=False)
    destination = frame["destination"].astype(str).str.contains(zone_name, case=False, regex=False)
    return origin | destination


def as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value
