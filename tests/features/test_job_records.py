"""
Unit tests for job record normalization and frame construction.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

from __future__ import annotations

from datetime import datetime

from forecast_engine.features.job_records import (
    JobRecord,
    mean_positive_revenue,
    records_to_frame,
    zone_matches,
)


def _record(ts: datetime, revenue: float, origin: str = "CDMX", destination: str = "Puebla") -> JobRecord:
    return JobRecord(timestamp=ts, status="finalizado", origin=origin, destination=destination, distance=10.0, revenue=revenue)


def test_from_row_normalizes_invalid_revenue_to_zero() -> None:
    for raw in (None, "n/a", float("nan"), -250.0, 0):
        record = JobRecord.from_row({"timestamp": "2025-03-04 10:00:00", "revenue": raw})
        assert record.revenue == 0.0
        assert record.timestamp == datetime(2025, 3, 4, 10, 0)


def test_from_row_converts_timezone_aware_timestamps_to_naive_utc() -> None:
    record = JobRecord.from_row(
        {
            "timestamp": "2025-03-04T10:00:00-06:00",
            "status": "finalizado",
            "origin": "Manzanillo",
            "destination": "Guadalajara",
            "distance": "310.5",
            "revenue": "8200",
        }
    )
    assert record.timestamp == datetime(2025, 3, 4, 16, 0)
    assert record.timestamp.tzinfo is None
    assert record.distance == 310.5
    assert record.revenue == 8200.0


def test_records_to_frame_is_time_ordered_with_month_keys() -> None:
    records = [
        _record(datetime(2025, 3, 1), 100.0),
        _record(datetime(2025, 1, 15), 200.0),
        _record(datetime(2024, 12, 31), 300.0),
    ]
    frame = records_to_frame(records)
    assert frame["month"].tolist() == ["2024-12", "2025-01", "2025-03"]
    assert frame["revenue"].tolist() == [300.0, 200.0, 100.0]


def test_records_to_frame_empty_input_has_expected_columns() -> None:
    frame = records_to_frame([])
    assert frame.empty
    assert {"timestamp", "revenue", "month", "origin", "destination"} <= set(frame.columns)
    assert mean_positive_revenue(frame) == 0.0


def test_mean_positive_revenue_ignores_zero_revenue_jobs() -> None:
    frame = records_to_frame([_record(datetime(2025, 1, 1), 0.0), _record(datetime(2025, 1, 2), 600.0)])
    assert mean_positive_revenue(frame) == 600.0


def test_zone_matches_origin_or_destination_case_insensitive() -> None:
    frame = records_to_frame(
        [
            _record(datetime(2025, 1, 1), 1.0, origin="Puerto de Veracruz", destination="CDMX"),
            _record(datetime(2025, 1, 2), 1.0, origin="Monterrey", destination="veracruz centro"),
            _record(datetime(2025, 1, 3), 1.0, origin="Tijuana", destination="Mexicali"),
        ]
    )
    assert zone_matches(frame, "Veracruz").tolist() == [True, True, False]
    assert not zone_matches(frame, "").any()
