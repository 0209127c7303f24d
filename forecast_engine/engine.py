# This module exposes the call-level entry points of the forecasting engine.
# It exists so jobs, notebooks, and tests compose the model, segmentation, workforce, and revenue paths the same way.
# Synchronous entry points are pure over in-memory records; async runners await the data source first.
# Insufficient data never raises here: every path degrades to a documented fallback with lower confidence.

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date, datetime, time, timedelta

from forecast_engine.data_source import JobRecordSource
from forecast_engine.features.feature_builder import build_monthly_features, monthly_summary
from forecast_engine.features.job_records import JobRecord, Zone, as_date, records_to_frame
from forecast_engine.forecast_config import ForecastConfig
from forecast_engine.revenue.coherence import validate_coherence
from forecast_engine.revenue.dynamic_aov import calculate_dynamic_aov, history_start
from forecast_engine.revenue.ensemble import EnsembleForecast, apply_coherence, combine_forecast, is_strong_first_week
from forecast_engine.revenue.intra_month import project_month_end, summarize_month_to_date
from forecast_engine.revenue.realism_band import compute_realism_band
from forecast_engine.revenue.weekly_patterns import analyze_weekly_pattern
from forecast_engine.segmentation import zone_clusterer
from forecast_engine.segmentation.zone_clusterer import ZoneCluster
from forecast_engine.training.cross_validation import ValidationResult, cross_validate_model
from forecast_engine.training.linear_trainer import LinearModel
from forecast_engine.workforce.demand_calculator import DemandInputs, DemandPrediction, calculate_demand, estimate_daily_jobs

LOGGER = logging.getLogger("forecast_engine")


def train_and_validate(
    records: Iterable[JobRecord],
    config: ForecastConfig | None = None,
) -> tuple[LinearModel, ValidationResult]:
    return cross_validate_model(list(records), config or ForecastConfig())


def _zone_feature_vector(records: Iterable[JobRecord], zone_name: str) -> list[float] | None:
    needle = zone_name.lower()
    zone_records = [
        record
        for record in records
        if needle and (needle in record.origin.lower() or needle in record.destination.lower())
    ]
    monthly = build_monthly_features(zone_records)
    if monthly.sample_count == 0:
        return None
    return [float(value) for value in monthly.features[-1]]


def predict_zone_demand(
    zone: Zone | str,
    inputs: DemandInputs,
    model: LinearModel | None = None,
    *,
    records: Iterable[JobRecord] | None = None,
) -> DemandPrediction:
    """Workforce estimate for one zone; with a model and no daily volume, the model supplies the volume."""

    zone_name = zone.zone_name if isinstance(zone, Zone) else str(zone)
    seasonal = inputs.resolved_seasonal_factor()

    if inputs.daily_jobs is None and model is not None:
        feature_vector = _zone_feature_vector(records or [], zone_name)
        daily_jobs, model_confidence = estimate_daily_jobs(model, feature_vector)
        prediction = calculate_demand(daily_jobs, zone_name, seasonal, inputs.activity_factor)
        return replace(
            prediction,
            model_confidence=model_confidence,
            rationale=[
                f"Model estimate: {daily_jobs * 30:.1f} monthly jobs -> {daily_jobs:.2f} per day "
                f"(confidence {model_confidence:.2f})",
                *prediction.rationale,
            ],
        )

    return calculate_demand(inputs.daily_jobs, zone_name, seasonal, inputs.activity_factor)


def cluster_zones(
    records: Iterable[JobRecord],
    zones: Sequence[Zone],
    seed: int | None = None,
    config: ForecastConfig | None = None,
) -> list[ZoneCluster]:
    return zone_clusterer.cluster_zones(records, zones, seed=seed, config=config)


def _resolve_as_of(records: Sequence[JobRecord], as_of: date | datetime | None) -> date:
    if as_of is not None:
        return as_date(as_of)
    if records:
        return max(record.timestamp for record in records).date()
    return datetime.now().date()


def forecast_month(
    records: Iterable[JobRecord],
    as_of: date | datetime | None = None,
    config: ForecastConfig | None = None,
) -> EnsembleForecast:
    """Validated month-end revenue forecast for the month containing `as_of`."""

    config = config or ForecastConfig()
    records = list(records)
    as_of = _resolve_as_of(records, as_of)
    period_start = datetime(as_of.year, as_of.month, 1)
    window_start = history_start(as_of, config.history_window_months)

    history = [record for record in records if window_start <= record.timestamp < period_start]
    summary = monthly_summary(records_to_frame(history))
    monthly_totals = summary["revenue_total"].astype(float).tolist() if not summary.empty else []

    pattern = analyze_weekly_pattern(history, config)
    month_to_date = summarize_month_to_date(records, as_of, config)
    band = compute_realism_band(monthly_totals, month_to_date.month_to_date_revenue, config)
    intra_month = project_month_end(month_to_date, pattern, band, config)
    aov = calculate_dynamic_aov(records, as_of, config)

    if summary.empty:
        LOGGER.warning("No monthly history before %s; services baseline from fallback revenue", period_start.date())
        base_services = config.fallback_monthly_revenue / config.aov_fallback
    else:
        base_services = float(summary["job_count"].astype(float).mean())

    forecast = combine_forecast(
        month_to_date=month_to_date,
        pattern=pattern,
        intra_month=intra_month,
        aov=aov,
        band=band,
        base_services=base_services,
        config=config,
    )
    report = validate_coherence(
        base_services,
        forecast.monthly_revenue,
        aov,
        intra_month,
        strong_first_week=is_strong_first_week(month_to_date, config),
        config=config,
    )
    result = apply_coherence(forecast, report, band)
    LOGGER.info(
        "Forecast for %s: revenue=%.0f jobs=%s tier=%s coherent=%s",
        as_of.strftime("%Y-%m"),
        result.monthly_revenue,
        result.monthly_jobs,
        result.confidence_tier,
        report.is_coherent,
    )
    return result


def _end_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min) + timedelta(days=1)


async def run_forecast(
    source: JobRecordSource,
    *,
    as_of: date | None = None,
    config: ForecastConfig | None = None,
) -> EnsembleForecast:
    config = config or ForecastConfig()
    as_of = as_of or datetime.now().date()
    records = await source.fetch_job_records(history_start(as_of, config.history_window_months), _end_of_day(as_of))
    return forecast_month(records, as_of=as_of, config=config)


async def run_training(
    source: JobRecordSource,
    *,
    as_of: date | None = None,
    config: ForecastConfig | None = None,
) -> tuple[LinearModel, ValidationResult]:
    config = config or ForecastConfig()
    end = _end_of_day(as_of or datetime.now().date())
    records = await source.fetch_job_records(end - timedelta(days=config.training_window_days), end)
    return train_and_validate(records, config)


async def run_clustering(
    source: JobRecordSource,
    *,
    as_of: date | None = None,
    seed: int | None = None,
    config: ForecastConfig | None = None,
) -> list[ZoneCluster]:
    config = config or ForecastConfig()
    end = _end_of_day(as_of or datetime.now().date())
    records, zones = await asyncio.gather(
        source.fetch_job_records(end - timedelta(days=config.training_window_days), end),
        source.fetch_zones(),
    )
    return cluster_zones(records, zones, seed=seed, config=config)
