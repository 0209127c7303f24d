# This test module validates ensemble weighting, confidence scoring, and coherence substitution.
# It exists to ensure weights always renormalize to one and that forecasts never leave the realism band.
# Component inputs are constructed directly to keep each rule observable.

from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from forecast_engine.forecast_config import ForecastConfig
from forecast_engine.revenue.coherence import validate_coherence
from forecast_engine.revenue.dynamic_aov import DynamicAOV
from forecast_engine.revenue.ensemble import (
    apply_coherence,
    combine_forecast,
    ensemble_confidence,
    ensemble_weights,
    momentum_estimate,
    safe_aov,
    tier_for_score,
    weekly_pattern_estimate,
)
from forecast_engine.revenue.intra_month import IntraMonthProjection, MonthToDate
from forecast_engine.revenue.realism_band import compute_realism_band
from forecast_engine.revenue.weekly_patterns import WeeklyPattern

CONFIG = ForecastConfig()


def _aov(current: float = 6250.0, significant: bool = False) -> DynamicAOV:
    return DynamicAOV(
        current_period_avg=current,
        historical_avg=6250.0,
        deviation_pct=0.0,
        significant_change=significant,
        trend=0,
        current_samples=10,
        historical_samples=10,
    )


def _pattern(confidence: float = 0.8) -> WeeklyPattern:
    return WeeklyPattern(0.2, 0.3, 0.3, 0.2, weekend_boost=1.1, confidence=confidence, months_observed=3)


def _mtd(first_week: float = 1_000_000.0) -> MonthToDate:
    return MonthToDate(
        as_of=date(2025, 4, 8),
        days_elapsed=8,
        days_in_month=30,
        first_week_revenue=first_week,
        month_to_date_revenue=first_week,
        month_to_date_jobs=160,
        week_bucket_revenue={1: first_week, 2: 0.0, 3: 0.0, 4: 0.0},
    )


def _intra(estimate: float = 5_000_000.0, tier: str = "Alta") -> IntraMonthProjection:
    return IntraMonthProjection(
        week_end_estimate=1_000_000.0,
        month_end_estimate=estimate,
        multiplier_used=5.0,
        confidence=tier,
        methodology="historical_week1_ratio",
    )


def test_weights_with_all_rules_sum_to_one() -> None:
    weights = ensemble_weights(
        intra_tier="Alta", pattern_confidence=0.8, aov_stable=True, strong_first_week=True, config=CONFIG
    )
    assert sum(weights.values()) == pytest.approx(1.0)
    assert all(weight >= 0 for weight in weights.values())
    assert weights["intra_month"] == pytest.approx(0.50)
    assert weights["weekly_pattern"] == pytest.approx(0.10)


def test_base_weights_without_rules() -> None:
    weights = ensemble_weights(
        intra_tier="Baja", pattern_confidence=0.5, aov_stable=False, strong_first_week=False, config=CONFIG
    )
    assert weights == pytest.approx({"weekly_pattern": 0.25, "intra_month": 0.35, "services_aov": 0.25, "momentum": 0.15})


def test_negative_weights_are_clipped_then_renormalized() -> None:
    config = replace(
        CONFIG, base_weights={"weekly_pattern": 0.3, "intra_month": 0.4, "services_aov": 0.25, "momentum": 0.05}
    )
    weights = ensemble_weights(
        intra_tier="Media", pattern_confidence=0.8, aov_stable=True, strong_first_week=False, config=config
    )
    assert weights["momentum"] == 0.0
    assert sum(weights.values()) == pytest.approx(1.0)


def test_safe_aov_guards_out_of_range_values() -> None:
    assert safe_aov(_aov(7000.0), CONFIG) == 7000.0
    assert safe_aov(_aov(0.0), CONFIG) == 6350.0
    assert safe_aov(_aov(25_000.0), CONFIG) == 6350.0


def test_confidence_formula_and_bounds() -> None:
    score = ensemble_confidence(
        pattern_confidence=0.5, intra_tier="Media", aov_stable=False, strong_first_week=False, has_history=True, config=CONFIG
    )
    assert score == pytest.approx(0.7 + 0.1 + 0.05 - 0.1)
    high = ensemble_confidence(
        pattern_confidence=0.8, intra_tier="Alta", aov_stable=True, strong_first_week=True, has_history=True, config=CONFIG
    )
    assert high == 0.95
    low = ensemble_confidence(
        pattern_confidence=0.0, intra_tier="Baja", aov_stable=False, strong_first_week=False, has_history=False, config=CONFIG
    )
    assert low == 0.3
    assert [tier_for_score(s) for s in (0.9, 0.7, 0.4)] == ["Alta", "Media", "Baja"]


def test_weekly_pattern_estimate_uses_completed_buckets_only() -> None:
    # April 2025: bucket 1 is days 1-5 and is complete on the 8th
    assert weekly_pattern_estimate(_mtd(), _pattern(), 1.0) == pytest.approx(5_000_000.0)
    early = replace(_mtd(), as_of=date(2025, 4, 3), days_elapsed=3)
    assert weekly_pattern_estimate(early, _pattern(), 4_321.0) == 4_321.0


def test_momentum_raised_on_strong_week_and_capped() -> None:
    assert momentum_estimate(5_000_000.0, 4_000_000.0, False, CONFIG) == 5_000_000.0
    assert momentum_estimate(5_000_000.0, 4_000_000.0, True, CONFIG) == 6_800_000.0
    assert momentum_estimate(5_000_000.0, 14_000_000.0, True, CONFIG) == 11_000_000.0


def test_combined_forecast_stays_in_band() -> None:
    band = compute_realism_band([5_000_000.0, 5_200_000.0, 4_800_000.0], 1_000_000.0, CONFIG)
    forecast = combine_forecast(
        month_to_date=_mtd(),
        pattern=_pattern(),
        intra_month=_intra(),
        aov=_aov(),
        band=band,
        base_services=800.0,
        config=CONFIG,
    )
    assert band.floor <= forecast.monthly_revenue <= band.ceiling
    assert forecast.monthly_revenue == pytest.approx(5_000_000.0, rel=1e-6)
    assert forecast.monthly_jobs == 800
    assert forecast.annual_revenue == forecast.monthly_revenue * 12
    assert sum(forecast.weights.values()) == pytest.approx(1.0)
    assert set(forecast.component_breakdown) == {"weekly_pattern", "intra_month", "services_aov", "momentum"}
    assert "realism_band" in forecast.diagnostics


def test_incoherent_low_confidence_forecast_uses_services_basis() -> None:
    band = compute_realism_band([], 0.0, CONFIG)
    forecast = combine_forecast(
        month_to_date=_mtd(0.0),
        pattern=_pattern(0.5),
        intra_month=_intra(12_000_000.0, "Baja"),
        aov=_aov(),
        band=band,
        base_services=800.0,
        config=CONFIG,
    )
    report = validate_coherence(800.0, forecast.monthly_revenue, _aov(), None, config=CONFIG)
    assert report.prefers_services_basis

    adjusted = apply_coherence(forecast, report, band)
    assert adjusted.monthly_revenue == pytest.approx(800.0 * 6250.0)
    assert adjusted.confidence <= 0.5
    assert adjusted.confidence_tier == "Baja"
    assert adjusted.coherence_report is report
    assert any("services x AOV" in line for line in adjusted.methodology)
