"""
Confidence-weighted combination of the four month-end revenue candidates.
Components: completed-week pattern, intra-month projection, services x AOV, and momentum.
Base weights are perturbed by rules, clipped at zero, renormalized, and the result is clamped to the realism band.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from forecast_engine.common.numeric import clamp, finite_or, safe_divide
from forecast_engine.forecast_config import ENSEMBLE_COMPONENTS, ForecastConfig
from forecast_engine.revenue.coherence import CoherenceReport
from forecast_engine.revenue.dynamic_aov import DynamicAOV
from forecast_engine.revenue.intra_month import (
    TIER_HIGH,
    TIER_LOW,
    TIER_MEDIUM,
    IntraMonthProjection,
    MonthToDate,
    lower_tier,
)
from forecast_engine.revenue.realism_band import RealismBand
from forecast_engine.revenue.weekly_patterns import WEEKS_PER_MONTH, WeeklyPattern, week_bounds

LOGGER = logging.getLogger("revenue")

MONTHS_PER_YEAR = 12
CONFIDENCE_BASE = 0.7
CONFIDENCE_MIN = 0.3
CONFIDENCE_MAX = 0.95
INTRA_TIER_CONFIDENCE = {TIER_HIGH: 0.15, TIER_MEDIUM: 0.05, TIER_LOW: -0.05}
TIER_CONFIDENCE_CAP = {TIER_LOW: 0.5, TIER_MEDIUM: 0.75}


@dataclass(frozen=True)
class EnsembleForecast:
    monthly_revenue: float
    monthly_jobs: int
    avg_revenue_per_job: float
    confidence: float
    confidence_tier: str
    annual_revenue: float
    annual_jobs: int
    component_breakdown: dict[str, float]
    weights: dict[str, float]
    methodology: list[str] = field(default_factory=list)
    coherence_report: CoherenceReport | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "monthly_revenue": self.monthly_revenue,
            "monthly_jobs": self.monthly_jobs,
            "avg_revenue_per_job": self.avg_revenue_per_job,
            "confidence": self.confidence,
            "confidence_tier": self.confidence_tier,
            "annual_revenue": self.annual_revenue,
            "annual_jobs": self.annual_jobs,
            "component_breakdown": dict(self.component_breakdown),
            "weights": dict(self.weights),
            "methodology": list(self.methodology),
            "coherence_report": self.coherence_report.to_dict() if self.coherence_report else None,
            "diagnostics": self.diagnostics,
        }


def safe_aov(aov: DynamicAOV, config: ForecastConfig) -> float:
    current = finite_or(aov.current_period_avg, 0.0)
    if 0 < current < config.aov_sane_max:
        return current
    return config.aov_fallback


def is_strong_first_week(month_to_date: MonthToDate, config: ForecastConfig) -> bool:
    return month_to_date.first_week_revenue >= config.strong_first_week_revenue


def weekly_pattern_estimate(month_to_date: MonthToDate, pattern: WeeklyPattern, fallback: float) -> float:
    """Revenue of completed week buckets scaled up by their cumulative historical share."""

    as_of = month_to_date.as_of
    completed_revenue = 0.0
    completed_share = 0.0
    for week in range(1, WEEKS_PER_MONTH + 1):
        _, last_day = week_bounds(as_of.year, as_of.month, week, month_to_date.days_in_month)
        if last_day >= as_of.day:
            break
        completed_revenue += month_to_date.week_bucket_revenue.get(week, 0.0)
        completed_share += pattern.share(week)

    if completed_share <= 0:
        return fallback
    return safe_divide(completed_revenue, completed_share, default=fallback)


def momentum_estimate(
    base_revenue: float,
    weekly_estimate: float,
    strong_first_week: bool,
    config: ForecastConfig,
) -> float:
    if not strong_first_week:
        return base_revenue
    raised = max(base_revenue, weekly_estimate, config.momentum_floor_revenue)
    return min(raised, config.momentum_ceiling_revenue)


def ensemble_weights(
    *,
    intra_tier: str,
    pattern_confidence: float,
    aov_stable: bool,
    strong_first_week: bool,
    config: ForecastConfig,
) -> dict[str, float]:
    weights = {name: float(config.base_weights[name]) for name in ENSEMBLE_COMPONENTS}

    def shift(deltas: dict[str, float]) -> None:
        for name, delta in deltas.items():
            weights[name] += delta

    if intra_tier == TIER_HIGH:
        shift({"intra_month": 0.15, "weekly_pattern": -0.10, "services_aov": -0.05})
    if pattern_confidence > 0.7:
        shift({"weekly_pattern": 0.10, "momentum": -0.10})
    if aov_stable:
        shift({"services_aov": 0.10, "weekly_pattern": -0.05, "momentum": -0.05})
    if strong_first_week:
        shift({"momentum": 0.15, "weekly_pattern": -0.10, "services_aov": -0.05})

    clipped = {name: max(weight, 0.0) for name, weight in weights.items()}
    total = sum(clipped.values())
    if total <= 0:
        base_total = sum(config.base_weights[name] for name in ENSEMBLE_COMPONENTS)
        return {name: config.base_weights[name] / base_total for name in ENSEMBLE_COMPONENTS}
    return {name: weight / total for name, weight in clipped.items()}


def ensemble_confidence(
    *,
    pattern_confidence: float,
    intra_tier: str,
    aov_stable: bool,
    strong_first_week: bool,
    has_history: bool,
    config: ForecastConfig,
) -> float:
    score = CONFIDENCE_BASE + 0.2 * finite_or(pattern_confidence, 0.0)
    score += INTRA_TIER_CONFIDENCE.get(intra_tier, 0.0)
    score += 0.1 if aov_stable else -0.1
    if strong_first_week:
        score += 0.1
    if not has_history:
        score -= config.no_history_confidence_penalty
    return clamp(score, CONFIDENCE_MIN, CONFIDENCE_MAX)


def tier_for_score(score: float) -> str:
    if score >= 0.8:
        return TIER_HIGH
    if score >= 0.6:
        return TIER_MEDIUM
    return TIER_LOW


def combine_forecast(
    *,
    month_to_date: MonthToDate,
    pattern: WeeklyPattern,
    intra_month: IntraMonthProjection,
    aov: DynamicAOV,
    band: RealismBand,
    base_services: float,
    config: ForecastConfig | None = None,
) -> EnsembleForecast:
    config = config or ForecastConfig()
    strong_week = is_strong_first_week(month_to_date, config)
    unit_value = safe_aov(aov, config)
    base_revenue = band.historical_avg if band.has_history else config.fallback_monthly_revenue

    intra_estimate = intra_month.month_end_estimate
    weekly = weekly_pattern_estimate(month_to_date, pattern, intra_estimate)
    components = {
        "weekly_pattern": weekly,
        "intra_month": intra_estimate,
        "services_aov": max(finite_or(base_services, 0.0), 0.0) * unit_value,
        "momentum": momentum_estimate(base_revenue, weekly, strong_week, config),
    }
    components = {name: finite_or(value, base_revenue) for name, value in components.items()}

    weights = ensemble_weights(
        intra_tier=intra_month.confidence,
        pattern_confidence=pattern.confidence,
        aov_stable=aov.is_stable,
        strong_first_week=strong_week,
        config=config,
    )
    combined = round(sum(components[name] * weights[name] for name in ENSEMBLE_COMPONENTS))
    revenue, clamped = band.clamp(combined)

    methodology = [
        f"weighted ensemble of {', '.join(ENSEMBLE_COMPONENTS)}",
        f"intra-month: {intra_month.methodology} ({intra_month.confidence})",
    ]
    if strong_week:
        methodology.append("strong first week: momentum raised")
    if clamped:
        methodology.append(f"clamped to realism band [{band.floor:,.0f}, {band.ceiling:,.0f}]")
    if not band.has_history:
        methodology.append("no monthly history: fixed floor and ceiling applied")

    confidence = ensemble_confidence(
        pattern_confidence=pattern.confidence,
        intra_tier=intra_month.confidence,
        aov_stable=aov.is_stable,
        strong_first_week=strong_week,
        has_history=band.has_history,
        config=config,
    )
    jobs = int(round(safe_divide(revenue, unit_value)))
    LOGGER.info("Ensemble forecast %.0f (%s jobs) confidence=%.2f", revenue, jobs, confidence)

    return EnsembleForecast(
        monthly_revenue=revenue,
        monthly_jobs=jobs,
        avg_revenue_per_job=unit_value,
        confidence=confidence,
        confidence_tier=tier_for_score(confidence),
        annual_revenue=revenue * MONTHS_PER_YEAR,
        annual_jobs=jobs * MONTHS_PER_YEAR,
        component_breakdown=components,
        weights=weights,
        methodology=methodology,
        diagnostics={
            "month_to_date": month_to_date.to_dict(),
            "weekly_pattern": pattern.to_dict(),
            "intra_month": intra_month.to_dict(),
            "dynamic_aov": aov.to_dict(),
            "realism_band": band.to_dict(),
            "base_services": base_services,
            "strong_first_week": strong_week,
        },
    )


def apply_coherence(
    forecast: EnsembleForecast,
    report: CoherenceReport,
    band: RealismBand,
) -> EnsembleForecast:
    """Attach the report; an incoherent low-confidence forecast is replaced by the services x AOV figure."""

    revenue = forecast.monthly_revenue
    methodology = list(forecast.methodology)
    if report.prefers_services_basis:
        revenue, _ = band.clamp(report.revenue_from_services)
        methodology.append("incoherent forecast: services x AOV basis substituted")
        LOGGER.warning("Substituting services x AOV revenue %.0f for %.0f", revenue, forecast.monthly_revenue)

    confidence = forecast.confidence
    if report.confidence in TIER_CONFIDENCE_CAP:
        confidence = min(confidence, TIER_CONFIDENCE_CAP[report.confidence])
    jobs = int(round(safe_divide(revenue, forecast.avg_revenue_per_job)))

    return replace(
        forecast,
        monthly_revenue=revenue,
        monthly_jobs=jobs,
        annual_revenue=revenue * MONTHS_PER_YEAR,
        annual_jobs=jobs * MONTHS_PER_YEAR,
        confidence=confidence,
        confidence_tier=lower_tier(tier_for_score(confidence), report.confidence),
        methodology=methodology,
        coherence_report=report,
    )
