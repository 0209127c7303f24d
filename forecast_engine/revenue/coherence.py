"""
Cross-check of a month-end revenue forecast against its services x AOV decomposition.
Each failed check adds an alert and an actionable recommendation and lowers the confidence tier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from forecast_engine.common.numeric import finite_or, safe_divide
from forecast_engine.forecast_config import ForecastConfig
from forecast_engine.revenue.dynamic_aov import DynamicAOV
from forecast_engine.revenue.intra_month import TIER_HIGH, TIER_LOW, IntraMonthProjection, downgrade_tier

LOGGER = logging.getLogger("revenue")


@dataclass(frozen=True)
class CoherenceReport:
    is_coherent: bool
    services_projection: float
    revenue_from_services: float
    revenue_projection: float
    implied_aov: float
    expected_aov: float
    aov_deviation_pct: float
    alerts: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    confidence: str = TIER_HIGH
    methodology: str = ""

    @property
    def prefers_services_basis(self) -> bool:
        return not self.is_coherent and self.confidence == TIER_LOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_coherent": self.is_coherent,
            "services_projection": self.services_projection,
            "revenue_from_services": self.revenue_from_services,
            "revenue_projection": self.revenue_projection,
            "implied_aov": self.implied_aov,
            "expected_aov": self.expected_aov,
            "aov_deviation_pct": self.aov_deviation_pct,
            "alerts": list(self.alerts),
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
            "methodology": self.methodology,
        }


def expected_aov_for(aov: DynamicAOV) -> float:
    current = finite_or(aov.current_period_avg, 0.0)
    return current if current > 0 else finite_or(aov.historical_avg, 0.0)


def validate_coherence(
    services_projection: float,
    revenue_projection: float,
    aov: DynamicAOV,
    intra_month: IntraMonthProjection | None = None,
    *,
    strong_first_week: bool = False,
    config: ForecastConfig | None = None,
) -> CoherenceReport:
    config = config or ForecastConfig()
    services = max(finite_or(services_projection, 0.0), 0.0)
    revenue = max(finite_or(revenue_projection, 0.0), 0.0)
    expected = expected_aov_for(aov)
    implied = safe_divide(revenue, services)
    revenue_from_services = services * expected

    alerts: list[str] = []
    recommendations: list[str] = []
    is_coherent = True
    tier = TIER_HIGH

    aov_deviation = safe_divide(abs(implied - expected), expected) * 100.0
    if services > 0 and aov_deviation > config.coherence_aov_tolerance_pct:
        is_coherent = False
        tier = TIER_LOW
        alerts.append(
            f"Implied AOV {implied:,.0f} deviates {aov_deviation:.1f}% from expected AOV {expected:,.0f}"
        )
        recommendations.append("Review the services forecast or the AOV assumption before using this figure")

    revenue_gap = safe_divide(abs(revenue - revenue_from_services), revenue_from_services) * 100.0
    if revenue_from_services > 0 and revenue_gap > config.coherence_revenue_tolerance_pct:
        is_coherent = False
        tier = TIER_LOW
        alerts.append(
            f"Revenue forecast {revenue:,.0f} differs {revenue_gap:.1f}% from services x AOV {revenue_from_services:,.0f}"
        )
        recommendations.append("Prefer the services x AOV basis for this month")

    if strong_first_week and revenue < config.strong_week_minimum_revenue:
        alerts.append(
            f"Strong first week but forecast {revenue:,.0f} is below {config.strong_week_minimum_revenue:,.0f}"
        )
        recommendations.append("Raise momentum weighting; the first-week pace supports a higher month")
        if tier == TIER_HIGH:
            tier = downgrade_tier(tier)

    if intra_month is not None and intra_month.confidence == TIER_HIGH:
        divergence = safe_divide(abs(revenue - intra_month.month_end_estimate), intra_month.month_end_estimate)
        if divergence > config.coherence_intra_month_tolerance:
            is_coherent = False
            alerts.append(
                f"High-confidence intra-month projection {intra_month.month_end_estimate:,.0f} "
                f"disagrees {divergence:.0%} with the forecast"
            )
            recommendations.append("Increase the intra-month projection weight")
            if tier == TIER_HIGH:
                tier = downgrade_tier(tier)

    if not alerts:
        recommendations.append("Forecast is coherent and well calibrated")
    else:
        LOGGER.warning("Coherence check raised %s alert(s); tier=%s", len(alerts), tier)

    return CoherenceReport(
        is_coherent=is_coherent,
        services_projection=services,
        revenue_from_services=revenue_from_services,
        revenue_projection=revenue,
        implied_aov=implied,
        expected_aov=expected,
        aov_deviation_pct=aov_deviation,
        alerts=alerts,
        recommendations=recommendations,
        confidence=tier,
        methodology="services x AOV decomposition",
    )
