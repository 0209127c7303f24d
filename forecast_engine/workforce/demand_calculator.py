"""
Required-workforce (custodian) estimate from daily job volume and zone classification.
The long-haul share of a zone decides how much of the volume ties a worker up for about two days per job;
local jobs assume a worker available five days out of seven.
"""

from __future__ import annotations

import logging
import math
import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from forecast_engine.common.numeric import clamp, finite_or

LOGGER = logging.getLogger("workforce")

FORANEO_JOBS_PER_WORKER = 0.5
LOCAL_JOBS_PER_WORKER = 0.71
MODEL_DAYS_PER_MONTH = 30.0

# Jan..Dec
SEASONAL_FACTORS: tuple[float, ...] = (0.95, 0.92, 1.00, 1.00, 1.02, 0.97, 0.88, 0.87, 0.98, 1.05, 1.15, 1.20)


@dataclass(frozen=True)
class ZoneClass:
    name: str
    foraneo_share: float
    min_workers: int
    max_workers: int
    keywords: tuple[str, ...] = ()


ZONE_CLASSES: tuple[ZoneClass, ...] = (
    ZoneClass("central", 0.80, 15, 300, ("centro", "cdmx", "ciudad de mexico", "metropolitana", "central")),
    ZoneClass("port", 0.90, 10, 200, ("puerto", "manzanillo", "veracruz", "lazaro cardenas", "port")),
    ZoneClass("border", 0.75, 10, 150, ("frontera", "tijuana", "juarez", "nuevo laredo", "reynosa", "border", "norte")),
)
REGIONAL = ZoneClass("regional", 0.70, 5, 100)


@dataclass(frozen=True)
class DemandInputs:
    daily_jobs: float | None = None
    month: int | None = None
    activity_factor: float = 1.0
    seasonal_factor: float | None = None

    def resolved_seasonal_factor(self) -> float:
        if self.seasonal_factor is not None:
            return self.seasonal_factor
        if self.month is not None and 1 <= self.month <= 12:
            return seasonal_factor_for(self.month)
        return 1.0


@dataclass(frozen=True)
class DemandPrediction:
    custodians_needed: int
    local_jobs_per_day: float
    foraneo_jobs_per_day: float
    zone_class: str
    applied_factors: dict[str, float]
    rationale: list[str] = field(default_factory=list)
    model_confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "custodians_needed": self.custodians_needed,
            "local_jobs_per_day": self.local_jobs_per_day,
            "foraneo_jobs_per_day": self.foraneo_jobs_per_day,
            "zone_class": self.zone_class,
            "applied_factors": dict(self.applied_factors),
            "rationale": list(self.rationale),
            "model_confidence": self.model_confidence,
        }


def _normalize(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def classify_zone(zone_name: str) -> ZoneClass:
    normalized = _normalize(zone_name)
    for zone_class in ZONE_CLASSES:
        if any(re.search(rf"\b{re.escape(keyword)}\b", normalized) for keyword in zone_class.keywords):
            return zone_class
    return REGIONAL


def seasonal_factor_for(month: int) -> float:
    return SEASONAL_FACTORS[(int(month) - 1) % 12]


def _sanitize_volume(value: float | None) -> float:
    volume = finite_or(value, 0.0)
    return volume if volume > 0 else 0.0


def _sanitize_factor(value: float | None) -> float:
    factor = finite_or(value, 1.0)
    return factor if factor >= 0 else 1.0


def calculate_demand(
    daily_jobs: float | None,
    zone_name: str,
    seasonal_factor: float | None = 1.0,
    activity_factor: float | None = 1.0,
) -> DemandPrediction:
    zone_class = classify_zone(zone_name)
    volume = _sanitize_volume(daily_jobs)
    seasonal = _sanitize_factor(seasonal_factor)
    activity = _sanitize_factor(activity_factor)

    # rounding keeps ceil() stable against float noise such as 8.000000000000002
    foraneo = round(volume * zone_class.foraneo_share, 6)
    local = round(volume - foraneo, 6)

    foraneo_workers = math.ceil(round(foraneo / FORANEO_JOBS_PER_WORKER, 6))
    local_workers = math.ceil(round(local / LOCAL_JOBS_PER_WORKER, 6))
    base_workers = foraneo_workers + local_workers
    adjusted = int(round(base_workers * seasonal * activity))
    needed = int(clamp(adjusted, zone_class.min_workers, zone_class.max_workers))

    rationale = [
        f"Zone '{zone_name}' classified as {zone_class.name} with {zone_class.foraneo_share:.0%} long-haul share",
        f"Daily volume {volume:.2f} split into {foraneo:.2f} long-haul and {local:.2f} local jobs",
        f"Long-haul workers: ceil({foraneo:.2f} / {FORANEO_JOBS_PER_WORKER}) = {foraneo_workers}",
        f"Local workers: ceil({local:.2f} / {LOCAL_JOBS_PER_WORKER}) = {local_workers}",
        f"Base {base_workers} x seasonal {seasonal:.2f} x activity {activity:.2f} = {adjusted}",
    ]
    if needed != adjusted:
        rationale.append(
            f"Clamped to {zone_class.name} bounds [{zone_class.min_workers}, {zone_class.max_workers}]: {needed}"
        )
    else:
        rationale.append(f"Within {zone_class.name} bounds [{zone_class.min_workers}, {zone_class.max_workers}]")

    return DemandPrediction(
        custodians_needed=needed,
        local_jobs_per_day=local,
        foraneo_jobs_per_day=foraneo,
        zone_class=zone_class.name,
        applied_factors={"seasonal": seasonal, "activity": activity, "foraneo_share": zone_class.foraneo_share},
        rationale=rationale,
    )


def estimate_daily_jobs(model: Any, feature_vector: Sequence[float] | None) -> tuple[float, float]:
    """Daily volume and confidence from a trained model; the monthly prediction is spread over 30 days."""

    confidence = clamp(finite_or(getattr(model, "r_squared", 0.0), 0.0) + 0.2, 0.1, 0.95)
    if feature_vector is None or len(feature_vector) == 0:
        LOGGER.warning("No zone feature vector available for model estimate; assuming zero volume")
        return 0.0, confidence
    predicted = model.predict(np.asarray([feature_vector], dtype=float))
    monthly_jobs = max(0.0, finite_or(float(predicted[0]) if len(predicted) else 0.0, 0.0))
    return monthly_jobs / MODEL_DAYS_PER_MONTH, confidence
