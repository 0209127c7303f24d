"""
Seeded k-means segmentation of operating zones into behavioral archetypes.
Each zone is described by its zone feature vector; clusters are mapped to one of four canonical archetypes.
The same records, zones and seed always produce the same assignment.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from forecast_engine.features.feature_builder import build_zone_features
from forecast_engine.features.job_records import JobRecord, Zone, records_to_frame
from forecast_engine.forecast_config import ForecastConfig

LOGGER = logging.getLogger("segmentation")


@dataclass(frozen=True)
class ClusterCharacteristics:
    avg_demand: float
    growth_rate: float
    seasonality_strength: float
    volatility: float
    recommended_strategy: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "avg_demand": self.avg_demand,
            "growth_rate": self.growth_rate,
            "seasonality_strength": self.seasonality_strength,
            "volatility": self.volatility,
            "recommended_strategy": self.recommended_strategy,
        }


ARCHETYPES: tuple[ClusterCharacteristics, ...] = (
    ClusterCharacteristics(
        avg_demand=45.0,
        growth_rate=0.10,
        seasonality_strength=0.3,
        volatility=0.20,
        recommended_strategy="High-demand stable zone: maintain current capacity and focus on service consistency.",
    ),
    ClusterCharacteristics(
        avg_demand=25.0,
        growth_rate=0.25,
        seasonality_strength=0.5,
        volatility=0.35,
        recommended_strategy="Growing zone: plan a moderate 15-20% capacity expansion ahead of demand.",
    ),
    ClusterCharacteristics(
        avg_demand=12.0,
        growth_rate=0.05,
        seasonality_strength=0.8,
        volatility=0.60,
        recommended_strategy="Seasonal zone: staff flexibly around peak months and keep a reserve pool.",
    ),
    ClusterCharacteristics(
        avg_demand=8.0,
        growth_rate=0.40,
        seasonality_strength=0.2,
        volatility=0.80,
        recommended_strategy="Emerging zone: invest in market development with aggressive recruitment.",
    ),
)


@dataclass(frozen=True)
class ZoneProfile:
    zone_id: str
    zone_name: str
    feature_vector: tuple[float, ...]
    cluster_id: int


@dataclass(frozen=True)
class ZoneCluster:
    zone_id: str
    zone_name: str
    feature_vector: tuple[float, ...]
    cluster_id: int
    characteristics: ClusterCharacteristics

    def to_dict(self) -> dict[str, Any]:
        return {
            "zone_id": self.zone_id,
            "zone_name": self.zone_name,
            "feature_vector": list(self.feature_vector),
            "cluster_id": self.cluster_id,
            "characteristics": self.characteristics.to_dict(),
        }


def _assign(features: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    distances = np.linalg.norm(features[:, None, :] - centroids[None, :, :], axis=2)
    return np.argmin(distances, axis=1)


def kmeans(
    features: np.ndarray,
    *,
    cluster_count: int,
    max_iterations: int,
    seed: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Lloyd iterations from uniform [0, 1) centroids; empty clusters keep their previous centroid."""

    rng = np.random.default_rng(seed)
    centroids = rng.random((cluster_count, features.shape[1]))
    assignments = np.full(features.shape[0], -1, dtype=int)

    for iteration in range(max_iterations):
        updated = _assign(features, centroids)
        if np.array_equal(updated, assignments):
            LOGGER.debug("k-means converged after %s iterations", iteration)
            break
        assignments = updated
        for cluster_id in range(cluster_count):
            members = features[assignments == cluster_id]
            if len(members):
                centroids[cluster_id] = members.mean(axis=0)

    return assignments, centroids


def _nearest_archetype(centroid: np.ndarray) -> int:
    # centroid layout: avg_demand, avg_revenue_thousands, volatility, growth_rate
    point = np.array([centroid[0], centroid[2], centroid[3]])
    references = np.array([[a.avg_demand, a.volatility, a.growth_rate] for a in ARCHETYPES])
    return int(np.argmin(np.linalg.norm(references - point, axis=1)))


def archetype_for(cluster_id: int, centroid: np.ndarray, mode: str) -> ClusterCharacteristics:
    if mode == "nearest":
        return ARCHETYPES[_nearest_archetype(centroid)]
    return ARCHETYPES[cluster_id % len(ARCHETYPES)]


def build_zone_profiles(records: Iterable[JobRecord], zones: Sequence[Zone]) -> list[ZoneProfile]:
    frame = records_to_frame(records)
    return [
        ZoneProfile(
            zone_id=zone.zone_id,
            zone_name=zone.zone_name,
            feature_vector=tuple(build_zone_features(frame, zone.zone_name)),
            cluster_id=-1,
        )
        for zone in zones
    ]


def cluster_zones(
    records: Iterable[JobRecord],
    zones: Sequence[Zone],
    *,
    seed: int | None = None,
    config: ForecastConfig | None = None,
) -> list[ZoneCluster]:
    config = config or ForecastConfig()
    profiles = build_zone_profiles(records, zones)
    if not profiles:
        LOGGER.info("No zones supplied; nothing to cluster")
        return []

    effective_seed = config.cluster_seed if seed is None else seed
    features = np.nan_to_num(np.array([p.feature_vector for p in profiles], dtype=float))
    assignments, centroids = kmeans(
        features,
        cluster_count=config.cluster_count,
        max_iterations=config.cluster_max_iterations,
        seed=effective_seed,
    )

    clusters = [
        ZoneCluster(
            zone_id=profile.zone_id,
            zone_name=profile.zone_name,
            feature_vector=profile.feature_vector,
            cluster_id=int(cluster_id),
            characteristics=archetype_for(int(cluster_id), centroids[cluster_id], config.archetype_mode),
        )
        for profile, cluster_id in zip(profiles, assignments)
    ]
    LOGGER.info(
        "Clustered %s zones into %s clusters (seed=%s, mode=%s)",
        len(clusters),
        len({c.cluster_id for c in clusters}),
        effective_seed,
        config.archetype_mode,
    )
    return clusters
