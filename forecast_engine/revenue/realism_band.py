"""
Realism band for month-end revenue figures.
Bounds come from the trailing monthly totals when history exists and from the configured hard limits otherwise.
The ceiling never drops below the revenue already accumulated this month.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from forecast_engine.common.numeric import finite_or
from forecast_engine.forecast_config import ForecastConfig


@dataclass(frozen=True)
class RealismBand:
    """Absolute floor and ceiling every month-end revenue figure is clamped into."""

    floor: float
    ceiling: float
    historical_max: float
    historical_min: float
    historical_avg: float

    @property
    def has_history(self) -> bool:
        return self.historical_max > 0

    def clamp(self, value: float) -> tuple[float, bool]:
        """Clamped value and whether clamping changed it."""

        number = finite_or(value, self.floor)
        bounded = max(self.floor, min(self.ceiling, number))
        return bounded, bounded != number

    def to_dict(self) -> dict[str, Any]:
        return {
            "floor": self.floor,
            "ceiling": self.ceiling,
            "historical_max": self.historical_max,
            "historical_min": self.historical_min,
            "historical_avg": self.historical_avg,
        }


def compute_realism_band(
    monthly_totals: Sequence[float],
    accumulated_revenue: float,
    config: ForecastConfig,
) -> RealismBand:
    accumulated = max(finite_or(accumulated_revenue, 0.0), 0.0)
    totals = np.asarray([finite_or(value, 0.0) for value in monthly_totals], dtype=float)
    totals = totals[totals > 0]

    if totals.size == 0:
        floor = max(accumulated, config.hard_floor_revenue)
        ceiling = max(config.hard_ceiling_revenue, floor)
        return RealismBand(floor=floor, ceiling=ceiling, historical_max=0.0, historical_min=0.0, historical_avg=0.0)

    historical_max = float(totals.max())
    historical_min = float(totals.min())
    ceiling = min(config.hard_ceiling_revenue, historical_max * config.history_ceiling_ratio)
    ceiling = max(ceiling, accumulated)
    floor = min(max(accumulated, historical_min * config.history_floor_ratio), ceiling)
    return RealismBand(
        floor=floor,
        ceiling=ceiling,
        historical_max=historical_max,
        historical_min=historical_min,
        historical_avg=float(totals.mean()),
    )
