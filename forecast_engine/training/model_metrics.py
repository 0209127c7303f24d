"""
Post-training diagnostics for the linear demand model.
Feature importance is the normalized absolute weight of each standardized feature.
Accuracy is reported as 1 - MAPE over non-zero actuals so it reads on the same 0..1 scale as R².
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from forecast_engine.training.linear_trainer import LinearModel


def generate_feature_importance(model: LinearModel) -> dict[str, float]:
    """Share of total absolute weight per feature; uniform when every weight is zero."""

    names = list(model.feature_names)
    if not names:
        return {}
    magnitudes = np.abs(np.nan_to_num(np.asarray(model.weights, dtype=float)))
    total = float(magnitudes.sum())
    if total <= 0:
        uniform = 1.0 / len(names)
        return {name: uniform for name in names}
    return {name: float(value / total) for name, value in zip(names, magnitudes)}


def calculate_model_accuracy(predictions: Sequence[float], actual: Sequence[float]) -> float:
    """1 - MAPE over pairs with a non-zero actual value, floored at 0."""

    predicted = np.asarray(predictions, dtype=float)
    observed = np.asarray(actual, dtype=float)
    if predicted.size == 0 or predicted.shape != observed.shape:
        return 0.0
    valid = (observed != 0) & np.isfinite(observed) & np.isfinite(predicted)
    if not valid.any():
        return 0.0
    mape = float(np.mean(np.abs((observed[valid] - predicted[valid]) / observed[valid])))
    return max(0.0, 1.0 - mape)
