"""
Linear demand model fitted with full-batch gradient descent.
Learning rate and iteration count are fixed by config, so identical inputs always produce identical weights.
Features are standardized before descent; the model keeps the scaling so `predict` accepts raw feature vectors.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any

import numpy as np

from forecast_engine.common.numeric import finite_or
from forecast_engine.features.feature_builder import FEATURE_NAMES

LOGGER = logging.getLogger("training")

DEFAULT_LEARNING_RATE = 0.001
DEFAULT_ITERATIONS = 1000


@dataclass(frozen=True)
class LinearModel:
    weights: tuple[float, ...]
    bias: float
    feature_names: tuple[str, ...]
    mse: float
    r_squared: float
    feature_means: tuple[float, ...]
    feature_scales: tuple[float, ...]

    def predict(self, features: np.ndarray) -> np.ndarray:
        matrix = np.atleast_2d(np.asarray(features, dtype=float))
        if matrix.size == 0:
            return np.zeros(0, dtype=float)
        matrix = np.nan_to_num(matrix, nan=0.0, posinf=0.0, neginf=0.0)
        scaled = (matrix - np.asarray(self.feature_means)) / np.asarray(self.feature_scales)
        predictions = scaled @ np.asarray(self.weights) + self.bias
        return np.nan_to_num(predictions, nan=0.0, posinf=0.0, neginf=0.0)

    @property
    def is_trained(self) -> bool:
        return math.isfinite(self.mse)

    def to_dict(self) -> dict[str, Any]:
        return {
            "weights": list(self.weights),
            "bias": self.bias,
            "feature_names": list(self.feature_names),
            "mse": self.mse if math.isfinite(self.mse) else None,
            "r_squared": self.r_squared,
            "feature_means": list(self.feature_means),
            "feature_scales": list(self.feature_scales),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> LinearModel:
        """Rebuild a model exported with `to_dict`; a null `mse` marks an untrained model."""

        weights = tuple(float(w) for w in payload["weights"])
        mse = payload.get("mse")
        return cls(
            weights=weights,
            bias=float(payload["bias"]),
            feature_names=tuple(payload.get("feature_names") or FEATURE_NAMES[: len(weights)]),
            mse=math.inf if mse is None else float(mse),
            r_squared=float(payload.get("r_squared", 0.0)),
            feature_means=tuple(float(m) for m in payload.get("feature_means") or [0.0] * len(weights)),
            feature_scales=tuple(float(s) for s in payload.get("feature_scales") or [1.0] * len(weights)),
        )


def zero_model(feature_count: int = len(FEATURE_NAMES)) -> LinearModel:
    return LinearModel(
        weights=tuple([0.0] * feature_count),
        bias=0.0,
        feature_names=tuple(FEATURE_NAMES[:feature_count]),
        mse=math.inf,
        r_squared=0.0,
        feature_means=tuple([0.0] * feature_count),
        feature_scales=tuple([1.0] * feature_count),
    )


def mean_squared_error(actual: np.ndarray, predicted: np.ndarray) -> float:
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if actual.size == 0 or actual.shape != predicted.shape:
        return 0.0
    valid = np.isfinite(actual) & np.isfinite(predicted)
    if not valid.any():
        return 0.0
    return finite_or(np.mean(np.square(actual[valid] - predicted[valid])), 0.0)


def r_squared(actual: np.ndarray, predicted: np.ndarray) -> float:
    """Coefficient of determination clamped to [0, 1]; 0 when the target has no variance."""

    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if actual.size == 0 or actual.shape != predicted.shape:
        return 0.0
    valid = np.isfinite(actual) & np.isfinite(predicted)
    if not valid.any():
        return 0.0
    actual = actual[valid]
    predicted = predicted[valid]
    ss_tot = float(np.sum(np.square(actual - actual.mean())))
    if ss_tot == 0.0:
        return 0.0
    ss_res = float(np.sum(np.square(actual - predicted)))
    return float(min(1.0, max(0.0, finite_or(1.0 - ss_res / ss_tot, 0.0))))


def _standardize(features: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    means = features.mean(axis=0)
    scales = features.std(axis=0)
    scales = np.where(scales > 0, scales, 1.0)
    return (features - means) / scales, means, scales


def gradient_descent(
    features: np.ndarray,
    targets: np.ndarray,
    *,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    iterations: int = DEFAULT_ITERATIONS,
) -> tuple[np.ndarray, float]:
    sample_count, feature_count = features.shape
    weights = np.zeros(feature_count, dtype=float)
    bias = 0.0

    for _ in range(iterations):
        errors = features @ weights + bias - targets
        weights = weights - learning_rate * (features.T @ errors) / sample_count
        bias = bias - learning_rate * float(errors.sum()) / sample_count

    return weights, bias


def train_linear_model(
    features: np.ndarray,
    targets: np.ndarray,
    *,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    iterations: int = DEFAULT_ITERATIONS,
    feature_names: list[str] | None = None,
) -> LinearModel:
    names = list(feature_names or FEATURE_NAMES)
    matrix = np.asarray(features, dtype=float)
    target_vector = np.asarray(targets, dtype=float).reshape(-1)

    if matrix.ndim != 2 or matrix.shape[0] < 1 or target_vector.size != matrix.shape[0]:
        LOGGER.info("No training samples available; returning zero model")
        return zero_model(len(names))

    matrix = np.nan_to_num(matrix, nan=0.0, posinf=0.0, neginf=0.0)
    target_vector = np.nan_to_num(target_vector, nan=0.0, posinf=0.0, neginf=0.0)

    scaled, means, scales = _standardize(matrix)
    weights, bias = gradient_descent(scaled, target_vector, learning_rate=learning_rate, iterations=iterations)
    weights = np.nan_to_num(weights, nan=0.0, posinf=0.0, neginf=0.0)
    bias = finite_or(bias, 0.0)

    model = LinearModel(
        weights=tuple(float(w) for w in weights),
        bias=bias,
        feature_names=tuple(names),
        mse=0.0,
        r_squared=0.0,
        feature_means=tuple(float(m) for m in means),
        feature_scales=tuple(float(s) for s in scales),
    )
    predictions = model.predict(matrix)
    fitted = replace(
        model,
        mse=mean_squared_error(target_vector, predictions),
        r_squared=r_squared(target_vector, predictions),
    )
    LOGGER.debug("Trained linear model on %s samples: mse=%.4f r2=%.4f", matrix.shape[0], fitted.mse, fitted.r_squared)
    return fitted
