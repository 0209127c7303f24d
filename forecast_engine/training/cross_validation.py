"""
Time-ordered k-fold validation for the linear demand model.
Folds are contiguous blocks of time-sorted job records so the split stays reproducible.
Randomized folds are available only as an explicit opt-in through `cv_shuffle`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from sklearn.model_selection import KFold

from forecast_engine.common.numeric import clamp, finite_or
from forecast_engine.features.feature_builder import build_monthly_features
from forecast_engine.features.job_records import JobRecord
from forecast_engine.forecast_config import ForecastConfig
from forecast_engine.training.linear_trainer import LinearModel, r_squared, train_linear_model

LOGGER = logging.getLogger("training")


@dataclass(frozen=True)
class ValidationResult:
    accuracy: float
    mse: float
    r_squared: float
    cross_validation_scores: list[float] = field(default_factory=list)
    fold_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "accuracy": self.accuracy,
            "mse": self.mse,
            "r_squared": self.r_squared,
            "cross_validation_scores": list(self.cross_validation_scores),
            "fold_count": self.fold_count,
        }


def _train_on_records(records: Sequence[JobRecord], config: ForecastConfig) -> LinearModel:
    monthly = build_monthly_features(records)
    return train_linear_model(
        monthly.features,
        monthly.targets,
        learning_rate=config.learning_rate,
        iterations=config.iterations,
    )


def _score_fold(
    train_records: Sequence[JobRecord],
    test_records: Sequence[JobRecord],
    config: ForecastConfig,
) -> float | None:
    model = _train_on_records(train_records, config)
    held_out = build_monthly_features(test_records)
    if held_out.sample_count == 0:
        return None
    score = r_squared(held_out.targets, model.predict(held_out.features))
    if not np.isfinite(score):
        return None
    return clamp(score, 0.0, 1.0)


def fold_count_for(record_count: int, config: ForecastConfig) -> int:
    return min(config.cv_max_folds, record_count // 2)


def cross_validate_model(
    records: Sequence[JobRecord],
    config: ForecastConfig | None = None,
) -> tuple[LinearModel, ValidationResult]:
    """Score contiguous held-out blocks, then retrain the returned model on every record."""

    config = config or ForecastConfig()
    ordered = sorted(records, key=lambda record: record.timestamp)

    if len(ordered) < config.cv_min_records:
        LOGGER.warning(
            "Cross-validation skipped: %s records below minimum of %s", len(ordered), config.cv_min_records
        )
        return _train_on_records(ordered, config), ValidationResult(
            accuracy=0.0, mse=0.0, r_squared=0.0, cross_validation_scores=[], fold_count=0
        )

    k = fold_count_for(len(ordered), config)
    splitter = KFold(
        n_splits=k,
        shuffle=config.cv_shuffle,
        random_state=config.cv_random_state if config.cv_shuffle else None,
    )

    scores: list[float] = []
    for fold_index, (train_idx, test_idx) in enumerate(splitter.split(np.arange(len(ordered)))):
        if len(train_idx) < config.cv_min_train_records or len(test_idx) < config.cv_min_test_records:
            LOGGER.debug("Skipping fold %s: train=%s test=%s", fold_index, len(train_idx), len(test_idx))
            continue
        score = _score_fold(
            [ordered[i] for i in train_idx],
            [ordered[i] for i in test_idx],
            config,
        )
        if score is not None:
            scores.append(score)

    if scores:
        accuracy = clamp(finite_or(float(np.mean(scores)), 0.0), 0.0, 1.0)
    else:
        LOGGER.warning("No valid cross-validation folds; using fallback accuracy %.2f", config.cv_fallback_accuracy)
        accuracy = config.cv_fallback_accuracy

    final_model = _train_on_records(ordered, config)
    result = ValidationResult(
        accuracy=accuracy,
        mse=finite_or(final_model.mse, 0.0),
        r_squared=clamp(finite_or(final_model.r_squared, 0.0), 0.0, 1.0),
        cross_validation_scores=scores,
        fold_count=k,
    )
    LOGGER.info(
        "Cross-validation complete: folds=%s valid=%s accuracy=%.3f", k, len(scores), result.accuracy
    )
    return final_model, result
