from __future__ import annotations

import pytest

from forecast_engine.training.linear_trainer import LinearModel, zero_model
from forecast_engine.training.model_metrics import calculate_model_accuracy, generate_feature_importance


def _model(weights: tuple[float, ...]) -> LinearModel:
    return LinearModel(
        weights=weights,
        bias=0.0,
        feature_names=("job_count", "avg_revenue", "seasonal_signal", "activity_flag"),
        mse=1.0,
        r_squared=0.5,
        feature_means=(0.0,) * 4,
        feature_scales=(1.0,) * 4,
    )


def test_feature_importance_normalizes_absolute_weights() -> None:
    importance = generate_feature_importance(_model((3.0, -1.0, 0.0, 0.0)))
    assert importance["job_count"] == pytest.approx(0.75)
    assert importance["avg_revenue"] == pytest.approx(0.25)
    assert sum(importance.values()) == pytest.approx(1.0)


def test_feature_importance_uniform_for_zero_model() -> None:
    importance = generate_feature_importance(zero_model())
    assert set(importance.values()) == {0.25}


def test_model_accuracy_is_one_minus_mape() -> None:
    assert calculate_model_accuracy([90.0, 110.0], [100.0, 100.0]) == pytest.approx(0.9)
    assert calculate_model_accuracy([5.0, 100.0], [0.0, 100.0]) == pytest.approx(1.0)
    assert calculate_model_accuracy([500.0], [100.0]) == 0.0
    assert calculate_model_accuracy([], []) == 0.0
