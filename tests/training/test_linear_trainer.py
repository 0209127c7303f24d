"""
Unit tests for gradient-descent training of the linear demand model.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

from __future__ import annotations

import json
import math

import numpy as np
import pytest

from forecast_engine.training.linear_trainer import (
    LinearModel,
    mean_squared_error,
    r_squared,
    train_linear_model,
    zero_model,
)


def _dataset() -> tuple[np.ndarray, np.ndarray]:
    features = np.array(
        [
            [120.0, 6100.0, 0.5, 1.0],
            [135.0, 6200.0, 0.87, 1.0],
            [150.0, 6350.0, 1.0, 1.0],
            [160.0, 6300.0, 0.87, 1.0],
            [148.0, 6250.0, 0.5, 1.0],
            [170.0, 6400.0, 0.0, 1.0],
        ]
    )
    return features, features[:, 0].copy()


def test_zero_samples_returns_zero_model() -> None:
    model = train_linear_model(np.zeros((0, 4)), np.zeros(0))
    assert model.mse == math.inf
    assert model.r_squared == 0.0
    assert model.weights == (0.0, 0.0, 0.0, 0.0)
    assert not model.is_trained
    assert model.to_dict()["mse"] is None
    assert zero_model().predict(np.ones((2, 4))).tolist() == [0.0, 0.0]


def test_training_is_bit_for_bit_deterministic() -> None:
    features, targets = _dataset()
    first = train_linear_model(features, targets)
    second = train_linear_model(features.copy(), targets.copy())
    assert first.weights == second.weights
    assert first.bias == second.bias
    assert first.mse == second.mse


def test_training_reduces_error_against_zero_model() -> None:
    features, targets = _dataset()
    model = train_linear_model(features, targets, learning_rate=0.001, iterations=1000)
    baseline = mean_squared_error(targets, np.zeros_like(targets))

    assert model.is_trained
    assert 0.0 <= model.r_squared <= 1.0
    assert model.mse < baseline
    assert np.all(np.isfinite(model.predict(features)))


def test_more_iterations_fit_better() -> None:
    features, targets = _dataset()
    short = train_linear_model(features, targets, learning_rate=0.01, iterations=100)
    long = train_linear_model(features, targets, learning_rate=0.01, iterations=5000)
    assert long.mse < short.mse


def test_non_finite_inputs_do_not_propagate() -> None:
    features, targets = _dataset()
    features[0, 1] = np.nan
    features[1, 2] = np.inf
    model = train_linear_model(features, targets)
    assert all(math.isfinite(w) for w in model.weights)
    assert math.isfinite(model.mse)


def test_r_squared_bounds_and_degenerate_target() -> None:
    actual = np.array([1.0, 2.0, 3.0])
    assert r_squared(actual, actual) == pytest.approx(1.0)
    assert r_squared(actual, np.array([10.0, -10.0, 30.0])) == 0.0
    assert r_squared(np.array([4.0, 4.0]), np.array([3.0, 5.0])) == 0.0
    assert r_squared(np.array([]), np.array([])) == 0.0


def test_exported_model_predicts_like_the_original() -> None:
    features, targets = _dataset()
    model = train_linear_model(features, targets)
    rebuilt = LinearModel.from_dict(json.loads(json.dumps(model.to_dict())))

    raw_rows = np.array([[100.0, 6100.0, 0.5, 1.0], [175.0, 6500.0, -0.5, 1.0]])
    assert rebuilt == model
    assert rebuilt.predict(raw_rows).tolist() == model.predict(raw_rows).tolist()
    assert model.to_dict()["feature_scales"] == list(model.feature_scales)


def test_exported_zero_model_stays_untrained() -> None:
    rebuilt = LinearModel.from_dict(json.loads(json.dumps(zero_model().to_dict())))
    assert not rebuilt.is_trained
    assert rebuilt.predict(np.ones((1, 4))).tolist() == [0.0]
