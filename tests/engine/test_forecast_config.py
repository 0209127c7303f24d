"""
Unit tests for forecasting config resolution.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from forecast_engine.common import settings as settings_module
from forecast_engine.forecast_config import ForecastConfig, load_forecast_config

REPO_CONFIG = Path(__file__).resolve().parents[2] / "configs" / "forecasting.yaml"


def test_repo_yaml_matches_dataclass_defaults() -> None:
    assert load_forecast_config(config_path=str(REPO_CONFIG)) == ForecastConfig()


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    config = load_forecast_config(config_path=str(tmp_path / "absent.yaml"))
    assert config.cluster_seed == 42
    assert config.base_weights["intra_month"] == 0.35


def test_yaml_sections_override_defaults(tmp_path: Path) -> None:
    path = tmp_path / "forecasting.yaml"
    path.write_text(
        "clustering:\n  cluster_seed: 7\n  archetype_mode: nearest\n"
        "realism_band:\n  hard_ceiling_revenue: 15000000\n"
        "base_weights:\n  weekly_pattern: 0.1\n  intra_month: 0.5\n  services_aov: 0.2\n  momentum: 0.2\n",
        encoding="utf-8",
    )
    config = load_forecast_config(config_path=str(path))
    assert config.cluster_seed == 7
    assert config.archetype_mode == "nearest"
    assert config.hard_ceiling_revenue == 15_000_000.0
    assert config.base_weights["intra_month"] == 0.5


def test_env_overrides_win_over_yaml(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORECAST_CLUSTER_SEED", "99")
    monkeypatch.setenv("FORECAST_CV_SHUFFLE", "yes")
    monkeypatch.setenv("FORECAST_HISTORY_WINDOW_MONTHS", "6")
    config = load_forecast_config(config_path=str(REPO_CONFIG))
    assert config.cluster_seed == 99
    assert config.cv_shuffle is True
    assert config.cv_random_state == 42
    assert config.history_window_months == 6


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("- not\n- a mapping\n", "must be a mapping"),
        ("clustering:\n  unknown_knob: 1\n", "Unknown forecasting config key"),
        ("clustering:\n  archetype_mode: random\n", "archetype_mode"),
        ("realism_band:\n  hard_floor_revenue: 20000000\n", "hard_floor_revenue"),
        ("base_weights:\n  weekly_pattern: 1.0\n", "missing components"),
        ("weekly_pattern:\n  default_week_shares: [0.5, 0.5, 0.5, 0.5]\n", "sum to approximately 1"),
        ("training:\n  cv_shuffle: true\n  cv_random_state: null\n", "cv_random_state is required"),
    ],
)
def test_invalid_config_raises_value_error(tmp_path: Path, content: str, message: str) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError, match=message):
        load_forecast_config(config_path=str(path))


def test_invalid_env_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORECAST_CV_SHUFFLE", "maybe")
    with pytest.raises(ValueError, match="FORECAST_CV_SHUFFLE"):
        load_forecast_config(config_path=str(REPO_CONFIG))


def test_load_settings_success() -> None:
    settings_module.get_settings.cache_clear()
    settings = settings_module.get_settings()
    assert settings.PROJECT_NAME
    assert settings.FORECAST_CONFIG_PATH == "configs/forecasting.yaml"


def test_load_settings_missing_required(monkeypatch: pytest.MonkeyPatch) -> None:
    settings_module.get_settings.cache_clear()
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="Missing required environment variables"):
        settings_module.load_settings(load_env=False)


def test_env_random_state_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORECAST_CV_SHUFFLE", "true")
    monkeypatch.setenv("FORECAST_CV_RANDOM_STATE", "11")
    config = load_forecast_config(config_path=str(REPO_CONFIG))
    assert config.cv_shuffle is True
    assert config.cv_random_state == 11
