# This module defines the runtime configuration for the forecasting engine.
# It exists so ad hoc runs, scheduled jobs, and tests all share the same thresholds and realism clamps.
# The config is resolved from repo YAML defaults plus environment overrides to keep forecasts reproducible.
# Every numeric ceiling or floor used by the revenue path is a named field here, never a literal in the algorithms.

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

ENSEMBLE_COMPONENTS: tuple[str, ...] = ("weekly_pattern", "intra_month", "services_aov", "momentum")
VALID_ARCHETYPE_MODES = {"ordinal", "nearest"}

DEFAULT_CONFIG_PATH = "configs/forecasting.yaml"


def _load_yaml(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config at {path} must be a mapping, got: {type(loaded).__name__}")
    return dict(loaded)


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value


def _env_float(name: str, default: float | None = None) -> float | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_int(name: str, default: int | None = None) -> int | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_bool(name: str, default: bool | None = None) -> bool | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value (true/false), got: {value!r}")


def _as_float_mapping(value: Any, field_name: str) -> dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a mapping of string->float")
    return {str(key): float(raw) for key, raw in value.items()}


def _default_base_weights() -> dict[str, float]:
    return {"weekly_pattern": 0.25, "intra_month": 0.35, "services_aov": 0.25, "momentum": 0.15}


@dataclass(frozen=True)
class ForecastConfig:
    # model path
    learning_rate: float = 0.001
    iterations: int = 1000
    cv_max_folds: int = 5
    cv_min_records: int = 10
    cv_min_train_records: int = 5
    cv_min_test_records: int = 2
    cv_fallback_accuracy: float = 0.75
    cv_shuffle: bool = False
    cv_random_state: int | None = 42

    # segmentation
    cluster_count: int = 4
    cluster_max_iterations: int = 100
    cluster_seed: int = 42
    archetype_mode: str = "ordinal"

    # trailing history
    history_window_months: int = 3
    training_window_days: int = 730

    # weekly pattern
    default_week_shares: tuple[float, float, float, float] = (0.20, 0.28, 0.30, 0.22)
    weekend_boost: float = 1.1
    pattern_min_months: int = 2
    pattern_confidence_high: float = 0.8
    pattern_confidence_low: float = 0.5

    # intra-month projection
    first_week_days: int = 7
    strong_first_week_revenue: float = 1_600_000.0
    strong_week_minimum_revenue: float = 6_500_000.0
    max_pace_growth: float = 0.15
    historical_ratio_min_days: int = 8
    max_week1_multiplier: float = 6.0
    fallback_monthly_revenue: float = 4_800_000.0

    # realism band
    history_ceiling_ratio: float = 1.15
    history_floor_ratio: float = 0.70
    hard_floor_revenue: float = 3_500_000.0
    hard_ceiling_revenue: float = 12_000_000.0

    # average order value
    aov_fallback: float = 6350.0
    aov_sane_max: float = 20_000.0
    aov_significant_change_pct: float = 5.0

    # ensemble
    base_weights: dict[str, float] = field(default_factory=_default_base_weights)
    momentum_floor_revenue: float = 6_800_000.0
    momentum_ceiling_revenue: float = 11_000_000.0
    no_history_confidence_penalty: float = 0.3

    # coherence
    coherence_aov_tolerance_pct: float = 15.0
    coherence_revenue_tolerance_pct: float = 20.0
    coherence_intra_month_tolerance: float = 0.25

    # data source
    jobs_table: str = "servicios_custodia"
    zones_table: str = "zonas_operacion_nacional"
    cancelled_status_pattern: str = "%cancelado%"
    fetch_timeout_seconds: float = 30.0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["default_week_shares"] = list(self.default_week_shares)
        return payload


def _flatten_sections(raw: dict[str, Any]) -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, dict) and key != "base_weights":
            for inner_key, inner_value in value.items():
                flat[str(inner_key)] = inner_value
        else:
            flat[str(key)] = value
    return flat


def _coerce(name: str, value: Any, default: Any) -> Any:
    if name == "base_weights":
        return _as_float_mapping(value, name)
    if name == "default_week_shares":
        shares = tuple(float(item) for item in value)
        if len(shares) != 4:
            raise ValueError(f"default_week_shares must have 4 entries, got {len(shares)}")
        return shares
    if value is None:
        return None
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, int) and default is not None:
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def validate_forecast_config(config: ForecastConfig) -> ForecastConfig:
    if config.iterations <= 0:
        raise ValueError(f"iterations must be > 0, got {config.iterations}")
    if config.learning_rate <= 0:
        raise ValueError(f"learning_rate must be > 0, got {config.learning_rate}")
    if config.cv_max_folds < 2:
        raise ValueError(f"cv_max_folds must be >= 2, got {config.cv_max_folds}")
    if config.cv_min_records < 4:
        raise ValueError(f"cv_min_records must be >= 4, got {config.cv_min_records}")
    if config.cv_shuffle and config.cv_random_state is None:
        raise ValueError("cv_random_state is required when cv_shuffle is enabled")
    if config.cluster_count <= 0:
        raise ValueError(f"cluster_count must be > 0, got {config.cluster_count}")
    if config.cluster_max_iterations <= 0:
        raise ValueError(f"cluster_max_iterations must be > 0, got {config.cluster_max_iterations}")
    if config.archetype_mode not in VALID_ARCHETYPE_MODES:
        raise ValueError(f"archetype_mode must be one of: {sorted(VALID_ARCHETYPE_MODES)}")
    if config.history_window_months <= 0:
        raise ValueError(f"history_window_months must be > 0, got {config.history_window_months}")
    if config.hard_floor_revenue > config.hard_ceiling_revenue:
        raise ValueError("hard_floor_revenue must be <= hard_ceiling_revenue")
    missing = [name for name in ENSEMBLE_COMPONENTS if name not in config.base_weights]
    if missing:
        raise ValueError(f"base_weights missing components: {missing}")
    if any(weight < 0 for weight in config.base_weights.values()) or sum(config.base_weights.values()) <= 0:
        raise ValueError("base_weights must be non-negative with a positive total")
    if abs(sum(config.default_week_shares) - 1.0) > 0.05:
        raise ValueError("default_week_shares must sum to approximately 1")
    return config


def load_forecast_config(*, config_path: str = DEFAULT_CONFIG_PATH) -> ForecastConfig:
    """Resolve the forecasting config from YAML defaults and `FORECAST_*` environment overrides."""

    defaults = ForecastConfig()
    overrides: dict[str, Any] = {}

    if Path(config_path).exists():
        known = set(defaults.to_dict())
        for name, value in _flatten_sections(_load_yaml(config_path)).items():
            if name not in known:
                raise ValueError(f"Unknown forecasting config key: {name!r}")
            overrides[name] = _coerce(name, value, getattr(defaults, name))

    config = replace(defaults, **overrides)

    env_overrides: dict[str, Any] = {}
    seed = _env_int("FORECAST_CLUSTER_SEED", None)
    if seed is not None:
        env_overrides["cluster_seed"] = seed
    history_months = _env_int("FORECAST_HISTORY_WINDOW_MONTHS", None)
    if history_months is not None:
        env_overrides["history_window_months"] = history_months
    archetype_mode = _env_str("FORECAST_ARCHETYPE_MODE", None)
    if archetype_mode is not None:
        env_overrides["archetype_mode"] = archetype_mode
    cv_shuffle = _env_bool("FORECAST_CV_SHUFFLE", None)
    if cv_shuffle is not None:
        env_overrides["cv_shuffle"] = cv_shuffle
    cv_random_state = _env_int("FORECAST_CV_RANDOM_STATE", None)
    if cv_random_state is not None:
        env_overrides["cv_random_state"] = cv_random_state
    hard_ceiling = _env_float("FORECAST_HARD_CEILING_REVENUE", None)
    if hard_ceiling is not None:
        env_overrides["hard_ceiling_revenue"] = hard_ceiling
    hard_floor = _env_float("FORECAST_HARD_FLOOR_REVENUE", None)
    if hard_floor is not None:
        env_overrides["hard_floor_revenue"] = hard_floor
    timeout = _env_float("FORECAST_FETCH_TIMEOUT_SECONDS", None)
    if timeout is not None:
        env_overrides["fetch_timeout_seconds"] = timeout
    jobs_table = _env_str("FORECAST_JOBS_TABLE", None)
    if jobs_table is not None:
        env_overrides["jobs_table"] = jobs_table

    return validate_forecast_config(replace(config, **env_overrides))
