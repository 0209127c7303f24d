# This module is the command-line job for ad hoc forecasting runs against the operational database.
# It exists so operators can produce a month-end forecast, retrain the demand model, or re-segment zones without code.
# Settings come from `.env`, thresholds from the YAML config, and every result is printed as JSON.

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import replace
from datetime import date
from typing import Any

from forecast_engine.common.logging import configure_logging
from forecast_engine.common.settings import get_settings
from forecast_engine.data_source import SqlJobRecordSource
from forecast_engine.engine import run_clustering, run_forecast, run_training
from forecast_engine.forecast_config import ForecastConfig, load_forecast_config, validate_forecast_config
from forecast_engine.training.model_metrics import generate_feature_importance

LOGGER = logging.getLogger("forecast_engine")

TASKS = ("forecast", "train", "cluster")


async def run_task(
    task: str,
    source: SqlJobRecordSource,
    *,
    config: ForecastConfig,
    as_of: date | None = None,
    seed: int | None = None,
) -> dict[str, Any]:
    if task == "forecast":
        forecast = await run_forecast(source, as_of=as_of, config=config)
        return {"task": task, "forecast": forecast.to_dict()}
    if task == "train":
        model, validation = await run_training(source, as_of=as_of, config=config)
        return {
            "task": task,
            "model": model.to_dict(),
            "validation": validation.to_dict(),
            "feature_importance": generate_feature_importance(model),
        }
    if task == "cluster":
        clusters = await run_clustering(source, as_of=as_of, seed=seed, config=config)
        return {"task": task, "clusters": [cluster.to_dict() for cluster in clusters]}
    raise ValueError(f"Unknown task: {task!r}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run demand and revenue forecasting tasks")
    parser.add_argument("--task", choices=TASKS, default="forecast")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None, help="Reference date (YYYY-MM-DD)")
    parser.add_argument("--history-months", type=int, default=None, help="Trailing months of revenue history")
    parser.add_argument("--config", default=None, help="Path to forecasting YAML config")
    parser.add_argument("--seed", type=int, default=None, help="Clustering seed")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    config = load_forecast_config(config_path=args.config or settings.FORECAST_CONFIG_PATH)
    if args.history_months is not None:
        config = validate_forecast_config(replace(config, history_window_months=args.history_months))

    LOGGER.info("Running task=%s env=%s as_of=%s", args.task, settings.ENV, args.as_of)
    source = SqlJobRecordSource(database_url=settings.DATABASE_URL, config=config)
    result = asyncio.run(run_task(args.task, source, config=config, as_of=args.as_of, seed=args.seed))
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
