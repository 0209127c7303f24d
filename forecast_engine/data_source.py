# This file is the only place the forecasting engine reads from the operational database.
# It exists so every entry point awaits one read-only collaborator instead of embedding SQL.
# Blocking SQLAlchemy calls run in a worker thread and are bounded by the configured timeout.
# Any database failure or timeout surfaces as DataSourceError; nothing else escapes this layer.

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from forecast_engine.features.job_records import JobRecord, Zone
from forecast_engine.forecast_config import ForecastConfig

LOGGER = logging.getLogger("data_source")

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

# source column -> JobRecord field
JOB_COLUMNS: dict[str, str] = {
    "fecha_hora_cita": "timestamp",
    "estado": "status",
    "origen": "origin",
    "destino": "destination",
    "km_recorridos": "distance",
    "cobro_cliente": "revenue",
}
ZONE_COLUMNS: dict[str, str] = {"id": "zone_id", "nombre": "zone_name"}


class DataSourceError(RuntimeError):
    """Raised when historical records cannot be fetched."""


class JobRecordSource(Protocol):
    async def fetch_job_records(self, start: datetime, end: datetime) -> list[JobRecord]: ...

    async def fetch_zones(self) -> list[Zone]: ...


def _validate_identifier(identifier: str) -> str:
    if not _IDENTIFIER_RE.match(identifier):
        raise ValueError(f"Invalid SQL identifier: {identifier!r}")
    return identifier


def _select_list(columns: Mapping[str, str]) -> str:
    return ", ".join(f"{_validate_identifier(source)} AS {target}" for source, target in columns.items())


class SqlJobRecordSource:
    """Read-only SQLAlchemy collaborator over the jobs and zones tables."""

    def __init__(
        self,
        *,
        database_url: str | None = None,
        engine: Engine | None = None,
        config: ForecastConfig | None = None,
    ) -> None:
        if engine is None and database_url is None:
            raise ValueError("SqlJobRecordSource requires either database_url or engine")
        self._engine: Engine = engine or create_engine(database_url, pool_pre_ping=True, future=True)
        self._config = config or ForecastConfig()
        self._jobs_table = _validate_identifier(self._config.jobs_table)
        self._zones_table = _validate_identifier(self._config.zones_table)

    @property
    def engine(self) -> Engine:
        return self._engine

    def _fetch_all(self, query: str, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        with self._engine.connect() as connection:
            rows = connection.execute(text(query), dict(params or {})).mappings().all()
        return [dict(row) for row in rows]

    def _job_rows(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        query = f"""
        SELECT {_select_list(JOB_COLUMNS)}
        FROM {self._jobs_table}
        WHERE fecha_hora_cita >= :start
          AND fecha_hora_cita < :end
          AND (estado IS NULL OR LOWER(estado) NOT LIKE :cancelled)
          AND cobro_cliente > 0
        ORDER BY fecha_hora_cita
        """
        params = {
            "start": start.isoformat(sep=" "),
            "end": end.isoformat(sep=" "),
            "cancelled": self._config.cancelled_status_pattern.lower(),
        }
        return self._fetch_all(query, params)

    def _zone_rows(self) -> list[dict[str, Any]]:
        query = f"SELECT {_select_list(ZONE_COLUMNS)} FROM {self._zones_table} ORDER BY nombre"
        return self._fetch_all(query)

    async def _run(self, label: str, func: Any, *args: Any) -> list[dict[str, Any]]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args),
                timeout=self._config.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise DataSourceError(
                f"Timed out after {self._config.fetch_timeout_seconds:.0f}s fetching {label}"
            ) from exc
        except SQLAlchemyError as exc:
            raise DataSourceError(f"Database error fetching {label}: {exc}") from exc

    async def fetch_job_records(self, start: datetime, end: datetime) -> list[JobRecord]:
        rows = await self._run("job records", self._job_rows, start, end)
        records = [JobRecord.from_row(row) for row in rows]
        LOGGER.info("Fetched %s job records between %s and %s", len(records), start, end)
        return records

    async def fetch_zones(self) -> list[Zone]:
        rows = await self._run("zones", self._zone_rows)
        zones = [Zone(zone_id=str(row["zone_id"]), zone_name=str(row["zone_name"] or "")) for row in rows]
        LOGGER.info("Fetched %s zones", len(zones))
        return zones
