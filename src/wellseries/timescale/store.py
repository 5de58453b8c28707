"""
Reads and writes against a single well's hypertable.

Every function validates the table name before it is spliced into SQL text;
values are always bound parameters. Each call opens one connection and runs
in one transaction (commit on success, rollback on error).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import pandas as pd
import psycopg
import structlog

from wellseries.errors import EmptyBatch

from .boundaries import recompute_in_transaction, reset_in_transaction
from .client import PgConfig, as_store_error, connect_pg
from .table_names import validate_table_name

log = structlog.get_logger()

POINT_COLUMNS = ("timestamp", "pressure", "oil_rate", "temperature")
_COLS_SQL = ", ".join(POINT_COLUMNS)


@dataclass(frozen=True)
class TimeseriesPoint:
    timestamp: int
    pressure: float
    oil_rate: float
    temperature: float

    def as_params(self) -> tuple[int, float, float, float]:
        return (int(self.timestamp), float(self.pressure), float(self.oil_rate), float(self.temperature))

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": int(self.timestamp),
            "pressure": self.pressure,
            "oil_rate": self.oil_rate,
            "temperature": self.temperature,
        }


def row_to_point(row: Sequence[Any] | Mapping[str, Any]) -> TimeseriesPoint:
    """
    Map one result row to a point.

    Accepts a tuple in POINT_COLUMNS order (psycopg's default row factory) or a
    mapping keyed by column name (`dict_row`).
    """
    if isinstance(row, Mapping):
        ts, p, q, t = (row[c] for c in POINT_COLUMNS)
    else:
        ts, p, q, t = row
    return TimeseriesPoint(timestamp=int(ts), pressure=float(p), oil_rate=float(q), temperature=float(t))


def _range_where(start_ms: int | None, end_ms: int | None) -> tuple[str, list[int]]:
    clauses: list[str] = []
    params: list[int] = []
    if start_ms is not None:
        clauses.append("timestamp >= %s")
        params.append(int(start_ms))
    if end_ms is not None:
        clauses.append("timestamp <= %s")
        params.append(int(end_ms))
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def insert_one(*, cfg: PgConfig, table: str, point: TimeseriesPoint, connect_timeout_s: int | None = None) -> None:
    tbl = validate_table_name(table)
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"INSERT INTO {tbl} ({_COLS_SQL}) VALUES (%s, %s, %s, %s)",
                    point.as_params(),
                )
    except psycopg.Error as e:
        raise as_store_error("insert_one", tbl, e) from e


def insert_batch(
    *,
    cfg: PgConfig,
    table: str,
    points: Sequence[TimeseriesPoint],
    connect_timeout_s: int | None = None,
) -> int:
    """
    Insert all points in one transaction; either every row lands or none does.

    Returns the number of rows written.
    """
    rows = list(points)
    if not rows:
        raise EmptyBatch()
    tbl = validate_table_name(table)
    params = [p.as_params() for p in rows]
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.executemany(
                    f"INSERT INTO {tbl} ({_COLS_SQL}) VALUES (%s, %s, %s, %s)",
                    params,
                )
    except psycopg.Error as e:
        raise as_store_error("insert_batch", tbl, e) from e
    log.debug("timescale_store.batch_inserted", table=tbl, rows=len(params))
    return len(params)


def range_query(
    *,
    cfg: PgConfig,
    table: str,
    start_ms: int | None,
    end_ms: int | None,
    connect_timeout_s: int | None = None,
) -> list[TimeseriesPoint]:
    """
    Points with start_ms <= timestamp <= end_ms, ascending by timestamp.

    Either bound may be None (unbounded on that side). No match -> empty list.
    """
    tbl = validate_table_name(table)
    where, params = _range_where(start_ms, end_ms)
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_COLS_SQL} FROM {tbl}{where} ORDER BY timestamp ASC", params)
                rows = cur.fetchall()
    except psycopg.Error as e:
        raise as_store_error("range_query", tbl, e) from e
    return [row_to_point(r) for r in rows]


def range_delete(
    *,
    cfg: PgConfig,
    table: str,
    start_ms: int | None,
    end_ms: int | None,
    connect_timeout_s: int | None = None,
) -> int:
    """
    Delete points with start_ms <= timestamp <= end_ms and recompute the well's boundaries.

    Returns the number of deleted rows (0 is not an error).
    """
    tbl = validate_table_name(table)
    where, params = _range_where(start_ms, end_ms)
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.execute(f"DELETE FROM {tbl}{where}", params)
                deleted = max(0, int(cur.rowcount or 0))
                if deleted:
                    recompute_in_transaction(cur, tbl)
    except psycopg.Error as e:
        raise as_store_error("range_delete", tbl, e) from e
    log.info("timescale_store.range_deleted", table=tbl, start_ms=start_ms, end_ms=end_ms, rows=deleted)
    return deleted


def delete_all(*, cfg: PgConfig, table: str, connect_timeout_s: int | None = None) -> int:
    """
    Delete every point in the table and clear the well's boundaries.
    """
    tbl = validate_table_name(table)
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.execute(f"DELETE FROM {tbl}")
                deleted = max(0, int(cur.rowcount or 0))
                reset_in_transaction(cur, tbl)
    except psycopg.Error as e:
        raise as_store_error("delete_all", tbl, e) from e
    log.info("timescale_store.all_deleted", table=tbl, rows=deleted)
    return deleted


# ---------------------------------------------------------------------------
# DataFrame conversion (CSV import/export)
# ---------------------------------------------------------------------------

_COLUMN_ALIASES = {"oilRate": "oil_rate", "ts": "timestamp"}


def points_to_frame(points: Sequence[TimeseriesPoint]) -> pd.DataFrame:
    df = pd.DataFrame([p.as_dict() for p in points], columns=list(POINT_COLUMNS))
    return df.astype({"timestamp": "int64", "pressure": "float64", "oil_rate": "float64", "temperature": "float64"})


def frame_to_points(df: pd.DataFrame) -> list[TimeseriesPoint]:
    """
    Convert a frame with POINT_COLUMNS (`oilRate`/`ts` accepted as aliases) to points.

    Rows without a timestamp are rejected; the value columns may hold NaN.
    """
    frame = df.rename(columns={k: v for k, v in _COLUMN_ALIASES.items() if k in df.columns})
    missing = [c for c in POINT_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"Missing columns: {missing}")
    if frame["timestamp"].isna().any():
        raise ValueError("timestamp must not be null")
    frame = frame[list(POINT_COLUMNS)]
    return [row_to_point(r) for r in frame.itertuples(index=False, name=None)]
