"""
Per-well min/max timestamp boundaries.

`well_boundaries` is denormalized: the trigger installed by
`schema.provision_table` extends a well's row on every insert, so reads are a
primary-key lookup no matter how long the series is. Deletes cannot be
handled by the trigger (the new minimum or maximum is unknown to a row-level
trigger), so the delete paths in `store` call `recompute_in_transaction` or
`reset_in_transaction` inside their own transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID

import psycopg
import structlog

from .client import PgConfig, as_store_error, connect_pg
from .schema import BOUNDARIES_TABLE
from .table_names import decode_table_name, validate_table_name

log = structlog.get_logger()


@dataclass(frozen=True)
class Boundaries:
    well_id: UUID
    start_ms: int | None = None
    end_ms: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.start_ms is None and self.end_ms is None

    def as_dict(self) -> dict[str, Any]:
        return {"well_id": str(self.well_id), "start_ms": self.start_ms, "end_ms": self.end_ms}


def _opt_int(v: Any) -> int | None:
    return None if v is None else int(v)


def get_boundaries(*, cfg: PgConfig, well_id: UUID, connect_timeout_s: int | None = None) -> Boundaries:
    """
    Current boundaries for a well; both ends are None when nothing was written yet.
    """
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT start_ms, end_ms FROM {BOUNDARIES_TABLE} WHERE well_id = %s",
                    (well_id,),
                )
                row = cur.fetchone()
    except psycopg.Error as e:
        raise as_store_error("get_boundaries", None, e) from e
    if row is None:
        return Boundaries(well_id=well_id)
    return Boundaries(well_id=well_id, start_ms=_opt_int(row[0]), end_ms=_opt_int(row[1]))


def get_boundaries_many(
    *,
    cfg: PgConfig,
    well_ids: Iterable[UUID],
    connect_timeout_s: int | None = None,
) -> dict[UUID, Boundaries]:
    """
    Boundaries for several wells in one query. Every requested id is present in the result.
    """
    ids = list(dict.fromkeys(well_ids))
    out = {wid: Boundaries(well_id=wid) for wid in ids}
    if not ids:
        return out
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT well_id, start_ms, end_ms FROM {BOUNDARIES_TABLE} WHERE well_id = ANY(%s)",
                    (ids,),
                )
                rows = cur.fetchall()
    except psycopg.Error as e:
        raise as_store_error("get_boundaries_many", None, e) from e
    for well_id, start_ms, end_ms in rows:
        wid = well_id if isinstance(well_id, UUID) else UUID(str(well_id))
        out[wid] = Boundaries(well_id=wid, start_ms=_opt_int(start_ms), end_ms=_opt_int(end_ms))
    return out


def recompute_in_transaction(cur: Any, table: str) -> None:
    """
    Rewrite a well's boundaries from MIN/MAX(timestamp), using the caller's cursor.

    An empty table yields NULL/NULL, i.e. absent boundaries.
    """
    tbl = validate_table_name(table)
    well_id = decode_table_name(tbl)
    cur.execute(
        f"INSERT INTO {BOUNDARIES_TABLE} (well_id, start_ms, end_ms) "
        f"SELECT %s, MIN(timestamp), MAX(timestamp) FROM {tbl} "
        f"ON CONFLICT (well_id) DO UPDATE SET start_ms = EXCLUDED.start_ms, end_ms = EXCLUDED.end_ms",
        (well_id,),
    )


def reset_in_transaction(cur: Any, table: str) -> None:
    tbl = validate_table_name(table)
    cur.execute(
        f"UPDATE {BOUNDARIES_TABLE} SET start_ms = NULL, end_ms = NULL WHERE well_id = %s",
        (decode_table_name(tbl),),
    )


def recompute_boundaries(*, cfg: PgConfig, table: str, connect_timeout_s: int | None = None) -> Boundaries:
    """
    Repair a well's boundaries by scanning its table. Returns the new value.
    """
    tbl = validate_table_name(table)
    well_id = decode_table_name(tbl)
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                recompute_in_transaction(cur, tbl)
                cur.execute(
                    f"SELECT start_ms, end_ms FROM {BOUNDARIES_TABLE} WHERE well_id = %s",
                    (well_id,),
                )
                row = cur.fetchone()
    except psycopg.Error as e:
        raise as_store_error("recompute_boundaries", tbl, e) from e
    out = Boundaries(well_id=well_id)
    if row is not None:
        out = Boundaries(well_id=well_id, start_ms=_opt_int(row[0]), end_ms=_opt_int(row[1]))
    log.info("timescale_boundaries.recomputed", table=tbl, start_ms=out.start_ms, end_ms=out.end_ms)
    return out
