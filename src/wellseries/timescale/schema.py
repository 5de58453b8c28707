"""
Schema DDL for the per-well hypertables.

Base schema (created once, idempotent):
- the template table every well's table is cloned from
- `well_boundaries`, one row per well holding min/max timestamp
- the shared trigger function that keeps `well_boundaries` current
- the `wells` registry table

Per-well schema (`provision_table`): clone the template, register it as a
hypertable on `timestamp`, attach the boundary trigger.
"""

from __future__ import annotations

import re
from typing import Any

import psycopg
import structlog

from wellseries.config import get_chunk_interval_ms, get_template_table
from wellseries.errors import ProvisioningFailure

from .client import PgConfig, as_store_error, connect_pg, is_transient_pg_error
from .table_names import decode_table_name, validate_table_name

log = structlog.get_logger()

BOUNDARIES_TABLE = "well_boundaries"
TRIGGER_FUNCTION = "wellseries_track_boundaries"

_SQL_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _ident(name: str) -> str:
    n = str(name or "").strip()
    if not n or len(n) > 63 or not _SQL_IDENT_RE.match(n):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return n


def resolve_template_table(template_table: str | None = None) -> str:
    """
    Explicit template name, else the configured one, checked as a plain identifier.

    A bad name is a provisioning failure (misconfiguration), not a caller error.
    """
    raw = template_table or get_template_table()
    try:
        return _ident(raw)
    except ValueError as e:
        log.error("timescale_schema.bad_template", template_table=repr(raw)[:200])
        raise ProvisioningFailure(str(raw), f"template table misconfigured: {e}") from e


def template_ddl(template_table: str) -> str:
    tpl = _ident(template_table)
    return f"""
    CREATE TABLE IF NOT EXISTS {tpl} (
      timestamp BIGINT NOT NULL,
      pressure DOUBLE PRECISION,
      oil_rate DOUBLE PRECISION,
      temperature DOUBLE PRECISION
    )
    """


BOUNDARIES_DDL = f"""
CREATE TABLE IF NOT EXISTS {BOUNDARIES_TABLE} (
  well_id UUID PRIMARY KEY,
  start_ms BIGINT,
  end_ms BIGINT
)
"""

# TimescaleDB copies the trigger onto every chunk, so TG_TABLE_NAME is the
# chunk's name; the well id travels as the trigger argument instead.
# LEAST/GREATEST ignore NULLs, which covers a reset row.
TRIGGER_FUNCTION_DDL = f"""
CREATE OR REPLACE FUNCTION {TRIGGER_FUNCTION}() RETURNS trigger
LANGUAGE plpgsql AS $fn$
BEGIN
  INSERT INTO {BOUNDARIES_TABLE} (well_id, start_ms, end_ms)
  VALUES (TG_ARGV[0]::uuid, NEW.timestamp, NEW.timestamp)
  ON CONFLICT (well_id) DO UPDATE SET
    start_ms = LEAST({BOUNDARIES_TABLE}.start_ms, EXCLUDED.start_ms),
    end_ms = GREATEST({BOUNDARIES_TABLE}.end_ms, EXCLUDED.end_ms);
  RETURN NULL;
END;
$fn$
"""


def trigger_ddl(table: str) -> str:
    """CREATE TRIGGER for a well table, passing the well id decoded from its validated name."""
    tbl = validate_table_name(table)
    well_id = decode_table_name(tbl)
    return (
        f"CREATE TRIGGER {tbl}_boundaries AFTER INSERT OR UPDATE OF timestamp ON {tbl} "
        f"FOR EACH ROW EXECUTE FUNCTION {TRIGGER_FUNCTION}('{well_id}')"
    )


def ensure_base_schema(
    *,
    cfg: PgConfig,
    template_table: str | None = None,
    with_extension: bool = True,
    connect_timeout_s: int | None = None,
) -> dict[str, Any]:
    """
    Ensure the shared tables and trigger function exist.

    Safe to run repeatedly. Raises ProvisioningFailure when any statement fails.
    """
    from wellseries.registry import WELLS_DDL, WELLS_TABLE

    tpl = resolve_template_table(template_table)
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                if with_extension:
                    cur.execute("CREATE EXTENSION IF NOT EXISTS timescaledb")
                cur.execute(template_ddl(tpl))
                cur.execute(f"CREATE INDEX IF NOT EXISTS {tpl}_timestamp_idx ON {tpl} (timestamp)")
                cur.execute(BOUNDARIES_DDL)
                cur.execute(TRIGGER_FUNCTION_DDL)
                cur.execute(WELLS_DDL)
    except psycopg.Error as e:
        log.error("timescale_schema.base_failed", template_table=tpl, error=str(e))
        raise ProvisioningFailure(tpl, str(e), transient=is_transient_pg_error(e)) from e

    log.info("timescale_schema.base_ensured", template_table=tpl)
    return {
        "ok": True,
        "template_table": tpl,
        "boundaries_table": BOUNDARIES_TABLE,
        "wells_table": WELLS_TABLE,
        "trigger_function": TRIGGER_FUNCTION,
    }


def provision_table(
    *,
    cfg: PgConfig,
    table: str,
    template_table: str | None = None,
    chunk_interval_ms: int | None = None,
    connect_timeout_s: int | None = None,
) -> None:
    """
    Create a well's hypertable and attach boundary maintenance (idempotent).

    All steps run in one transaction behind an advisory lock keyed on the
    table name, so concurrent calls for the same well serialize and the
    second one finds everything in place. An existing trigger is left alone,
    so re-provisioning a live table takes no exclusive lock.
    """
    tbl = validate_table_name(table)
    tpl = resolve_template_table(template_table)
    interval = int(chunk_interval_ms or get_chunk_interval_ms())
    trigger = f"{tbl}_boundaries"

    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (tbl,))
                cur.execute(f"CREATE TABLE IF NOT EXISTS {tbl} (LIKE {tpl} INCLUDING ALL)")
                cur.execute(
                    "SELECT create_hypertable(%s::regclass, 'timestamp', "
                    "chunk_time_interval => %s::bigint, if_not_exists => TRUE)",
                    (tbl, interval),
                )
                cur.execute(
                    "SELECT 1 FROM pg_trigger WHERE tgrelid = %s::regclass AND tgname = %s",
                    (tbl, trigger),
                )
                if cur.fetchone() is None:
                    cur.execute(trigger_ddl(tbl))
    except psycopg.Error as e:
        log.error("timescale_schema.provision_failed", table=tbl, template_table=tpl, error=str(e))
        raise ProvisioningFailure(tbl, str(e), transient=is_transient_pg_error(e)) from e

    log.info("timescale_schema.provisioned", table=tbl, chunk_interval_ms=interval)


def table_exists(*, cfg: PgConfig, table: str, connect_timeout_s: int | None = None) -> bool:
    """Diagnostic lookup; provisioning never consults it."""
    tbl = validate_table_name(table)
    try:
        with connect_pg(cfg, connect_timeout_s=connect_timeout_s) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass(%s) IS NOT NULL", (tbl,))
                row = cur.fetchone()
    except psycopg.Error as e:
        raise as_store_error("table_exists", tbl, e) from e
    return bool(row and row[0])
