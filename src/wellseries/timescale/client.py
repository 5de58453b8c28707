from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Any

import psycopg

from wellseries.errors import StoreError


@dataclass(frozen=True)
class PgConfig:
    """
    PostgreSQL/TimescaleDB connection settings.

    `connect_timeout_s` applies to every connection opened with this config
    unless a call passes its own.
    """

    host: str
    pg_port: int
    pg_user: str
    pg_password: str
    pg_dbname: str
    connect_timeout_s: int = 2


def connect_pg(cfg: PgConfig, *, connect_timeout_s: int | None = None) -> psycopg.Connection:
    """
    Open a new connection.

    Used as a context manager: the transaction commits when the block exits
    cleanly, rolls back on an exception, and the connection is closed.
    """
    timeout = int(connect_timeout_s or cfg.connect_timeout_s or 2)
    return psycopg.connect(
        host=cfg.host,
        port=int(cfg.pg_port),
        user=cfg.pg_user,
        password=cfg.pg_password,
        dbname=cfg.pg_dbname,
        connect_timeout=max(1, timeout),
    )


# Substrings of driver messages for failures worth retrying by the caller.
_TRANSIENT_MARKERS = (
    "server closed the connection unexpectedly",
    "connection reset",
    "connection refused",
    "terminating connection",
    "could not connect",
    "timeout",
    "broken pipe",
    "network is unreachable",
    "deadlock detected",
    "could not serialize access",
)


def is_transient_pg_error(err: BaseException) -> bool:
    if isinstance(err, psycopg.OperationalError):
        return True
    msg = str(err or "").lower()
    return any(s in msg for s in _TRANSIENT_MARKERS)


def as_store_error(operation: str, table: str | None, err: BaseException) -> StoreError:
    """Wrap a driver failure with the operation and table it interrupted."""
    return StoreError(operation, table, str(err), transient=is_transient_pg_error(err))


def connect_pg_safe(
    cfg: PgConfig,
    *,
    connect_timeout_s: int | None = None,
    retries: int = 2,
    backoff_s: float = 0.2,
) -> psycopg.Connection:
    """
    Autocommit connection with exponential backoff on transient failures.

    Only the health check uses it; data operations connect once and leave
    retry policy to their caller.
    """
    attempt = 0
    while True:
        try:
            conn = connect_pg(cfg, connect_timeout_s=connect_timeout_s)
        except Exception as e:
            if attempt >= int(retries) or not is_transient_pg_error(e):
                raise
            time.sleep(float(backoff_s) * (2**attempt))
            attempt += 1
            continue
        conn.autocommit = True
        return conn


def make_pg_config_from_env() -> PgConfig:
    from wellseries.config import (
        get_connect_timeout_s,
        get_pg_dbname,
        get_pg_host,
        get_pg_password,
        get_pg_port,
        get_pg_user,
    )

    return PgConfig(
        host=get_pg_host(),
        pg_port=get_pg_port(),
        pg_user=get_pg_user(),
        pg_password=get_pg_password(),
        pg_dbname=get_pg_dbname(),
        connect_timeout_s=get_connect_timeout_s(),
    )


def pg_reachable(
    cfg: PgConfig,
    *,
    connect_timeout_s: int | None = None,
    retries: int = 1,
    backoff_s: float = 0.2,
) -> dict[str, Any]:
    """
    SELECT 1 plus the installed TimescaleDB extension version.

    Returns {ok: True, timescaledb: str | None} or {ok: False, error: str}.
    """
    try:
        with connect_pg_safe(cfg, connect_timeout_s=connect_timeout_s, retries=retries, backoff_s=backoff_s) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
                cur.execute("SELECT extversion FROM pg_extension WHERE extname = 'timescaledb'")
                row = cur.fetchone()
    except Exception as e:
        return {"ok": False, "error": str(e)}
    return {"ok": True, "timescaledb": (str(row[0]) if row else None)}
