from __future__ import annotations

import copy
import os
import re
from typing import Any
from uuid import UUID

import psycopg
import pytest

from wellseries.registry import Well, WellRegistry
from wellseries.timescale.client import PgConfig

WELL_ID = UUID("11111111-1111-1111-1111-111111111111")
WELL_TABLE = "timeseries_11111111111111111111111111111111"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: requires a live PostgreSQL + TimescaleDB")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("WELLSERIES_RUN_PG_TESTS", "false").lower() != "true":
        skip_pg = pytest.mark.skip(reason="Set WELLSERIES_RUN_PG_TESTS=true (and WELLSERIES_PG_*) to run against a live database")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_pg)


# ---------------------------------------------------------------------------
# In-memory stand-in for the handful of SQL statements the package issues
# ---------------------------------------------------------------------------

_CREATE_LIKE_RE = re.compile(r"^CREATE TABLE IF NOT EXISTS (\w+) \(LIKE (\w+) INCLUDING ALL\)$")
_CREATE_TEMPLATE_RE = re.compile(r"^CREATE TABLE IF NOT EXISTS (\w+) \( timestamp BIGINT")
_CREATE_TRIGGER_RE = re.compile(
    r"^CREATE TRIGGER (\w+) AFTER INSERT OR UPDATE OF timestamp ON (\w+) "
    r"FOR EACH ROW EXECUTE FUNCTION wellseries_track_boundaries\((.*)\)$"
)
_INSERT_POINT_RE = re.compile(r"^INSERT INTO (\w+) \(timestamp, pressure, oil_rate, temperature\) VALUES")
_SELECT_POINTS_RE = re.compile(
    r"^SELECT timestamp, pressure, oil_rate, temperature FROM (\w+)(?: WHERE (.*?))? ORDER BY timestamp ASC$"
)
_DELETE_POINTS_RE = re.compile(r"^DELETE FROM (\w+)(?: WHERE (.*))?$")


def _norm(sql: Any) -> str:
    return " ".join(str(sql).strip().split())


def _range_filter(where: str | None, params: list[Any]):
    lo: int | None = None
    hi: int | None = None
    if where:
        vals = iter(params)
        for clause in where.split(" AND "):
            if clause == "timestamp >= %s":
                lo = int(next(vals))
            elif clause == "timestamp <= %s":
                hi = int(next(vals))
            else:
                raise AssertionError(f"unexpected clause: {clause}")
    return lambda ts: (lo is None or ts >= lo) and (hi is None or ts <= hi)


class MemoryTimescale:
    """
    Fake `connect_pg` target with per-connection transactions.

    Tables hold (timestamp, pressure, oil_rate, temperature) tuples in insertion
    order. `triggers` maps a table to (trigger name, argument); inserts into a
    table with a trigger update `boundaries` under the well id passed as the
    argument, never one derived from the table name.
    """

    def __init__(self) -> None:
        self.templates: set[str] = set()
        self.tables: dict[str, list[tuple]] = {}
        self.hypertables: set[str] = set()
        self.triggers: dict[str, tuple[str, str]] = {}
        self.boundaries: dict[UUID, list[int | None]] = {}
        self.statements: list[str] = []
        self.connections = 0
        self.fail_on_timestamp: int | None = None

    def connect(self, cfg: Any = None, connect_timeout_s: int = 2) -> "_MemConn":
        self.connections += 1
        return _MemConn(self)

    def _state(self) -> tuple:
        return (self.templates, self.tables, self.hypertables, self.triggers, self.boundaries)

    def _restore(self, state: tuple) -> None:
        self.templates, self.tables, self.hypertables, self.triggers, self.boundaries = state


class _MemConn:
    def __init__(self, db: MemoryTimescale) -> None:
        self.db = db
        self.autocommit = False
        self._snapshot = copy.deepcopy(db._state())

    def cursor(self) -> "_MemCursor":
        return _MemCursor(self.db)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.db._restore(self._snapshot)
        return False


class _MemCursor:
    def __init__(self, db: MemoryTimescale) -> None:
        self.db = db
        self.rowcount = -1
        self._rows: list[tuple] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)

    def executemany(self, sql, params_seq) -> None:
        for params in params_seq:
            self.execute(sql, params)

    def _table(self, name: str) -> list[tuple]:
        if name not in self.db.tables:
            raise psycopg.ProgrammingError(f'relation "{name}" does not exist')
        return self.db.tables[name]

    def execute(self, sql, params=None) -> None:
        db = self.db
        q = _norm(sql)
        p = list(params or [])
        db.statements.append(q)
        self._rows = []
        self.rowcount = -1

        if q.startswith(("CREATE EXTENSION", "CREATE OR REPLACE FUNCTION", "CREATE INDEX IF NOT EXISTS")):
            return
        if q.startswith("SELECT pg_advisory_xact_lock"):
            return
        if q.startswith("CREATE TABLE IF NOT EXISTS well_boundaries") or q.startswith("CREATE TABLE IF NOT EXISTS wells"):
            return
        m = _CREATE_TEMPLATE_RE.match(q)
        if m:
            db.templates.add(m.group(1))
            return
        m = _CREATE_LIKE_RE.match(q)
        if m:
            if m.group(2) not in db.templates:
                raise psycopg.ProgrammingError(f'relation "{m.group(2)}" does not exist')
            db.tables.setdefault(m.group(1), [])
            return
        if q.startswith("SELECT create_hypertable("):
            self._table(str(p[0]))
            db.hypertables.add(str(p[0]))
            return
        if q == "SELECT 1 FROM pg_trigger WHERE tgrelid = %s::regclass AND tgname = %s":
            self._table(str(p[0]))
            trig = db.triggers.get(str(p[0]))
            self._rows = [(1,)] if trig is not None and trig[0] == p[1] else []
            return
        m = _CREATE_TRIGGER_RE.match(q)
        if m:
            name, tbl, args = m.groups()
            self._table(tbl)
            if tbl in db.triggers:
                raise psycopg.ProgrammingError(f'trigger "{name}" for relation "{tbl}" already exists')
            if not re.fullmatch(r"'[^']*'", args):
                raise AssertionError(f"boundary trigger needs the well id as its only argument, got ({args})")
            db.triggers[tbl] = (name, args[1:-1])
            return
        m = _INSERT_POINT_RE.match(q)
        if m:
            rows = self._table(m.group(1))
            ts = int(p[0])
            if db.fail_on_timestamp is not None and ts == db.fail_on_timestamp:
                raise psycopg.DataError(f"rejected timestamp {ts}")
            rows.append(tuple(p))
            trig = db.triggers.get(m.group(1))
            if trig is not None:
                # Same as TG_ARGV[0]::uuid in the trigger function.
                try:
                    well_id = UUID(trig[1])
                except ValueError:
                    raise psycopg.DataError(f'invalid input syntax for type uuid: "{trig[1]}"') from None
                b = db.boundaries.setdefault(well_id, [None, None])
                b[0] = ts if b[0] is None else min(b[0], ts)
                b[1] = ts if b[1] is None else max(b[1], ts)
            self.rowcount = 1
            return
        m = _SELECT_POINTS_RE.match(q)
        if m:
            keep = _range_filter(m.group(2), p)
            self._rows = sorted((r for r in self._table(m.group(1)) if keep(int(r[0]))), key=lambda r: int(r[0]))
            return
        m = _DELETE_POINTS_RE.match(q)
        if m:
            rows = self._table(m.group(1))
            keep = _range_filter(m.group(2), p)
            remaining = [r for r in rows if not keep(int(r[0]))]
            self.rowcount = len(rows) - len(remaining)
            db.tables[m.group(1)] = remaining
            return
        if q.startswith("INSERT INTO well_boundaries (well_id, start_ms, end_ms) SELECT %s, MIN(timestamp), MAX(timestamp) FROM "):
            tbl = q.split(" FROM ", 1)[1].split(" ", 1)[0]
            tss = [int(r[0]) for r in self._table(tbl)]
            db.boundaries[p[0]] = [min(tss), max(tss)] if tss else [None, None]
            return
        if q.startswith("UPDATE well_boundaries SET start_ms = NULL, end_ms = NULL WHERE well_id = %s"):
            if p[0] in db.boundaries:
                db.boundaries[p[0]] = [None, None]
            return
        if q == "SELECT to_regclass(%s) IS NOT NULL":
            self._rows = [(str(p[0]) in db.tables,)]
            return
        if q == "SELECT start_ms, end_ms FROM well_boundaries WHERE well_id = %s":
            b = db.boundaries.get(p[0])
            self._rows = [tuple(b)] if b is not None else []
            return
        if q == "SELECT well_id, start_ms, end_ms FROM well_boundaries WHERE well_id = ANY(%s)":
            self._rows = [(wid, *db.boundaries[wid]) for wid in p[0] if wid in db.boundaries]
            return
        raise AssertionError(f"unexpected SQL: {q}")


class MemoryRegistry(WellRegistry):
    def __init__(self, wells: list[Well] | None = None) -> None:
        self.wells: dict[UUID, Well] = {w.id: w for w in (wells or [])}
        self.lookups = 0

    def find_by_id(self, well_id: UUID) -> Well | None:
        self.lookups += 1
        return self.wells.get(well_id)

    def find_all(self) -> list[Well]:
        return sorted(self.wells.values(), key=lambda w: (w.name, str(w.id)))

    def save(self, well: Well) -> Well:
        self.wells[well.id] = well
        return well

    def delete_by_id(self, well_id: UUID) -> bool:
        return self.wells.pop(well_id, None) is not None


@pytest.fixture()
def pg_cfg() -> PgConfig:
    return PgConfig(host="localhost", pg_port=5432, pg_user="user", pg_password="pass", pg_dbname="wellseries")


@pytest.fixture()
def memdb(monkeypatch: pytest.MonkeyPatch) -> MemoryTimescale:
    """
    MemoryTimescale wired in place of `connect_pg` everywhere it is imported,
    with the template table already created.
    """
    from wellseries import registry
    from wellseries.timescale import boundaries, schema, store

    db = MemoryTimescale()
    db.templates.add("timeseries_template")
    for mod in (schema, store, boundaries, registry):
        monkeypatch.setattr(mod, "connect_pg", db.connect)
    return db


@pytest.fixture()
def well() -> Well:
    return Well(id=WELL_ID, name="Well A", latitude=1.0, longitude=2.0, table_name=WELL_TABLE)


@pytest.fixture()
def mem_registry(well: Well) -> MemoryRegistry:
    return MemoryRegistry([well])
