"""
Well metadata registry.

The time-series core only needs "well id -> table name"; the registry owns
the rest of the well record. `WellRegistry` is the contract, `PgWellRegistry`
stores wells in the `wells` table next to the hypertables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

import psycopg
import structlog

from wellseries.errors import WellNotFound
from wellseries.timescale.client import PgConfig, as_store_error, connect_pg
from wellseries.timescale.table_names import encode_table_name

log = structlog.get_logger()

WELLS_TABLE = "wells"

WELLS_DDL = f"""
CREATE TABLE IF NOT EXISTS {WELLS_TABLE} (
  id UUID PRIMARY KEY,
  name TEXT NOT NULL,
  latitude DOUBLE PRECISION,
  longitude DOUBLE PRECISION,
  table_name TEXT NOT NULL
)
"""

_WELL_COLS_SQL = "id, name, latitude, longitude, table_name"


@dataclass(frozen=True)
class Well:
    id: UUID
    name: str
    latitude: float
    longitude: float
    table_name: str

    @classmethod
    def new(cls, *, name: str, latitude: float, longitude: float, well_id: UUID | None = None) -> "Well":
        """Build a well with a fresh id; the table name is derived once, here."""
        wid = well_id or uuid4()
        return cls(
            id=wid,
            name=str(name),
            latitude=float(latitude),
            longitude=float(longitude),
            table_name=encode_table_name(wid),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "table_name": self.table_name,
        }


def row_to_well(row: Any) -> Well:
    wid, name, lat, lon, table_name = row
    return Well(
        id=wid if isinstance(wid, UUID) else UUID(str(wid)),
        name=str(name),
        latitude=float(lat),
        longitude=float(lon),
        table_name=str(table_name),
    )


class WellRegistry:
    def find_by_id(self, well_id: UUID) -> Well | None:
        raise NotImplementedError

    def find_all(self) -> list[Well]:
        raise NotImplementedError

    def save(self, well: Well) -> Well:
        raise NotImplementedError

    def delete_by_id(self, well_id: UUID) -> bool:
        raise NotImplementedError

    def lookup_table_name(self, well_id: UUID) -> str:
        """
        Table name stored for a well. Callers still validate it before building SQL.
        """
        well = self.find_by_id(well_id)
        if well is None:
            raise WellNotFound(well_id)
        return well.table_name


class PgWellRegistry(WellRegistry):
    def __init__(self, *, cfg: PgConfig, connect_timeout_s: int | None = None) -> None:
        self.cfg = cfg
        self.connect_timeout_s = connect_timeout_s

    def _connect(self):
        return connect_pg(self.cfg, connect_timeout_s=self.connect_timeout_s)

    def find_by_id(self, well_id: UUID) -> Well | None:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"SELECT {_WELL_COLS_SQL} FROM {WELLS_TABLE} WHERE id = %s", (well_id,))
                    row = cur.fetchone()
        except psycopg.Error as e:
            raise as_store_error("find_well", None, e) from e
        return row_to_well(row) if row is not None else None

    def find_all(self) -> list[Well]:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"SELECT {_WELL_COLS_SQL} FROM {WELLS_TABLE} ORDER BY name, id")
                    rows = cur.fetchall()
        except psycopg.Error as e:
            raise as_store_error("list_wells", None, e) from e
        return [row_to_well(r) for r in rows]

    def save(self, well: Well) -> Well:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"INSERT INTO {WELLS_TABLE} ({_WELL_COLS_SQL}) VALUES (%s, %s, %s, %s, %s) "
                        "ON CONFLICT (id) DO UPDATE SET name = EXCLUDED.name, "
                        "latitude = EXCLUDED.latitude, longitude = EXCLUDED.longitude",
                        (well.id, well.name, well.latitude, well.longitude, well.table_name),
                    )
        except psycopg.Error as e:
            raise as_store_error("save_well", None, e) from e
        log.info("registry.well_saved", well_id=str(well.id), table=well.table_name)
        return well

    def delete_by_id(self, well_id: UUID) -> bool:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"DELETE FROM {WELLS_TABLE} WHERE id = %s", (well_id,))
                    deleted = int(cur.rowcount or 0)
        except psycopg.Error as e:
            raise as_store_error("delete_well", None, e) from e
        return deleted > 0
