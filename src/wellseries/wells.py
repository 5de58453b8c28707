"""
Well-level operations: resolve a well id to its table, then call the core.

The registry lookup always comes first, so an unknown id fails with
WellNotFound before any SQL is built. The one exception is an empty batch,
which is rejected before the lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence
from uuid import UUID

import structlog

from wellseries.errors import EmptyBatch, ProvisioningFailure, WellNotFound, WellProvisioningIncomplete
from wellseries.registry import Well, WellRegistry
from wellseries.timescale import boundaries as bnd
from wellseries.timescale import schema, store
from wellseries.timescale.client import PgConfig
from wellseries.timescale.store import TimeseriesPoint

log = structlog.get_logger()


@dataclass(frozen=True)
class WellView:
    well: Well
    boundaries: bnd.Boundaries

    def as_dict(self) -> dict[str, Any]:
        return {
            **self.well.as_dict(),
            "start_ms": self.boundaries.start_ms,
            "end_ms": self.boundaries.end_ms,
        }


def _require_well(registry: WellRegistry, well_id: UUID) -> Well:
    well = registry.find_by_id(well_id)
    if well is None:
        raise WellNotFound(well_id)
    return well


def create_well(
    *,
    cfg: PgConfig,
    registry: WellRegistry,
    name: str,
    latitude: float,
    longitude: float,
) -> Well:
    """
    Save a new well, then provision its table.

    If provisioning fails the saved well is NOT removed: WellProvisioningIncomplete
    carries it so the caller can delete it or retry with `provision_well`.
    """
    # A misconfigured template fails here, before anything is saved.
    template = schema.resolve_template_table()
    well = registry.save(Well.new(name=name, latitude=latitude, longitude=longitude))
    try:
        schema.provision_table(cfg=cfg, table=well.table_name, template_table=template)
    except ProvisioningFailure as e:
        log.error("wells.provisioning_incomplete", well_id=str(well.id), table=well.table_name, error=str(e))
        raise WellProvisioningIncomplete(well, e) from e
    return well


def provision_well(*, cfg: PgConfig, registry: WellRegistry, well_id: UUID) -> str:
    """Re-run provisioning for an existing well. Returns its table name."""
    table = registry.lookup_table_name(well_id)
    schema.provision_table(cfg=cfg, table=table)
    return table


def delete_well(*, registry: WellRegistry, well_id: UUID) -> Well:
    """
    Remove the well's metadata. Its hypertable and boundaries row are kept;
    dropping or retaining series data is left to the operator.
    """
    well = _require_well(registry, well_id)
    registry.delete_by_id(well_id)
    log.info("wells.deleted", well_id=str(well_id), table_kept=well.table_name)
    return well


def get_well(*, cfg: PgConfig, registry: WellRegistry, well_id: UUID) -> WellView:
    well = _require_well(registry, well_id)
    return WellView(well=well, boundaries=bnd.get_boundaries(cfg=cfg, well_id=well.id))


def list_wells(*, cfg: PgConfig, registry: WellRegistry) -> list[WellView]:
    wells = registry.find_all()
    by_id = bnd.get_boundaries_many(cfg=cfg, well_ids=[w.id for w in wells])
    return [WellView(well=w, boundaries=by_id[w.id]) for w in wells]


def get_well_boundaries(*, cfg: PgConfig, registry: WellRegistry, well_id: UUID) -> bnd.Boundaries:
    well = _require_well(registry, well_id)
    return bnd.get_boundaries(cfg=cfg, well_id=well.id)


def insert_point(*, cfg: PgConfig, registry: WellRegistry, well_id: UUID, point: TimeseriesPoint) -> None:
    table = registry.lookup_table_name(well_id)
    store.insert_one(cfg=cfg, table=table, point=point)


def insert_points(
    *,
    cfg: PgConfig,
    registry: WellRegistry,
    well_id: UUID,
    points: Sequence[TimeseriesPoint],
) -> int:
    if not points:
        raise EmptyBatch()
    table = registry.lookup_table_name(well_id)
    return store.insert_batch(cfg=cfg, table=table, points=points)


def get_timeseries(
    *,
    cfg: PgConfig,
    registry: WellRegistry,
    well_id: UUID,
    start_ms: int | None,
    end_ms: int | None,
) -> list[TimeseriesPoint]:
    table = registry.lookup_table_name(well_id)
    return store.range_query(cfg=cfg, table=table, start_ms=start_ms, end_ms=end_ms)


def delete_timeseries(
    *,
    cfg: PgConfig,
    registry: WellRegistry,
    well_id: UUID,
    start_ms: int | None,
    end_ms: int | None,
) -> int:
    table = registry.lookup_table_name(well_id)
    return store.range_delete(cfg=cfg, table=table, start_ms=start_ms, end_ms=end_ms)


def delete_all_timeseries(*, cfg: PgConfig, registry: WellRegistry, well_id: UUID) -> int:
    table = registry.lookup_table_name(well_id)
    return store.delete_all(cfg=cfg, table=table)


def recompute_well_boundaries(*, cfg: PgConfig, registry: WellRegistry, well_id: UUID) -> bnd.Boundaries:
    table = registry.lookup_table_name(well_id)
    return bnd.recompute_boundaries(cfg=cfg, table=table)
