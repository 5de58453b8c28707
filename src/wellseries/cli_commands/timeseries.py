from __future__ import annotations

from pathlib import Path
from uuid import UUID

import click
import structlog

from wellseries.errors import EmptyBatch, WellSeriesError

from ._output import TIMESTAMP, WELL_ID, echo_json, fail, store_context

log = structlog.get_logger()


def register(main: click.Group) -> None:
    """
    Register `wellseries ts ...` commands onto the root CLI group.
    """

    @main.group("ts")
    def ts_group() -> None:
        """Per-well time series: insert, query, delete, boundaries."""

    @ts_group.command("insert")
    @click.argument("well_id", type=WELL_ID)
    @click.option("--timestamp", "ts", required=True, type=TIMESTAMP, help="Epoch ms or ISO-8601")
    @click.option("--pressure", required=True, type=float)
    @click.option("--oil-rate", required=True, type=float)
    @click.option("--temperature", required=True, type=float)
    def ts_insert(well_id: UUID, ts: int, pressure: float, oil_rate: float, temperature: float) -> None:
        """Insert a single point."""
        from wellseries import wells as svc
        from wellseries.timescale.store import TimeseriesPoint

        cfg, registry = store_context()
        point = TimeseriesPoint(timestamp=ts, pressure=pressure, oil_rate=oil_rate, temperature=temperature)
        try:
            svc.insert_point(cfg=cfg, registry=registry, well_id=well_id, point=point)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "well_id": str(well_id), "rows": 1})

    @ts_group.command("import-csv")
    @click.argument("well_id", type=WELL_ID)
    @click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
    @click.option("--chunk-size", default=5000, type=click.IntRange(min=1), show_default=True, help="Rows per batch insert")
    def ts_import_csv(well_id: UUID, path: Path, chunk_size: int) -> None:
        """
        Bulk-load a CSV with columns timestamp, pressure, oil_rate (or oilRate), temperature.

        Each chunk is one atomic batch; chunks already written stay written if a later one fails.
        """
        import pandas as pd

        from wellseries import wells as svc
        from wellseries.timescale.store import frame_to_points

        try:
            points = frame_to_points(pd.read_csv(path))
        except ValueError as e:
            echo_json({"ok": False, "error": "invalid_csv", "message": str(e), "path": str(path)})
            raise SystemExit(2)

        if not points:
            fail(EmptyBatch(f"CSV has no rows: {path}"))

        cfg, registry = store_context()
        written = 0
        try:
            for i in range(0, len(points), int(chunk_size)):
                written += svc.insert_points(
                    cfg=cfg,
                    registry=registry,
                    well_id=well_id,
                    points=points[i : i + int(chunk_size)],
                )
                log.debug("ts.import_chunk", well_id=str(well_id), written=written, total=len(points))
        except WellSeriesError as e:
            log.error("ts.import_failed", well_id=str(well_id), written=written, error=str(e))
            fail(e)
        echo_json({"ok": True, "well_id": str(well_id), "rows": written, "path": str(path)})

    @ts_group.command("query")
    @click.argument("well_id", type=WELL_ID)
    @click.option("--from", "start_ms", default=None, type=TIMESTAMP, help="Inclusive start (default: unbounded)")
    @click.option("--to", "end_ms", default=None, type=TIMESTAMP, help="Inclusive end (default: unbounded)")
    def ts_query(well_id: UUID, start_ms: int | None, end_ms: int | None) -> None:
        """Print points in [from, to], ascending by timestamp."""
        from wellseries import wells as svc

        cfg, registry = store_context()
        try:
            points = svc.get_timeseries(cfg=cfg, registry=registry, well_id=well_id, start_ms=start_ms, end_ms=end_ms)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "well_id": str(well_id), "points": [p.as_dict() for p in points]})

    @ts_group.command("export-csv")
    @click.argument("well_id", type=WELL_ID)
    @click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
    @click.option("--from", "start_ms", default=None, type=TIMESTAMP, help="Inclusive start (default: unbounded)")
    @click.option("--to", "end_ms", default=None, type=TIMESTAMP, help="Inclusive end (default: unbounded)")
    def ts_export_csv(well_id: UUID, path: Path, start_ms: int | None, end_ms: int | None) -> None:
        """Write points in [from, to] to a CSV file."""
        from wellseries import wells as svc
        from wellseries.timescale.store import points_to_frame

        cfg, registry = store_context()
        try:
            points = svc.get_timeseries(cfg=cfg, registry=registry, well_id=well_id, start_ms=start_ms, end_ms=end_ms)
        except WellSeriesError as e:
            fail(e)
        path.parent.mkdir(parents=True, exist_ok=True)
        points_to_frame(points).to_csv(path, index=False)
        echo_json({"ok": True, "well_id": str(well_id), "rows": len(points), "path": str(path)})

    @ts_group.command("delete")
    @click.argument("well_id", type=WELL_ID)
    @click.option("--from", "start_ms", default=None, type=TIMESTAMP, help="Inclusive start")
    @click.option("--to", "end_ms", default=None, type=TIMESTAMP, help="Inclusive end")
    @click.option("--all", "delete_all", is_flag=True, help="Delete every point of the well")
    def ts_delete(well_id: UUID, start_ms: int | None, end_ms: int | None, delete_all: bool) -> None:
        """Delete points in [from, to], or every point with --all."""
        from wellseries import wells as svc

        if delete_all and (start_ms is not None or end_ms is not None):
            raise click.UsageError("--all cannot be combined with --from/--to")
        if not delete_all and start_ms is None and end_ms is None:
            raise click.UsageError("Give --from and/or --to, or --all")

        cfg, registry = store_context()
        try:
            if delete_all:
                n = svc.delete_all_timeseries(cfg=cfg, registry=registry, well_id=well_id)
            else:
                n = svc.delete_timeseries(cfg=cfg, registry=registry, well_id=well_id, start_ms=start_ms, end_ms=end_ms)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "well_id": str(well_id), "deleted": n})

    @ts_group.command("boundaries")
    @click.argument("well_id", type=WELL_ID)
    @click.option("--recompute", is_flag=True, help="Rebuild from MIN/MAX(timestamp) before printing")
    def ts_boundaries(well_id: UUID, recompute: bool) -> None:
        """Print the well's first and last timestamps."""
        from wellseries import wells as svc
        from wellseries.util.time import ms_to_iso

        cfg, registry = store_context()
        try:
            if recompute:
                b = svc.recompute_well_boundaries(cfg=cfg, registry=registry, well_id=well_id)
            else:
                b = svc.get_well_boundaries(cfg=cfg, registry=registry, well_id=well_id)
        except WellSeriesError as e:
            fail(e)
        echo_json(
            {
                "ok": True,
                **b.as_dict(),
                "start": ms_to_iso(b.start_ms),
                "end": ms_to_iso(b.end_ms),
            }
        )
