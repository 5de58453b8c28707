from __future__ import annotations

from uuid import UUID

import click

from wellseries.errors import WellSeriesError

from ._output import WELL_ID, echo_json, fail, store_context


def register(main: click.Group) -> None:
    """
    Register `wellseries wells ...` commands onto the root CLI group.
    """

    @main.group("wells")
    def wells_group() -> None:
        """Well registry: create, inspect and delete wells."""

    @wells_group.command("create")
    @click.option("--name", required=True, help="Display name of the well")
    @click.option("--latitude", required=True, type=float)
    @click.option("--longitude", required=True, type=float)
    def wells_create(name: str, latitude: float, longitude: float) -> None:
        """Register a well and provision its hypertable."""
        from wellseries import wells as svc

        cfg, registry = store_context()
        try:
            well = svc.create_well(cfg=cfg, registry=registry, name=name, latitude=latitude, longitude=longitude)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "well": well.as_dict()})

    @wells_group.command("show")
    @click.argument("well_id", type=WELL_ID)
    def wells_show(well_id: UUID) -> None:
        """Show a well with its current boundaries."""
        from wellseries import wells as svc

        cfg, registry = store_context()
        try:
            view = svc.get_well(cfg=cfg, registry=registry, well_id=well_id)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "well": view.as_dict()})

    @wells_group.command("list")
    def wells_list() -> None:
        """List all wells with their boundaries."""
        from wellseries import wells as svc

        cfg, registry = store_context()
        try:
            views = svc.list_wells(cfg=cfg, registry=registry)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "wells": [v.as_dict() for v in views]})

    @wells_group.command("delete")
    @click.argument("well_id", type=WELL_ID)
    def wells_delete(well_id: UUID) -> None:
        """Delete a well's metadata. Its hypertable and data are kept."""
        from wellseries import wells as svc

        _cfg, registry = store_context()
        try:
            well = svc.delete_well(registry=registry, well_id=well_id)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "well_id": str(well.id), "table_kept": well.table_name})
