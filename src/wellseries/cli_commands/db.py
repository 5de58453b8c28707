from __future__ import annotations

from uuid import UUID

import click

from wellseries.errors import WellSeriesError

from ._output import WELL_ID, echo_json, fail, store_context


def register(main: click.Group) -> None:
    """
    Register `wellseries db ...` commands onto the root CLI group.
    """

    @main.group("db")
    @click.pass_context
    def db_group(ctx: click.Context) -> None:
        """Schema and connectivity utilities (PostgreSQL/TimescaleDB)."""
        _ = ctx

    @db_group.command("health")
    @click.option("--host", default="", help="PostgreSQL host (default: env/config)")
    @click.option("--pg-port", default=0, type=int, help="PostgreSQL port (default: env/config)")
    @click.option("--pg-user", default="", help="PostgreSQL user (default: env/config)")
    @click.option("--pg-password", default="", help="PostgreSQL password (default: env/config)")
    @click.option("--pg-dbname", default="", help="PostgreSQL dbname (default: env/config)")
    @click.option("--connect-timeout", default=1, type=int, show_default=True, help="Connect timeout seconds")
    def db_health(
        host: str,
        pg_port: int,
        pg_user: str,
        pg_password: str,
        pg_dbname: str,
        connect_timeout: int,
    ) -> None:
        """Check reachability (SELECT 1) and report the TimescaleDB extension version."""
        import time

        from wellseries.timescale.client import PgConfig, make_pg_config_from_env, pg_reachable

        env_cfg = make_pg_config_from_env()
        cfg = PgConfig(
            host=str(host).strip() or env_cfg.host,
            pg_port=int(pg_port) if int(pg_port) > 0 else env_cfg.pg_port,
            pg_user=str(pg_user).strip() or env_cfg.pg_user,
            pg_password=str(pg_password).strip() or env_cfg.pg_password,
            pg_dbname=str(pg_dbname).strip() or env_cfg.pg_dbname,
        )

        t0 = time.time()
        out = pg_reachable(cfg, connect_timeout_s=int(connect_timeout), retries=1, backoff_s=0.2)
        dt_ms = int((time.time() - t0) * 1000.0)
        echo_json(
            {
                **out,
                "host": cfg.host,
                "pg_port": int(cfg.pg_port),
                "pg_user": cfg.pg_user,
                "pg_dbname": cfg.pg_dbname,
                "latency_ms": dt_ms,
            }
        )
        if not out.get("ok"):
            raise SystemExit(1)

    @db_group.command("init")
    @click.option("--template-table", default="", help="Template table name (default: env/config)")
    @click.option(
        "--with-extension/--no-extension",
        default=True,
        show_default=True,
        help="Run CREATE EXTENSION IF NOT EXISTS timescaledb",
    )
    def db_init(template_table: str, with_extension: bool) -> None:
        """Ensure the template, boundaries and wells tables and the boundary trigger function exist."""
        from wellseries.timescale.client import make_pg_config_from_env
        from wellseries.timescale.schema import ensure_base_schema

        try:
            out = ensure_base_schema(
                cfg=make_pg_config_from_env(),
                template_table=(str(template_table).strip() or None),
                with_extension=bool(with_extension),
            )
        except WellSeriesError as e:
            fail(e)
        echo_json(out)

    @db_group.command("provision")
    @click.argument("well_id", type=WELL_ID)
    def db_provision(well_id: UUID) -> None:
        """(Re)provision the hypertable of an existing well. Safe to repeat."""
        from wellseries import wells as svc

        cfg, registry = store_context()
        try:
            table = svc.provision_well(cfg=cfg, registry=registry, well_id=well_id)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "well_id": str(well_id), "table": table})

    @db_group.command("check-name")
    @click.argument("name")
    def db_check_name(name: str) -> None:
        """Validate a per-well table name and decode its well id."""
        from wellseries.timescale.table_names import decode_table_name

        try:
            well_id = decode_table_name(name)
        except WellSeriesError as e:
            fail(e)
        echo_json({"ok": True, "table": name, "well_id": str(well_id)})
