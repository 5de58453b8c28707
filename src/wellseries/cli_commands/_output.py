from __future__ import annotations

import json
from typing import Any, NoReturn
from uuid import UUID

import click

from wellseries.errors import EmptyBatch, InvalidTableName, WellNotFound, WellSeriesError
from wellseries.util.time import parse_ms

# Failures caused by the caller's input; everything else is the store's side.
CALLER_ERRORS = (WellNotFound, InvalidTableName, EmptyBatch)


def echo_json(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, default=str))


def fail(err: WellSeriesError) -> NoReturn:
    echo_json({"ok": False, **err.as_dict()})
    raise SystemExit(2 if isinstance(err, CALLER_ERRORS) else 1)


class WellIdParam(click.ParamType):
    name = "well_id"

    def convert(self, value: Any, param: Any, ctx: Any) -> UUID:
        if isinstance(value, UUID):
            return value
        try:
            return UUID(str(value).strip())
        except ValueError:
            self.fail(f"{value!r} is not a UUID", param, ctx)


class TimestampParam(click.ParamType):
    """Epoch milliseconds or an ISO-8601 datetime."""

    name = "timestamp"

    def convert(self, value: Any, param: Any, ctx: Any) -> int:
        if isinstance(value, int):
            return value
        try:
            return parse_ms(value)
        except ValueError:
            self.fail(f"{value!r} is neither epoch milliseconds nor ISO-8601", param, ctx)


WELL_ID = WellIdParam()
TIMESTAMP = TimestampParam()


def store_context() -> tuple[Any, Any]:
    """Connection config from env plus the PostgreSQL well registry."""
    from wellseries.registry import PgWellRegistry
    from wellseries.timescale.client import make_pg_config_from_env

    cfg = make_pg_config_from_env()
    return cfg, PgWellRegistry(cfg=cfg)
