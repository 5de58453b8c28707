"""
wellseries CLI thin entrypoint.

Command implementations are registered from `wellseries.cli_commands.*`.
"""

from __future__ import annotations

import logging
import os
import sys

import click
import structlog

from wellseries.config import load_config

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    env_level = os.environ.get("WELLSERIES_LOG_LEVEL", "").strip().lower()
    if verbose or env_level in {"debug", "trace"}:
        level = logging.DEBUG
    elif env_level in {"warning", "warn"}:
        level = logging.WARNING
    elif env_level == "error":
        level = logging.ERROR
    elif env_level == "critical":
        level = logging.CRITICAL
    else:
        level = logging.INFO
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # Logs go to stderr; stdout carries the JSON result of each command.
    logging.basicConfig(format="%(message)s", level=level, handlers=[logging.StreamHandler(sys.stderr)])
    logging.getLogger("psycopg").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """wellseries: per-well sensor time series on TimescaleDB."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)
    load_config()


from wellseries.cli_commands.db import register as _register_db
from wellseries.cli_commands.timeseries import register as _register_timeseries
from wellseries.cli_commands.wells import register as _register_wells

_register_db(main)
_register_wells(main)
_register_timeseries(main)


def entrypoint() -> None:
    main(obj={})


if __name__ == "__main__":
    entrypoint()
