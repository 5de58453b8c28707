"""
Configuration: centralized settings for the time-series store.

Loads configuration from:
1. Environment variables
2. .env file (if present, via python-dotenv)

Usage:
    from wellseries.config import load_config, get_pg_host

    # At CLI startup
    load_config()
"""

from __future__ import annotations

import os

import structlog

log = structlog.get_logger()

_config_loaded = False

DEFAULT_TEMPLATE_TABLE = "timeseries_template"
DEFAULT_CHUNK_INTERVAL_MS = 7 * 24 * 60 * 60 * 1000

_TRUTHY = {"1", "true", "yes", "on"}


def load_config() -> None:
    """
    Merge the nearest `.env` (searched upward from the working directory) into
    the environment, once. Variables already set win over the file.
    """
    global _config_loaded
    if _config_loaded:
        return
    _config_loaded = True

    # Tests control the environment explicitly; a developer's local `.env` must not leak in.
    if os.environ.get("PYTEST_CURRENT_TEST") or os.environ.get("WELLSERIES_DISABLE_DOTENV", "").strip().lower() in _TRUTHY:
        log.debug("config.skip_dotenv", reason="pytest_or_disabled")
        return

    from dotenv import find_dotenv, load_dotenv

    env_file = find_dotenv(usecwd=True)
    if not env_file:
        log.debug("config.no_dotenv_found")
        return
    load_dotenv(env_file, override=False)
    log.debug("config.loaded_dotenv", path=env_file)


def get_env(key: str, default: str) -> str:
    """Environment value for `key`; blank or unset gives `default`."""
    load_config()
    value = os.environ.get(key, "").strip()
    return value or default


def env_int(key: str, default: int) -> int:
    """Integer environment value; unparsable input logs a warning and gives `default`."""
    raw = get_env(key, str(int(default)))
    try:
        return int(raw)
    except ValueError:
        log.warning("config.invalid_int", key=key, value=raw, fallback=int(default))
        return int(default)


# ---------------------------------------------------------------------------
# PostgreSQL / TimescaleDB connection defaults
# ---------------------------------------------------------------------------


def get_pg_host() -> str:
    return get_env("WELLSERIES_PG_HOST", "127.0.0.1")


def get_pg_port() -> int:
    return env_int("WELLSERIES_PG_PORT", 5432)


def get_pg_user() -> str:
    return get_env("WELLSERIES_PG_USER", "postgres")


def get_pg_password() -> str:
    return get_env("WELLSERIES_PG_PASSWORD", "postgres")


def get_pg_dbname() -> str:
    return get_env("WELLSERIES_PG_DBNAME", "wellseries")


def get_connect_timeout_s() -> int:
    return max(1, env_int("WELLSERIES_PG_CONNECT_TIMEOUT_S", 2))


# ---------------------------------------------------------------------------
# Per-well hypertable layout
# ---------------------------------------------------------------------------


def get_template_table() -> str:
    """Name of the table every per-well table is cloned from."""
    return get_env("WELLSERIES_TEMPLATE_TABLE", DEFAULT_TEMPLATE_TABLE)


def get_chunk_interval_ms() -> int:
    """Hypertable chunk width on the integer `timestamp` column (epoch ms)."""
    v = env_int("WELLSERIES_CHUNK_INTERVAL_MS", DEFAULT_CHUNK_INTERVAL_MS)
    if v <= 0:
        log.warning("config.invalid_chunk_interval", value=v, fallback=DEFAULT_CHUNK_INTERVAL_MS)
        return DEFAULT_CHUNK_INTERVAL_MS
    return v
