"""
Per-well table names.

Every well owns one hypertable named ``timeseries_<32 hex>``, the hex being the
well's UUID without dashes. Table names are spliced into SQL text (PostgreSQL
does not accept identifiers as bound parameters), so every code path that
builds SQL from a name must pass it through `validate_table_name` first, even
when the name was just read back from the `wells` table.
"""

from __future__ import annotations

import re
from typing import Any
from uuid import UUID

import structlog

from wellseries.errors import InvalidTableName

log = structlog.get_logger()

TABLE_PREFIX = "timeseries_"

# \Z rather than $: `$` also matches before a trailing newline.
_HEX32_RE = re.compile(r"[0-9A-Fa-f]{32}\Z")


def _as_uuid(well_id: UUID | str) -> UUID:
    if isinstance(well_id, UUID):
        return well_id
    return UUID(str(well_id))


def encode_table_name(well_id: UUID | str) -> str:
    """
    Derive the table name for a well: ``"timeseries_" + lowercase hex``.
    """
    return f"{TABLE_PREFIX}{_as_uuid(well_id).hex}"


def is_valid_table_name(name: Any) -> bool:
    if not isinstance(name, str) or not name.startswith(TABLE_PREFIX):
        return False
    return _HEX32_RE.match(name, len(TABLE_PREFIX)) is not None


def validate_table_name(name: Any) -> str:
    """
    Return `name` unchanged if it is a well table name, else raise InvalidTableName.

    A rejected name means corrupted metadata or an injection attempt, so it is
    logged at warning level with a `security` marker.
    """
    if is_valid_table_name(name):
        return name
    log.warning("table_names.rejected", security=True, table=repr(name)[:200])
    raise InvalidTableName(name)


def decode_table_name(name: Any) -> UUID:
    """
    Recover the well id from a table name (diagnostics and boundary bookkeeping).
    """
    tbl = validate_table_name(name)
    return UUID(hex=tbl[len(TABLE_PREFIX):])
