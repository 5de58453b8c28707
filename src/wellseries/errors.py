"""
Typed failures raised by the time-series core.

Each class carries a stable ``kind`` string so callers (CLI, services) can map
failures to their own status codes without matching on messages.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class WellSeriesError(RuntimeError):
    kind = "wellseries_error"

    def as_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": str(self)}


class WellNotFound(WellSeriesError, LookupError):
    kind = "well_not_found"

    def __init__(self, well_id: UUID | str) -> None:
        self.well_id = str(well_id)
        super().__init__(f"Well not found: {self.well_id}")

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "well_id": self.well_id}


class InvalidTableName(WellSeriesError, ValueError):
    kind = "invalid_table_name"

    def __init__(self, table: Any) -> None:
        self.table = table
        super().__init__(f"Invalid table name: {table!r}")


class EmptyBatch(WellSeriesError, ValueError):
    kind = "empty_batch"

    def __init__(self, message: str = "Batch must contain at least one point") -> None:
        super().__init__(message)


class ProvisioningFailure(WellSeriesError):
    kind = "provisioning_failure"

    def __init__(self, table: str, message: str, *, transient: bool = False) -> None:
        self.table = str(table)
        self.transient = bool(transient)
        super().__init__(f"Provisioning {self.table} failed: {message}")

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "table": self.table, "transient": self.transient}


class WellProvisioningIncomplete(ProvisioningFailure):
    """
    The well metadata row was saved but its table could not be provisioned.

    The well exists without a backing table. The caller decides whether to
    delete the metadata or retry provisioning; nothing is rolled back here.
    """

    kind = "well_provisioning_incomplete"

    def __init__(self, well: Any, cause: ProvisioningFailure) -> None:
        self.well = well
        super().__init__(cause.table, str(cause), transient=cause.transient)

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "well_id": str(getattr(self.well, "id", ""))}


class StoreError(WellSeriesError):
    kind = "store_error"

    def __init__(self, operation: str, table: str | None, message: str, *, transient: bool = False) -> None:
        self.operation = str(operation)
        self.table = table
        self.transient = bool(transient)
        where = f" on {table}" if table else ""
        super().__init__(f"{self.operation}{where} failed: {message}")

    def as_dict(self) -> dict[str, Any]:
        return {
            **super().as_dict(),
            "operation": self.operation,
            "table": self.table,
            "transient": self.transient,
        }
