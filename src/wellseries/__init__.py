"""
wellseries: per-well sensor time series on PostgreSQL + TimescaleDB.

This package provides:
- Deterministic, validated per-well hypertable names
- Idempotent provisioning of one hypertable per well (cloned from a template)
- Insert / range read / range delete against a well's table
- Denormalized min/max timestamp boundaries maintained by a trigger
"""

__version__ = "0.1.0"
