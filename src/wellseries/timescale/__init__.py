"""
TimescaleDB integration (PostgreSQL with hypertables is the canonical store).

This package contains:
- PGWire connection config and helpers
- per-well table name derivation and validation
- schema DDL: template, per-well hypertables, boundary trigger
- per-well time-series reads and writes
- min/max timestamp boundaries
"""
