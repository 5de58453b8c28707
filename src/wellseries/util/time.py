"""
Shared timestamp utilities.

Series timestamps are epoch milliseconds (int). These helpers convert them for
display and accept ISO strings on the command line.
"""

from __future__ import annotations

from datetime import datetime, timezone


def ms_to_iso(ms: int | None) -> str | None:
    if ms is None:
        return None
    return datetime.fromtimestamp(int(ms) / 1000.0, tz=timezone.utc).isoformat(timespec="milliseconds")


def parse_ms(value: str | int) -> int:
    """
    Parse epoch milliseconds or an ISO-8601 datetime (naive values are UTC).
    """
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if not s:
        raise ValueError("empty timestamp")
    try:
        return int(s)
    except ValueError:
        pass
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))
