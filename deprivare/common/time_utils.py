"""UTC-focused helpers for installation and log timestamps."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def elapsed_ms(started: float) -> int:
    """Milliseconds since a ``time.monotonic()`` reading."""
    return int((time.monotonic() - started) * 1000)
