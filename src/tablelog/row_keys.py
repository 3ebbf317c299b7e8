# ── src/tablelog/row_keys.py ────────────────────────────────────────────────
"""
Row-key generation for log entities.

    RowKey = <unix epoch millis><4-digit zero-padded random in [0, 1000)>

e.g. 2025-07-01T00:00:00.123Z → "1751328000123" + "0042"

Keys sort chronologically inside a partition. They are NOT unique: two
records of the same node in the same millisecond collide with p ≈ 1/1000
and the later upsert replaces the earlier entity.
"""
from __future__ import annotations

import datetime as _dt
import random
from typing import Optional

_EPOCH = _dt.datetime(1970, 1, 1, tzinfo=_dt.timezone.utc)
_ONE_MS = _dt.timedelta(milliseconds=1)
SUFFIX_RANGE = 1000


def unix_millis(ts: _dt.datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=_dt.timezone.utc)
    return (ts - _EPOCH) // _ONE_MS


class RowKeyGenerator:
    """Row keys from an injectable random source (seed it for reproducible keys)."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def suffix(self) -> int:
        return self._rng.randrange(SUFFIX_RANGE)

    def __call__(self, event_time: _dt.datetime) -> str:
        return f"{unix_millis(event_time)}{self.suffix():04d}"


# process-wide generator used when the caller does not pass one
default_generator = RowKeyGenerator()
