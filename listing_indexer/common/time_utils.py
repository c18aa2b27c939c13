"""UTC-focused helpers for timestamps and calendar dates."""

from __future__ import annotations

from datetime import datetime, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def iso_date_to_epoch_millis(value: str) -> int:
    """Convert a ``YYYY-MM-DD`` string to milliseconds since the epoch at UTC midnight.

    Raises ``ValueError`` when the string is not a valid calendar date.
    """
    parsed = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return int((parsed - _EPOCH).total_seconds() * 1000)
