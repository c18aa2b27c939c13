"""Run identifier helpers."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone

RUN_ID_PREFIX = "run-"


def generate_run_id(now: datetime | None = None) -> str:
    """Return ``run-<UTC timestamp>-<6 hex chars>``; sorts by start time."""
    stamp = (now or datetime.now(tz=timezone.utc)).astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{RUN_ID_PREFIX}{stamp}-{secrets.token_hex(3)}"
