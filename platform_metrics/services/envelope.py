"""Cache provenance wrapper for report payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping


def build_envelope(report: Mapping[str, Any], *, cached: bool, timestamp: datetime) -> dict[str, Any]:
    """Return the report with ``cached`` plus ``cachedAt`` or ``computedAt``."""
    stamp_field = "cachedAt" if cached else "computedAt"
    return {**report, "cached": cached, stamp_field: timestamp.isoformat()}
