# core/models/time.py
from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timestamp UTC timezone-aware (default de columnas y servicios)."""
    return datetime.now(timezone.utc)
