from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from core.config import settings


_LOCAL_TZ = ZoneInfo(settings.APP_TIMEZONE)


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """
    Asegura tz-aware en UTC.
    - naive => UTC (SQLite devuelve naive)
    - aware => UTC
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local_tz(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return ensure_utc_aware(dt).astimezone(_LOCAL_TZ)


def local_today(now: datetime | None = None) -> date:
    """Fecha calendario de hoy en la zona horaria de la app."""
    now = now or datetime.now(timezone.utc)
    return to_local_tz(now).date()


def local_date(dt: datetime | None) -> str:
    """DD/MM/YYYY (formato es-ES)."""
    if dt is None:
        return "-"
    return to_local_tz(dt).strftime("%d/%m/%Y")


def local_time(dt: datetime | None) -> str:
    """HH:MM:SS (formato es-ES)."""
    if dt is None:
        return "-"
    return to_local_tz(dt).strftime("%H:%M:%S")


def iso_utc(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return ensure_utc_aware(dt).isoformat()
