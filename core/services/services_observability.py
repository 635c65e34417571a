# core/services/services_observability.py
"""
Observability / Health – Equipment Inspection API

✔ Health check DB (rápido y confiable)
✔ Readiness del storage (bucket o carpeta local)
✔ Health global (ok / degraded)
✔ Snapshot de conteos (sin romper si falla)
"""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy.orm import Session

from core.database import check_db_connection
from core.logging_config import logger
from core.models import EquipmentRecord
from core.models.time import utcnow


_STARTED_AT = time.monotonic()


def uptime_seconds() -> float:
    return round(time.monotonic() - _STARTED_AT, 2)


def _safe_count(fn, label: str) -> int:
    """
    Ejecuta un count defensivo. Si falla, retorna -1 y loggea.
    """
    try:
        return int(fn())
    except Exception as exc:
        logger.exception("[HEALTH][COUNT] Error en %s: %s", label, exc)
        return -1


def check_storage(blob_store) -> dict[str, Any]:
    try:
        return blob_store.check_ready()
    except Exception as exc:
        logger.exception("[HEALTH][STORAGE] check_ready falló")
        return {"ok": False, "backend": getattr(blob_store, "backend", None), "error": str(exc)}


def get_app_health(db: Session, blob_store) -> dict[str, Any]:
    """
    Health global: ok / degraded.
    """
    db_ok = check_db_connection(db)
    storage = check_storage(blob_store)
    storage_ok = bool(storage.get("ok"))

    health: dict[str, Any] = {
        "status": "ok" if db_ok and storage_ok else "degraded",
        "timestamp": utcnow().isoformat(),
        "database": db_ok,
        "storage": storage_ok,
        "storageBackend": storage.get("backend"),
        "uploadsDir": storage.get("uploadsDir"),
        "uptimeSeconds": uptime_seconds(),
    }

    if db_ok:
        health["records"] = _safe_count(lambda: db.query(EquipmentRecord).count(), "EquipmentRecord.count")
        logger.info("[HEALTH] status=%s records=%s storage=%s", health["status"], health["records"], storage_ok)
    else:
        logger.warning("[HEALTH] status=degraded db_ok=false storage=%s", storage_ok)

    if storage.get("error"):
        health["storageError"] = storage["error"]

    return health
