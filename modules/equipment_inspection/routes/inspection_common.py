# modules/equipment_inspection/routes/inspection_common.py
"""
Utilidades compartidas del módulo Equipment Inspection.

✔ Blob store único por proceso (dependency)
✔ Gating de readiness del store (re-probe si arrancó caído)
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.config import settings
from core.database import check_db_connection, get_db, init_db
from core.logging_config import logger

from modules.equipment_inspection.services.services_blob_store import BlobStore, build_blob_store
from modules.equipment_inspection.services.services_core import StoreUnavailable


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    return build_blob_store(settings)


def require_store_ready(request: Request, db: Session = Depends(get_db)) -> None:
    """
    Readiness por request:
    - si el lifespan dejó store_ready=True, pasa directo
    - si no, vuelve a probar (SELECT 1 + create_all) y recuerda el resultado
    """
    if getattr(request.app.state, "store_ready", False):
        return

    ready = check_db_connection(db)
    if ready:
        try:
            init_db(bind=db.get_bind())
        except Exception:
            logger.exception("[STORE] create_all falló en re-probe")
            ready = False

    if not ready:
        raise StoreUnavailable("Database not initialized")

    request.app.state.store_ready = True
    logger.info("[STORE] readiness recuperada")
