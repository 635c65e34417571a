# core/routes/routes_health.py
"""
Health routes – Equipment Inspection API

✔ Público (load balancers / uptime checks)
✔ 200 si DB y storage están listos, 503 si no
✔ Respuesta JSON consistente
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.database import get_db
from core.logging_config import logger
from core.models.time import utcnow
from core.services.services_observability import get_app_health

from modules.equipment_inspection.routes.inspection_common import get_blob_store


router = APIRouter(tags=["health"])


@router.get("/health")
def health(
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store),
):
    try:
        payload = get_app_health(db, blob_store)
    except Exception as exc:
        logger.exception("[HEALTH] error")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "timestamp": utcnow().isoformat(), "error": str(exc)},
        )

    status_code = 200 if payload["status"] == "ok" else 503
    return JSONResponse(status_code=status_code, content=payload)
