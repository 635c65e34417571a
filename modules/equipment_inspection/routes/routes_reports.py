# modules/equipment_inspection/routes/routes_reports.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from core.database import get_db
from core.logging_config import logger
from core.models.time import utcnow

from modules.equipment_inspection.services.services_records_repository import list_records
from modules.equipment_inspection.services.services_reports import (
    compute_statistics,
    export_rows,
    export_workbook,
)

from .inspection_common import require_store_ready

router = APIRouter(
    tags=["reports"],
    dependencies=[Depends(require_store_ready)],
)


@router.get("/statistics")
def statistics(db: Session = Depends(get_db)):
    stats = compute_statistics(list_records(db))
    logger.info("[STATS] total=%s", stats["total"])
    return stats


@router.get("/export")
def export_json(db: Session = Depends(get_db)):
    rows = export_rows(list_records(db))
    logger.info("[EXPORT] filas=%s", len(rows))
    return rows


@router.get("/export/excel")
def export_excel(db: Session = Depends(get_db)):
    rows = export_rows(list_records(db))
    if not rows:
        logger.info("[EXPORT] sin registros para exportar")

    stream = export_workbook(rows)
    filename = f"revisiones_equipos_{utcnow().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
