# modules/equipment_inspection/routes/routes_images.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.models.time import utcnow

from modules.equipment_inspection.services.services_blob_store import BlobStore
from modules.equipment_inspection.services.services_image_reconciliation import (
    image_status_report,
    reconcile_image_urls,
)

from .inspection_common import get_blob_store, require_store_ready

router = APIRouter(
    prefix="/images",
    tags=["images"],
    dependencies=[Depends(require_store_ready)],
)

uploads_router = APIRouter(tags=["uploads"])


_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


@router.post("/reconcile")
def images_reconcile(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    counts = reconcile_image_urls(db, blob_store, settings.DEPRECATED_URL_MARKER)
    return {
        **counts,
        "message": "Image URLs reconciled",
        "timestamp": utcnow().isoformat(),
    }


@router.get("/status")
def images_status(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    return image_status_report(db, blob_store, settings.DEPRECATED_URL_MARKER)


# ============================
# ARCHIVOS LOCALES (fallback)
# ============================

@uploads_router.get(settings.UPLOADS_URL_PREFIX.rstrip("/") + "/{file_path:path}")
def serve_upload(
    file_path: str,
    blob_store: BlobStore = Depends(get_blob_store),
):
    path = blob_store.local_path(file_path)
    if path is None or not path.is_file():
        return JSONResponse(
            status_code=404,
            content={"error": "File not found", "path": file_path},
        )

    return FileResponse(
        path,
        media_type=_CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream"),
        headers={"Cache-Control": "public, max-age=86400"},
    )
