# modules/equipment_inspection/services/services_image_reconciliation.py
from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.formatting import iso_utc
from core.logging_config import logger
from core.models.time import utcnow

from .services_blob_store import BlobStore
from .services_core import InspectionDomainError, has_url_scheme
from .services_records_repository import list_records_with_images, replace_images


KIND_REMOTE = "remote"
KIND_LOCAL = "local"
KIND_DEPRECATED = "deprecated"

STATUS_OK = "ok"
STATUS_BROKEN = "broken"


def needs_repair(image: Any, blob_store: BlobStore, marker: str) -> bool:
    if not isinstance(image, dict):
        return False
    filename = (image.get("filename") or "").strip()
    url = image.get("url") or ""
    if not filename or has_url_scheme(filename) or marker not in url:
        return False
    return blob_store.public_url(filename) != url


def _classify(image: dict, blob_store: BlobStore, marker: str) -> tuple[str, str]:
    if needs_repair(image, blob_store, marker):
        return KIND_DEPRECATED, STATUS_BROKEN
    if has_url_scheme(image.get("url")):
        return KIND_REMOTE, STATUS_OK
    return KIND_LOCAL, STATUS_OK


# =========================================================
# REPARACIÓN (batch, commit por registro)
# =========================================================

def reconcile_image_urls(
    db: Session,
    blob_store: BlobStore,
    marker: str | None = None,
) -> Dict[str, int]:
    marker = marker or settings.DEPRECATED_URL_MARKER
    records = list_records_with_images(db)

    records_updated = 0
    images_scanned = 0

    for record in records:
        images = record.images if isinstance(record.images, list) else []
        images_scanned += len(images)

        dirty = False
        repaired: List[Any] = []
        for img in images:
            if not needs_repair(img, blob_store, marker):
                repaired.append(img)
                continue

            fresh = blob_store.public_url(img["filename"].strip())
            repaired.append({
                **img,
                "url": fresh,
                "previousUrl": img.get("url"),
                "correctedAt": iso_utc(utcnow()),
            })
            dirty = True

        if not dirty:
            continue

        record_id = record.id
        try:
            replace_images(db, record_id, repaired)
            db.commit()
        except InspectionDomainError as exc:
            db.rollback()
            logger.error("[RECONCILE] id=%s no se pudo actualizar: %s", record_id, exc.message)
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("[RECONCILE] id=%s commit fallido: %s", record_id, exc)
            continue

        records_updated += 1
        logger.info("[RECONCILE] id=%s equipo_id=%s URLs corregidas", record_id, record.equipo_id)

    logger.info("[RECONCILE] registros=%s actualizados=%s imagenes=%s", len(records), records_updated, images_scanned)
    return {"recordsUpdated": records_updated, "imagesScanned": images_scanned}


# =========================================================
# REPORTE (solo lectura)
# =========================================================

def image_status_report(
    db: Session,
    blob_store: BlobStore,
    marker: str | None = None,
) -> Dict[str, Any]:
    marker = marker or settings.DEPRECATED_URL_MARKER
    records = list_records_with_images(db)

    total_images = 0
    remote = 0
    local = 0
    broken = 0
    out_records: List[Dict[str, Any]] = []

    for record in records:
        images = [img for img in (record.images or []) if isinstance(img, dict)]
        total_images += len(images)

        info: List[Dict[str, Any]] = []
        for img in images:
            kind, status = _classify(img, blob_store, marker)
            if kind == KIND_REMOTE:
                remote += 1
            elif kind == KIND_DEPRECATED:
                broken += 1
            else:
                local += 1
            info.append({**img, "kind": kind, "status": status})

        out_records.append({
            "id": record.id,
            "equipoId": record.equipo_id,
            "imageCount": len(images),
            "images": info,
        })

    return {
        "summary": {
            "totalRecords": len(records),
            "totalImages": total_images,
            "remoteImages": remote,
            "localImages": local,
            "brokenImages": broken,
        },
        "needsFix": broken > 0,
        "records": out_records,
    }
