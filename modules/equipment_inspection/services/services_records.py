# modules/equipment_inspection/services/services_records.py
"""
Record Service – Equipment Inspection

Orquesta codec + blob store + repositorio.

- Crear: valida, sube imágenes (fan-out acotado) y luego inserta
- Actualizar: existe primero, después sube / conserva / descarta imágenes
- Eliminar: borra fila, luego limpieza local best-effort
- Listar: normaliza referencias de imagen para lectura
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.formatting import iso_utc
from core.logging_config import logger
from core.models.time import utcnow

from .services_blob_store import BlobStore
from .services_core import (
    IMAGE_FAILURES,
    LocalRef,
    RemoteRef,
    default_title,
    has_url_scheme,
    image_ref,
    validate_required_fields,
)
from .services_image_codec import decode_data_uri
from .services_records_repository import (
    RecordFilters,
    delete_record,
    get_record,
    insert_record,
    list_records,
    serialize_record,
    update_record,
)


# =========================================================
# UPLOAD FAN-OUT
# =========================================================

@dataclass(frozen=True)
class UploadJob:
    position: int  # 1-based, posición en el request
    title: str
    data_uri: str


def _upload_one(blob_store: BlobStore, job: UploadJob, namespace: str) -> Optional[dict]:
    try:
        decoded = decode_data_uri(job.data_uri)
        stored = blob_store.upload(decoded.data, decoded.subtype, namespace, job.position)
    except IMAGE_FAILURES as exc:
        logger.warning(
            "[RECORDS][IMG] descartada namespace=%s pos=%s code=%s msg=%s",
            namespace,
            job.position,
            exc.code,
            exc.message,
        )
        return None

    return {
        "title": job.title,
        "filename": stored.key,
        "url": stored.public_url,
        "size": stored.size,
        "uploadedAt": iso_utc(utcnow()),
    }


def upload_images(
    blob_store: BlobStore,
    jobs: List[UploadJob],
    namespace: str,
    max_workers: int | None = None,
) -> Dict[int, Optional[dict]]:
    """
    Sube en paralelo (pool acotado). Devuelve {position: descriptor | None}.
    Una imagen fallida no afecta a las demás.
    """
    if not jobs:
        return {}

    workers = max(1, min(max_workers or settings.UPLOAD_MAX_WORKERS, len(jobs)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="img-upload") as pool:
        futures = {job.position: pool.submit(_upload_one, blob_store, job, namespace) for job in jobs}
        return {position: fut.result() for position, fut in futures.items()}


def _title(image: dict, position: int) -> str:
    return (image.get("title") or "").strip() or default_title(position)


def _images_payload(payload: dict[str, Any]) -> list[dict]:
    images = payload.get("images") or []
    return [img for img in images if isinstance(img, dict)]


# =========================================================
# CREAR
# =========================================================

def create_record(db: Session, blob_store: BlobStore, payload: dict[str, Any]) -> dict[str, Any]:
    validate_required_fields(payload)
    equipo_id = payload["equipoId"]
    images = _images_payload(payload)

    jobs = [
        UploadJob(position=i, title=_title(img, i), data_uri=img["base64"])
        for i, img in enumerate(images, start=1)
        if img.get("base64")
    ]
    logger.info("[RECORDS][CREATE] equipo_id=%s imagenes=%s uploads=%s", equipo_id, len(images), len(jobs))

    uploaded = upload_images(blob_store, jobs, equipo_id)
    saved = [uploaded[job.position] for job in jobs if uploaded.get(job.position)]

    record = insert_record(db, payload, saved)
    return {
        "id": record.id,
        "equipoId": record.equipo_id,
        "serialNumber": record.serial_number,
        "imagesSaved": len(saved),
        "message": "Record created successfully",
    }


# =========================================================
# ACTUALIZAR
# =========================================================

def _keep_existing(blob_store: BlobStore, image: dict, position: int) -> Optional[dict]:
    filename = (image.get("filename") or "").strip()
    if not filename:
        return None

    ref = image_ref({"filename": filename, "url": image.get("url")})
    base = {
        "title": _title(image, position),
        "size": image.get("size") or 0,
        "uploadedAt": image.get("uploadedAt") or iso_utc(utcnow()),
    }

    if isinstance(ref, RemoteRef):
        remote_url = ref.url
        if blob_store.remote_exists(ref) is False:
            logger.warning("[RECORDS][UPDATE] imagen remota inexistente, se descarta: %s", remote_url)
            return None
        return {**base, "filename": remote_url, "url": remote_url}

    if isinstance(ref, LocalRef) and blob_store.local_exists(ref.path):
        return {**base, "filename": ref.path, "url": image.get("url")}

    logger.warning("[RECORDS][UPDATE] imagen local inexistente, se descarta: %s", filename)
    return None


def update_record_with_images(
    db: Session,
    blob_store: BlobStore,
    record_id: int,
    payload: dict[str, Any],
) -> dict[str, Any]:
    # existencia primero: un 404 nunca sube nada
    get_record(db, record_id)
    validate_required_fields(payload)

    namespace = f"{payload['equipoId']}-update"
    images = _images_payload(payload)

    jobs: List[UploadJob] = []
    kept: Dict[int, Optional[dict]] = {}
    for i, img in enumerate(images, start=1):
        data_uri = img.get("base64")
        if isinstance(data_uri, str) and data_uri.startswith("data:image"):
            jobs.append(UploadJob(position=i, title=_title(img, i), data_uri=data_uri))
        else:
            kept[i] = _keep_existing(blob_store, img, i)

    uploaded = upload_images(blob_store, jobs, namespace)
    merged = {**kept, **uploaded}
    final = [merged[i] for i in sorted(merged) if merged[i]]

    update_record(db, record_id, payload, final)
    logger.info("[RECORDS][UPDATE] id=%s imagenes_finales=%s", record_id, len(final))
    return {"message": "Record updated successfully", "imagesSaved": len(final)}


# =========================================================
# ELIMINAR
# =========================================================

def delete_record_and_images(db: Session, blob_store: BlobStore, record_id: int) -> dict[str, Any]:
    images = delete_record(db, record_id)
    db.commit()

    deleted = 0
    for img in images:
        ref = image_ref(img)
        if isinstance(ref, RemoteRef):
            # url reescrita por /images/reconcile: el archivo puede seguir en disco
            if not (ref.key and not has_url_scheme(ref.key) and blob_store.local_exists(ref.key)):
                continue
            ref = LocalRef(ref.key)
        if not isinstance(ref, LocalRef):
            continue
        if blob_store.delete_local(ref):
            deleted += 1
        else:
            logger.warning("[RECORDS][DELETE] no se pudo borrar archivo local: %s", ref.path)

    logger.info("[RECORDS][DELETE] id=%s archivos_locales_borrados=%s", record_id, deleted)
    return {"message": "Record deleted successfully"}


# =========================================================
# LISTAR (normalización de lectura)
# =========================================================

def normalize_images_for_read(blob_store: BlobStore, record_id: int, images: list | None) -> list[dict]:
    out: list[dict] = []
    for img in images or []:
        if not isinstance(img, dict):
            continue
        ref = image_ref(img)
        if isinstance(ref, RemoteRef):
            out.append({**img, "filename": ref.url})
        elif isinstance(ref, LocalRef):
            if blob_store.local_exists(ref.path):
                out.append(dict(img))
            else:
                logger.warning("[RECORDS][LIST] id=%s archivo local no encontrado: %s", record_id, ref.path)
    return out


def list_records_for_read(
    db: Session,
    blob_store: BlobStore,
    filters: RecordFilters | None = None,
) -> list[dict[str, Any]]:
    records = list_records(db, filters)
    logger.info("[RECORDS][LIST] encontrados=%s", len(records))
    return [
        serialize_record(r, normalize_images_for_read(blob_store, r.id, r.images))
        for r in records
    ]
