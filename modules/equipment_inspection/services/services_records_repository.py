# modules/equipment_inspection/services/services_records_repository.py
"""
Record Repository – Equipment Inspection

✅ Reglas
- Solo flush: el commit es responsabilidad de la ruta (o del job por registro)
- IntegrityError -> error de dominio tipado (con rollback previo)
- OperationalError / DBAPIError -> StoreUnavailable
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator, List, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from core.formatting import iso_utc
from core.logging_config import logger
from core.models import EquipmentRecord
from core.models.time import utcnow

from .services_core import (
    ConstraintViolation,
    DuplicateKey,
    MissingField,
    NotFound,
    StoreUnavailable,
)


# nombre API -> columna ORM
FIELD_MAP: dict[str, str] = {
    "equipoId": "equipo_id",
    "serialNumber": "serial_number",
    "placaMl": "placa_ml",
    "latitude": "latitude",
    "longitude": "longitude",
    "autoAddress": "auto_address",
    "manualLocation": "manual_location",
    "responsible": "responsible",
    "role": "role",
    "state": "state",
    "windowsUpdateApplied": "windows_update_applied",
    "observations": "observations",
    "detectedProblems": "detected_problems",
    "reviewer": "reviewer",
}


@dataclass
class RecordFilters:
    state: Optional[str] = None
    responsible: Optional[str] = None
    equipo_id: Optional[str] = None
    serial_number: Optional[str] = None
    reviewer: Optional[str] = None


# =========================================================
# TRADUCCIÓN DE ERRORES
# =========================================================

def _pgcode(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_integrity_error(exc: IntegrityError) -> Exception:
    code = _pgcode(exc)
    text = str(getattr(exc, "orig", exc))

    if code == "23505" or "UNIQUE constraint failed" in text:
        return DuplicateKey("Equipment ID already exists", details=text)
    if code == "23514" or "CHECK constraint failed" in text:
        return ConstraintViolation("Invalid value for a constrained field", details=text)
    if code == "23502" or "NOT NULL constraint failed" in text:
        return MissingField("Missing required field", details=text)
    return ConstraintViolation("Integrity constraint violated", details=text)


@contextmanager
def _store_errors(db: Session) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        raise translate_integrity_error(exc) from exc
    except (OperationalError, DBAPIError) as exc:
        db.rollback()
        logger.error("[REPO] store unavailable: %s", exc)
        raise StoreUnavailable("Database unavailable", details=str(exc)) from exc


# =========================================================
# LECTURA
# =========================================================

def list_records(db: Session, filters: RecordFilters | None = None) -> List[EquipmentRecord]:
    filters = filters or RecordFilters()

    with _store_errors(db):
        q = db.query(EquipmentRecord)

        if filters.state:
            q = q.filter(EquipmentRecord.state == filters.state)
        if filters.responsible:
            q = q.filter(EquipmentRecord.responsible.ilike(f"%{filters.responsible}%"))
        if filters.equipo_id:
            q = q.filter(EquipmentRecord.equipo_id.ilike(f"%{filters.equipo_id}%"))
        if filters.serial_number:
            q = q.filter(EquipmentRecord.serial_number.ilike(f"%{filters.serial_number}%"))
        if filters.reviewer:
            q = q.filter(EquipmentRecord.reviewer.ilike(f"%{filters.reviewer}%"))

        return q.order_by(EquipmentRecord.reviewed_at.desc(), EquipmentRecord.id.desc()).all()


def get_record(db: Session, record_id: int) -> EquipmentRecord:
    with _store_errors(db):
        record = db.get(EquipmentRecord, record_id)
    if record is None:
        raise NotFound("Record not found", details={"id": record_id})
    return record


def list_records_with_images(db: Session) -> List[EquipmentRecord]:
    with _store_errors(db):
        rows = (
            db.query(EquipmentRecord)
            .filter(EquipmentRecord.images.isnot(None))
            .order_by(EquipmentRecord.id.asc())
            .all()
        )
    # JSON null puede venir como None en Python aunque la columna no sea NULL
    return [r for r in rows if r.images is not None]


# =========================================================
# ESCRITURA
# =========================================================

def _column_values(values: dict[str, Any]) -> dict[str, Any]:
    return {col: values.get(api) for api, col in FIELD_MAP.items()}


def insert_record(db: Session, values: dict[str, Any], images: list[dict]) -> EquipmentRecord:
    now = utcnow()
    record = EquipmentRecord(
        **_column_values(values),
        images=list(images),
        reviewed_at=now,
        updated_at=now,
    )

    with _store_errors(db):
        db.add(record)
        db.flush()

    logger.info("[REPO] insert id=%s equipo_id=%s images=%s", record.id, record.equipo_id, len(images))
    return record


def update_record(
    db: Session,
    record_id: int,
    values: dict[str, Any],
    images: list[dict],
) -> EquipmentRecord:
    record = get_record(db, record_id)

    for col, value in _column_values(values).items():
        setattr(record, col, value)
    record.images = list(images)
    record.updated_at = utcnow()

    with _store_errors(db):
        db.flush()

    logger.info("[REPO] update id=%s images=%s", record_id, len(images))
    return record


def replace_images(db: Session, record_id: int, images: list[dict]) -> EquipmentRecord:
    record = get_record(db, record_id)
    # lista nueva: SQLAlchemy no detecta mutaciones in-place en JSON
    record.images = [dict(img) for img in images]
    record.updated_at = utcnow()

    with _store_errors(db):
        db.flush()
    return record


def delete_record(db: Session, record_id: int) -> list[dict]:
    record = get_record(db, record_id)
    images = list(record.images or [])

    with _store_errors(db):
        db.delete(record)
        db.flush()

    logger.info("[REPO] delete id=%s images=%s", record_id, len(images))
    return images


# =========================================================
# SERIALIZACIÓN (API camelCase)
# =========================================================

def _num(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return value


def serialize_record(record: EquipmentRecord, images: list[dict] | None = None) -> dict[str, Any]:
    return {
        "id": record.id,
        "equipoId": record.equipo_id,
        "serialNumber": record.serial_number,
        "placaMl": record.placa_ml,
        "latitude": _num(record.latitude),
        "longitude": _num(record.longitude),
        "autoAddress": record.auto_address,
        "manualLocation": record.manual_location,
        "responsible": record.responsible,
        "role": record.role,
        "state": record.state,
        "windowsUpdateApplied": record.windows_update_applied,
        "images": images if images is not None else list(record.images or []),
        "observations": record.observations,
        "detectedProblems": record.detected_problems,
        "reviewedAt": iso_utc(record.reviewed_at),
        "updatedAt": iso_utc(record.updated_at),
        "reviewer": record.reviewer,
    }
