# modules/equipment_inspection/routes/routes_records.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from core.database import get_db
from core.logging_config import logger

from modules.equipment_inspection.services.services_blob_store import BlobStore
from modules.equipment_inspection.services.services_records import (
    create_record,
    delete_record_and_images,
    list_records_for_read,
    update_record_with_images,
)
from modules.equipment_inspection.services.services_records_repository import RecordFilters

from .inspection_common import get_blob_store, require_store_ready

router = APIRouter(
    prefix="/records",
    tags=["records"],
    dependencies=[Depends(require_store_ready)],
)


# ============================
#   SCHEMAS
# ============================

# Todo opcional: los requeridos se validan en el servicio (400 con detalle)

class ImageIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    base64: Optional[str] = None
    filename: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None
    uploaded_at: Optional[str] = Field(default=None, alias="uploadedAt")


class RecordIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    equipo_id: Optional[str] = Field(default=None, alias="equipoId")
    serial_number: Optional[str] = Field(default=None, alias="serialNumber")
    placa_ml: Optional[str] = Field(default=None, alias="placaMl")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    auto_address: Optional[str] = Field(default=None, alias="autoAddress")
    manual_location: Optional[str] = Field(default=None, alias="manualLocation")
    responsible: Optional[str] = None
    role: Optional[str] = None
    state: Optional[str] = None
    windows_update_applied: Optional[str] = Field(default=None, alias="windowsUpdateApplied")
    observations: Optional[str] = None
    detected_problems: Optional[str] = Field(default=None, alias="detectedProblems")
    reviewer: Optional[str] = None
    images: Optional[List[ImageIn]] = None


# ============================
#   LIST
# ============================

@router.get("")
def records_list(
    state: Optional[str] = Query(None),
    responsible: Optional[str] = Query(None),
    equipo_id: Optional[str] = Query(None, alias="equipoId"),
    serial_number: Optional[str] = Query(None, alias="serialNumber"),
    reviewer: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    filters = RecordFilters(
        state=state,
        responsible=responsible,
        equipo_id=equipo_id,
        serial_number=serial_number,
        reviewer=reviewer,
    )
    return list_records_for_read(db, blob_store, filters)


# ============================
#   CREATE
# ============================

@router.post("", status_code=201)
def records_create(
    payload: RecordIn,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    result = create_record(db, blob_store, payload.model_dump(by_alias=True))
    db.commit()
    logger.info("[RECORDS] creado id=%s imagenes=%s", result["id"], result["imagesSaved"])
    return result


# ============================
#   UPDATE
# ============================

@router.put("/{record_id}")
def records_update(
    record_id: int,
    payload: RecordIn,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    result = update_record_with_images(db, blob_store, record_id, payload.model_dump(by_alias=True))
    db.commit()
    return result


# ============================
#   DELETE
# ============================

@router.delete("/{record_id}")
def records_delete(
    record_id: int,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    return delete_record_and_images(db, blob_store, record_id)
