# core/models/equipment.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Numeric,
    Text,
    CheckConstraint,
    JSON,
)

from core.database import Base
from core.models.enums import EquipmentState, WindowsUpdateApplied
from core.models.time import utcnow


def _in_list(column: str, enum_cls) -> str:
    values = ", ".join(f"'{e.value}'" for e in enum_cls)
    return f"{column} IN ({values})"


class EquipmentRecord(Base):
    """
    Registro de revisión de un equipo (computador).

    Las imágenes NO son entidad propia: viven como lista JSON ordenada
    dentro del registro (title, filename, url, size, uploadedAt).
    """
    __tablename__ = "equipment_records"

    id = Column(Integer, primary_key=True)

    # identidad
    equipo_id = Column(String(100), unique=True, nullable=False, index=True)
    serial_number = Column(String(100), nullable=False, index=True)
    placa_ml = Column(String(100), nullable=True)

    # ubicación
    latitude = Column(Numeric(10, 8), nullable=True)
    longitude = Column(Numeric(11, 8), nullable=True)
    auto_address = Column(Text, nullable=True)
    manual_location = Column(Text, nullable=True)

    # responsable
    responsible = Column(String(200), nullable=False)
    role = Column(String(100), nullable=False)

    # estado
    state = Column(String(20), nullable=False, index=True)
    windows_update_applied = Column(String(5), nullable=False)

    images = Column(JSON, nullable=True, default=list)

    observations = Column(Text, nullable=True)
    detected_problems = Column(Text, nullable=True)

    # auditoría
    reviewed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    reviewer = Column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint(_in_list("state", EquipmentState), name="ck_equipment_records_state"),
        CheckConstraint(
            _in_list("windows_update_applied", WindowsUpdateApplied),
            name="ck_equipment_records_windows_update",
        ),
    )
