# modules/equipment_inspection/services/services_reports.py
"""
Estadísticas + exportación – Equipment Inspection
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from io import BytesIO
from typing import Any, Dict, Iterable, List

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from core.formatting import ensure_utc_aware, local_date, local_time, local_today, to_local_tz
from core.models import EquipmentRecord, EquipmentState, WindowsUpdateApplied


EXPORT_HEADERS: List[str] = [
    "ID EQUIPO",
    "SERIAL",
    "PLACA/ML",
    "RESPONSABLE",
    "CARGO",
    "ESTADO",
    "WINDOWS UPDATE",
    "UBICACIÓN",
    "PROBLEMAS",
    "OBSERVACIONES",
    "REVISOR",
    "FECHA REVISIÓN",
    "HORA REVISIÓN",
    "CANTIDAD IMÁGENES",
    "DESCRIPCIÓN IMÁGENES",
]


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _images(record: EquipmentRecord) -> list[dict]:
    images = record.images if isinstance(record.images, list) else []
    return [img for img in images if isinstance(img, dict)]


# =========================================================
# ESTADÍSTICAS
# =========================================================

def compute_statistics(records: Iterable[EquipmentRecord], today: date | None = None) -> Dict[str, int]:
    today = today or local_today()
    stats = {
        "total": 0,
        "operational": 0,
        "maintenance": 0,
        "damaged": 0,
        "updatesApplied": 0,
        "updatesPending": 0,
        "reviewedToday": 0,
        "withProblems": 0,
        "withLocation": 0,
        "withImages": 0,
        "totalImages": 0,
    }

    for r in records:
        stats["total"] += 1

        if r.state == EquipmentState.OPERATIONAL.value:
            stats["operational"] += 1
        elif r.state == EquipmentState.MAINTENANCE.value:
            stats["maintenance"] += 1
        elif r.state == EquipmentState.DAMAGED.value:
            stats["damaged"] += 1

        if r.windows_update_applied == WindowsUpdateApplied.YES.value:
            stats["updatesApplied"] += 1
        elif r.windows_update_applied == WindowsUpdateApplied.NO.value:
            stats["updatesPending"] += 1

        if r.reviewed_at is not None and to_local_tz(r.reviewed_at).date() == today:
            stats["reviewedToday"] += 1

        if not _blank(r.detected_problems):
            stats["withProblems"] += 1

        if r.latitude is not None and r.longitude is not None:
            stats["withLocation"] += 1

        images = _images(r)
        if images:
            stats["withImages"] += 1
        stats["totalImages"] += len(images)

    return stats


# =========================================================
# EXPORT
# =========================================================

def _location(r: EquipmentRecord) -> str:
    if not _blank(r.auto_address):
        return r.auto_address
    if not _blank(r.manual_location):
        return r.manual_location
    return "NO ESPECIFICADA"


def _sort_key(r: EquipmentRecord) -> datetime:
    return ensure_utc_aware(r.reviewed_at) or datetime.min.replace(tzinfo=timezone.utc)


def export_rows(records: Iterable[EquipmentRecord]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for r in sorted(records, key=_sort_key, reverse=True):
        images = _images(r)
        titles = [img.get("title") or "" for img in images]

        rows.append({
            "ID EQUIPO": r.equipo_id,
            "SERIAL": r.serial_number,
            "PLACA/ML": r.placa_ml if not _blank(r.placa_ml) else "NO ASIGNADO",
            "RESPONSABLE": r.responsible,
            "CARGO": r.role,
            "ESTADO": (r.state or "").upper(),
            "WINDOWS UPDATE": "SÍ" if r.windows_update_applied == WindowsUpdateApplied.YES.value else "NO",
            "UBICACIÓN": _location(r),
            "PROBLEMAS": r.detected_problems if not _blank(r.detected_problems) else "NINGUNO",
            "OBSERVACIONES": r.observations if not _blank(r.observations) else "SIN OBSERVACIONES",
            "REVISOR": r.reviewer if not _blank(r.reviewer) else "NO ESPECIFICADO",
            "FECHA REVISIÓN": local_date(r.reviewed_at),
            "HORA REVISIÓN": local_time(r.reviewed_at),
            "CANTIDAD IMÁGENES": len(images),
            "DESCRIPCIÓN IMÁGENES": "; ".join(titles) if images else "Sin imágenes",
        })
    return rows


def build_excel(headers: list[str], rows: list[tuple], title: str = "Reporte") -> BytesIO:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = title[:31]  # Excel limita a 31 caracteres

    for col_idx, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = Font(bold=True)

    for row_idx, row in enumerate(rows, start=2):
        for col_idx, value in enumerate(row, start=1):
            ws.cell(row=row_idx, column=col_idx, value=value)

    for col_idx, _ in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = 18

    stream = BytesIO()
    wb.save(stream)
    stream.seek(0)
    return stream


def export_workbook(rows: List[Dict[str, Any]]) -> BytesIO:
    table = [tuple(row.get(h) for h in EXPORT_HEADERS) for row in rows]
    return build_excel(EXPORT_HEADERS, table, title="Revisiones de equipos")
