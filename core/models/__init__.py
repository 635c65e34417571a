# core/models/__init__.py
"""
Modelos ORM – Equipment Inspection API

✔ Estados con Enum controlado (CHECK en la BD)
✔ Timestamps UTC timezone-aware
✔ Imágenes embebidas como documento JSON
"""

from __future__ import annotations

from core.models.enums import EquipmentState, WindowsUpdateApplied
from core.models.equipment import EquipmentRecord

__all__ = [
    "EquipmentRecord",
    "EquipmentState",
    "WindowsUpdateApplied",
]
