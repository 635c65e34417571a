# core/models/enums.py
from __future__ import annotations
import enum

class EquipmentState(str, enum.Enum):
    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    DAMAGED = "damaged"

class WindowsUpdateApplied(str, enum.Enum):
    YES = "yes"
    NO = "no"
