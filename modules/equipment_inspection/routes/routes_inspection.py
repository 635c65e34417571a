# modules/equipment_inspection/routes/routes_inspection.py
"""
Router agregador del módulo Equipment Inspection.

✔ Punto único de montaje
✔ Cada subrouter mantiene su propio scope funcional
"""

from __future__ import annotations

from fastapi import APIRouter

from .routes_images import router as images_router
from .routes_images import uploads_router
from .routes_records import router as records_router
from .routes_reports import router as reports_router


router = APIRouter()

# Los subrouters definen su propio prefix (/records, /images, ...)
router.include_router(records_router)
router.include_router(reports_router)
router.include_router(images_router)
router.include_router(uploads_router)
