# modules/equipment_inspection/services/services_core.py
"""
Core de dominio – Equipment Inspection

✅ Reglas
- Errores de dominio tipados (no HTTP aquí: solo status_code/code sugeridos)
- Referencias de imagen explícitas: LocalRef | RemoteRef
- Campos requeridos del registro en un solo lugar
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Final, Union


# =========================================================
# EXCEPCIONES DE DOMINIO
# =========================================================

class InspectionDomainError(Exception):
    """Error de dominio base del módulo."""

    status_code: int = 500
    code: str = "INSPECTION_ERROR"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.details: Any = details


class ValidationError(InspectionDomainError):
    status_code = 400
    code = "VALIDATION_ERROR"


class MissingField(ValidationError):
    code = "MISSING_FIELD"


class DuplicateKey(InspectionDomainError):
    status_code = 400
    code = "DUPLICATE_KEY"


class ConstraintViolation(InspectionDomainError):
    status_code = 400
    code = "CONSTRAINT_VIOLATION"


class NotFound(InspectionDomainError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidImageFormat(InspectionDomainError):
    status_code = 400
    code = "INVALID_IMAGE_FORMAT"


class UploadConflict(InspectionDomainError):
    status_code = 409
    code = "UPLOAD_CONFLICT"


class BlobStoreError(InspectionDomainError):
    status_code = 502
    code = "BLOB_STORE_ERROR"


class StoreUnavailable(InspectionDomainError):
    status_code = 500
    code = "STORE_UNAVAILABLE"


# Fallas aisladas por imagen: se loggean y la imagen se descarta
IMAGE_FAILURES: Final = (InvalidImageFormat, UploadConflict, BlobStoreError)


# =========================================================
# CAMPOS REQUERIDOS (canon, nombres de API)
# =========================================================

REQUIRED_FIELDS: Final[tuple[str, ...]] = (
    "equipoId",
    "serialNumber",
    "responsible",
    "role",
    "state",
    "windowsUpdateApplied",
)


def missing_required_fields(payload: dict[str, Any]) -> list[str]:
    missing: list[str] = []
    for name in REQUIRED_FIELDS:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def validate_required_fields(payload: dict[str, Any]) -> None:
    missing = missing_required_fields(payload)
    if missing:
        raise ValidationError("Missing required fields", details={"missing": missing})


# =========================================================
# REFERENCIAS DE IMAGEN
# =========================================================

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def has_url_scheme(value: str | None) -> bool:
    return bool(value) and bool(_SCHEME_RE.match(value))


@dataclass(frozen=True)
class LocalRef:
    """Imagen en el storage local: path relativo a UPLOADS_DIR."""
    path: str


@dataclass(frozen=True)
class RemoteRef:
    """Imagen en el object store (o cualquier URL absoluta)."""
    url: str
    key: str | None = None


ImageRef = Union[LocalRef, RemoteRef]


def image_ref(descriptor: dict[str, Any]) -> ImageRef | None:
    """
    Clasifica un ImageDescriptor una sola vez.

    - filename con esquema (https://...)  -> RemoteRef(url=filename)
    - url absoluta + filename = key       -> RemoteRef(url, key)
    - filename relativo                   -> LocalRef(path)
    - sin filename ni url                 -> None
    """
    filename = (descriptor.get("filename") or "").strip()
    url = (descriptor.get("url") or "").strip()

    if has_url_scheme(filename):
        return RemoteRef(url=filename)
    if has_url_scheme(url):
        return RemoteRef(url=url, key=filename or None)
    if filename:
        return LocalRef(path=filename)
    return None


def default_title(position: int) -> str:
    return f"Image {position}"
