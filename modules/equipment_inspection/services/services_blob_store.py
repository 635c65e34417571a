# modules/equipment_inspection/services/services_blob_store.py
"""
Blob Store Adapter – Equipment Inspection

✔ Object store S3-compatible (Supabase Storage / AWS S3 / MinIO) vía boto3
✔ Nunca sobrescribe: put_object con IfNoneMatch="*" (colisión -> UploadConflict)
✔ URL pública durable por key
✔ Storage local (fallback): una carpeta por equipo saneado
✔ Borrado local best-effort: errores de filesystem -> False (nunca excepción)
"""

from __future__ import annotations

import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from core.logging_config import logger

from .services_core import (
    BlobStoreError,
    ImageRef,
    RemoteRef,
    UploadConflict,
)


_NAMESPACE_SAFE_RE = re.compile(r"[^a-zA-Z0-9]")

# Códigos S3 para escritura condicional rechazada
_CONFLICT_CODES = {"PreconditionFailed", "ConditionalRequestConflict", "412", "409"}
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class StoredObject:
    key: str
    public_url: str
    size: int


def sanitize_namespace(namespace: str) -> str:
    return _NAMESPACE_SAFE_RE.sub("", namespace or "") or "equipo"


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


class BlobStore:
    """
    Adapter único para ambos backends.

    - backend "s3": sube al bucket; el disco local solo se usa para
      imágenes legacy (lectura / borrado).
    - backend "local": todo vive en UPLOADS_DIR.
    """

    def __init__(
        self,
        *,
        uploads_dir: str | Path,
        uploads_url_prefix: str = "/uploads",
        client: Any = None,
        bucket: str | None = None,
        public_base_url: str | None = None,
        cache_control: str = "max-age=3600",
    ) -> None:
        self.uploads_dir = Path(uploads_dir).resolve()
        self.uploads_url_prefix = "/" + uploads_url_prefix.strip("/")
        self._client = client
        self.bucket = bucket
        self.public_base_url = (public_base_url or "").rstrip("/")
        self.cache_control = cache_control

    @property
    def is_remote(self) -> bool:
        return self._client is not None and bool(self.bucket)

    @property
    def backend(self) -> str:
        return "s3" if self.is_remote else "local"

    # =========================================================
    # KEYS / URLS
    # =========================================================

    def build_key(self, namespace: str, sequence_index: int, subtype: str) -> str:
        filename = f"{_timestamp_ms()}-{sequence_index}.{subtype}"
        if self.is_remote:
            prefix = (namespace or "").strip().strip("/") or "equipo"
        else:
            prefix = sanitize_namespace(namespace)
        return f"{prefix}/{filename}"

    def public_url(self, key: str) -> str:
        key = (key or "").lstrip("/")
        if self.is_remote:
            return f"{self.public_base_url}/{quote(key, safe='/-_.~')}"
        return f"{self.uploads_url_prefix}/{key}"

    def key_from_url(self, url: str) -> str | None:
        """Key del bucket si la URL pertenece a este object store."""
        if not self.is_remote or not url:
            return None
        base = self.public_base_url + "/"
        if not url.startswith(base):
            return None
        return unquote(url[len(base):]) or None

    # =========================================================
    # UPLOAD
    # =========================================================

    def upload(
        self,
        data: bytes,
        subtype: str,
        namespace: str,
        sequence_index: int,
    ) -> StoredObject:
        key = self.build_key(namespace, sequence_index, subtype)
        if self.is_remote:
            self._upload_remote(key, data, subtype)
        else:
            self._upload_local(key, data)

        stored = StoredObject(key=key, public_url=self.public_url(key), size=len(data))
        logger.info("[BLOB][UPLOAD] backend=%s key=%s size=%s", self.backend, key, stored.size)
        return stored

    def _upload_remote(self, key: str, data: bytes, subtype: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=f"image/{subtype}",
                CacheControl=self.cache_control,
                IfNoneMatch="*",
            )
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code") or "")
            if code in _CONFLICT_CODES:
                raise UploadConflict(f"Object already exists: {key}", details=key) from exc
            raise BlobStoreError(f"Upload failed for {key}", details=str(exc)) from exc
        except BotoCoreError as exc:
            raise BlobStoreError(f"Upload failed for {key}", details=str(exc)) from exc

    def _upload_local(self, key: str, data: bytes) -> None:
        path = self.uploads_dir / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # "x": crea o falla, nunca sobrescribe
            with open(path, "xb") as f:
                f.write(data)
        except FileExistsError as exc:
            raise UploadConflict(f"File already exists: {key}", details=key) from exc
        except OSError as exc:
            raise BlobStoreError(f"Local write failed for {key}", details=str(exc)) from exc

    # =========================================================
    # LOCAL FALLBACK
    # =========================================================

    def _safe_local_path(self, relative: str) -> Path | None:
        candidate = (self.uploads_dir / (relative or "").lstrip("/\\")).resolve()
        if candidate == self.uploads_dir or self.uploads_dir not in candidate.parents:
            return None
        return candidate

    def local_path(self, relative: str) -> Path | None:
        return self._safe_local_path(relative)

    def local_exists(self, relative: str) -> bool:
        path = self._safe_local_path(relative)
        return path is not None and path.is_file()

    def delete_local(self, ref: ImageRef) -> bool:
        """
        - RemoteRef: no-op exitoso (el ciclo de vida remoto no es nuestro)
        - LocalRef: True si se borró un archivo, False si no existía o falló
        """
        if isinstance(ref, RemoteRef):
            logger.info("[BLOB][DELETE] remote image, skip: %s", ref.url)
            return True

        path = self._safe_local_path(ref.path)
        if path is None:
            logger.warning("[BLOB][DELETE] path fuera de uploads: %s", ref.path)
            return False

        try:
            if path.is_file():
                path.unlink()
                logger.info("[BLOB][DELETE] local image deleted: %s", ref.path)
                return True
        except OSError:
            logger.exception("[BLOB][DELETE] error borrando %s", ref.path)
            return False

        logger.info("[BLOB][DELETE] local image not found: %s", ref.path)
        return False

    # =========================================================
    # EXISTENCIA REMOTA
    # =========================================================

    def remote_exists(self, ref: RemoteRef) -> bool | None:
        """
        True / False si el objeto es de este bucket y se pudo verificar.
        None cuando no se puede saber (URL ajena o error transitorio).
        """
        key = self.key_from_url(ref.url)
        if key is None:
            return None

        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code") or "")
            if code in _NOT_FOUND_CODES:
                return False
            logger.warning("[BLOB][HEAD] key=%s error=%s", key, code)
            return None
        except BotoCoreError as exc:
            logger.warning("[BLOB][HEAD] key=%s error=%s", key, exc)
            return None

    # =========================================================
    # READINESS
    # =========================================================

    def _uploads_writable(self) -> bool:
        try:
            self.uploads_dir.mkdir(parents=True, exist_ok=True)
            probe = self.uploads_dir / f".probe-{os.getpid()}-{_timestamp_ms()}"
            probe.write_bytes(b"ok")
            probe.unlink()
            return True
        except OSError:
            logger.warning("[BLOB][READY] uploads dir no escribible: %s", self.uploads_dir)
            return False

    def check_ready(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "backend": self.backend,
            "uploadsDir": str(self.uploads_dir),
            "uploadsWritable": self._uploads_writable(),
        }

        if not self.is_remote:
            status["ok"] = status["uploadsWritable"]
            return status

        status["bucket"] = self.bucket
        try:
            self._client.head_bucket(Bucket=self.bucket)
            status["ok"] = True
        except (ClientError, BotoCoreError) as exc:
            logger.warning("[BLOB][READY] bucket=%s error=%s", self.bucket, exc)
            status["ok"] = False
            status["error"] = str(exc)
        return status


# =========================================================
# FACTORY
# =========================================================

def _default_public_base(settings) -> str:
    if settings.S3_PUBLIC_BASE_URL:
        return settings.S3_PUBLIC_BASE_URL
    if settings.S3_ENDPOINT_URL:
        return f"{settings.S3_ENDPOINT_URL.rstrip('/')}/{settings.S3_BUCKET}"
    return f"https://{settings.S3_BUCKET}.s3.{settings.S3_REGION}.amazonaws.com"


def build_blob_store(settings) -> BlobStore:
    if settings.STORAGE_BACKEND != "s3":
        logger.info("[BLOB] backend=local dir=%s", settings.UPLOADS_DIR)
        return BlobStore(
            uploads_dir=settings.UPLOADS_DIR,
            uploads_url_prefix=settings.UPLOADS_URL_PREFIX,
        )

    client = boto3.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        region_name=settings.S3_REGION,
        aws_access_key_id=settings.S3_ACCESS_KEY_ID,
        aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        config=BotoConfig(s3={"addressing_style": "path"}) if settings.S3_ENDPOINT_URL else None,
    )
    logger.info("[BLOB] backend=s3 bucket=%s endpoint=%s", settings.S3_BUCKET, settings.S3_ENDPOINT_URL)
    return BlobStore(
        uploads_dir=settings.UPLOADS_DIR,
        uploads_url_prefix=settings.UPLOADS_URL_PREFIX,
        client=client,
        bucket=settings.S3_BUCKET,
        public_base_url=_default_public_base(settings),
        cache_control=settings.S3_CACHE_CONTROL,
    )
