from __future__ import annotations

import base64
import threading
from typing import Any

from botocore.exceptions import ClientError


PUBLIC_BASE = "https://project.supabase.test/storage/v1/object/public/imagenes-soporte"
BUCKET = "imagenes-soporte"

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"


def png_data_uri(data: bytes = PNG_BYTES) -> str:
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def record_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "equipoId": "PC-01",
        "serialNumber": "SN123",
        "responsible": "Ana",
        "role": "Analyst",
        "state": "operational",
        "windowsUpdateApplied": "yes",
        "images": [],
    }
    payload.update(overrides)
    return payload


class FakeS3Client:
    """S3 en memoria con la semántica mínima que usa el adapter."""

    def __init__(self, bucket_ok: bool = True) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self.bucket_ok = bucket_ok
        self.put_calls = 0
        self._lock = threading.Lock()

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, IfNoneMatch: str | None = None, **kwargs: Any):
        with self._lock:
            self.put_calls += 1
            if IfNoneMatch == "*" and Key in self.objects:
                raise ClientError(
                    {"Error": {"Code": "PreconditionFailed", "Message": "At least one precondition failed"}},
                    "PutObject",
                )
            self.objects[Key] = {"Body": Body, **kwargs}
        return {"ETag": '"fake"'}

    def head_object(self, *, Bucket: str, Key: str):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": len(self.objects[Key]["Body"])}

    def head_bucket(self, *, Bucket: str):
        if not self.bucket_ok:
            raise ClientError({"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadBucket")
        return {}
