# modules/equipment_inspection/services/services_image_codec.py
from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

from .services_core import InvalidImageFormat


_DATA_URI_RE = re.compile(r"^data:image/([a-zA-Z0-9.+-]+);base64,(.*)$", re.DOTALL)


@dataclass(frozen=True)
class DecodedImage:
    subtype: str
    data: bytes

    @property
    def content_type(self) -> str:
        return f"image/{self.subtype}"


def decode_data_uri(data_uri: str | None) -> DecodedImage:
    """
    data:image/<subtype>;base64,<payload>  ->  DecodedImage(subtype, bytes)

    Cualquier otra forma (o payload base64 inválido) -> InvalidImageFormat.
    """
    if not data_uri or not isinstance(data_uri, str):
        raise InvalidImageFormat("Empty image payload")

    m = _DATA_URI_RE.match(data_uri.strip())
    if not m:
        raise InvalidImageFormat("Invalid data URI format")

    subtype = m.group(1).lower()
    payload = re.sub(r"\s+", "", m.group(2))

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageFormat("Invalid base64 payload", details=str(exc)) from exc

    return DecodedImage(subtype=subtype, data=data)
