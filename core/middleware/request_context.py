# core/middleware/request_context.py
"""
Middleware de contexto de request

✔ request_id único (o el X-Request-ID entrante)
✔ ip / user_agent
✔ disponible vía request.state.request_ctx
✔ log de acceso con status y duración
✔ request_id_var para el formato de logging
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from core.logging_config import logger, request_id_var


async def request_context_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())

    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)

    request.state.request_id = request_id
    request.state.request_ctx = {
        "request_id": request_id,
        "ip": ip,
        "user_agent": request.headers.get("user-agent"),
        "path": request.url.path,
        "method": request.method,
    }

    token = request_id_var.set(request_id)
    start = time.perf_counter()
    try:
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "[HTTP] %s %s status=%s elapsed_ms=%.1f",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
    finally:
        request_id_var.reset(token)


def body_limit_middleware(max_bytes: int):
    """
    Rechaza (413) requests cuyo Content-Length supera max_bytes.
    """

    async def _middleware(request: Request, call_next) -> Response:
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > max_bytes:
            logger.warning("[HTTP] body demasiado grande: %s bytes path=%s", length, request.url.path)
            return JSONResponse(
                status_code=413,
                content={"error": "Payload too large", "details": {"maxBytes": max_bytes}, "code": "PAYLOAD_TOO_LARGE"},
            )
        return await call_next(request)

    return _middleware
