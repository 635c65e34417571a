# main.py
import asyncio
import os
import signal
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings
from core.database import SessionLocal, check_db_connection, init_db
from core.logging_config import setup_logging, logger
from core.models.time import utcnow

# Routers
from core.routes import routes_health
from modules.equipment_inspection.routes import routes_inspection
from modules.equipment_inspection.services.services_core import InspectionDomainError

from core.middleware.request_context import body_limit_middleware, request_context_middleware


# ============================
#   LIFESPAN
# ============================

def _loop_exception_handler(loop, context) -> None:
    logger.critical(
        "[FATAL] excepción no controlada en event loop: %s",
        context.get("message"),
        exc_info=context.get("exception"),
    )
    os.kill(os.getpid(), signal.SIGTERM)


def _probe_store() -> bool:
    db = SessionLocal()
    try:
        return check_db_connection(db)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    asyncio.get_running_loop().set_exception_handler(_loop_exception_handler)

    app.state.store_ready = False
    try:
        init_db()
        app.state.store_ready = _probe_store()
    except Exception:
        # el proceso sigue arriba; require_store_ready re-intenta por request
        logger.exception("[STARTUP] no se pudo inicializar la base de datos")

    logger.info("[STARTUP] store_ready=%s storage=%s", app.state.store_ready, settings.STORAGE_BACKEND)
    yield
    logger.info("[SHUTDOWN] Equipment Inspection API detenida")


setup_logging()

app = FastAPI(
    title=settings.APP_TITLE,
    version="1.0.0",
    debug=settings.APP_DEBUG,
    lifespan=lifespan,
)

logger.info("Equipment Inspection API iniciada (env=%s)", settings.APP_ENV)


# ============================
#   ERRORES
# ============================

def _validation_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.exception_handler(InspectionDomainError)
async def domain_error_handler(request: Request, exc: InspectionDomainError):
    if exc.status_code >= 500:
        logger.error("[ERROR] %s %s code=%s msg=%s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.warning("[ERROR] %s %s code=%s msg=%s", request.method, request.url.path, exc.code, exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": exc.details, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request body",
            "details": _validation_errors(exc),
            "code": "VALIDATION_ERROR",
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content={"error": "Route not found", "path": request.url.path, "method": request.method},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("[ERROR] no controlado en %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "details": str(exc) if settings.APP_DEBUG else None,
            "timestamp": utcnow().isoformat(),
        },
    )


# ============================
#   RUTA PÚBLICA: INFO
# ============================

@app.get("/")
def service_info():
    return {
        "name": settings.APP_TITLE,
        "version": app.version,
        "environment": settings.APP_ENV,
        "storage": settings.STORAGE_BACKEND,
        "endpoints": {
            "health": "GET /health",
            "records": "GET /records, POST /records",
            "record": "PUT /records/{id}, DELETE /records/{id}",
            "statistics": "GET /statistics",
            "export": "GET /export, GET /export/excel",
            "images": "POST /images/reconcile, GET /images/status",
            "uploads": f"GET {settings.UPLOADS_URL_PREFIX}/{{path}}",
        },
    }


# ============================
#   MIDDLEWARE + ROUTERS
# ============================

app.middleware("http")(body_limit_middleware(settings.MAX_BODY_MB * 1024 * 1024))
app.middleware("http")(request_context_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.include_router(routes_health.router)
app.include_router(routes_inspection.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=settings.APP_DEBUG,
    )
