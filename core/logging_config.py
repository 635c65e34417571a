# core/logging_config.py
"""
Logging centralizado – Equipment Inspection API

✔ Consola + archivo rotativo
✔ request_id en cada línea (ContextVar seteado por el middleware)
✔ Ruido de uvicorn / sqlalchemy / boto acotado
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from logging.config import dictConfig
from pathlib import Path

from core.config import settings


# ============================
#   PATHS
# ============================

BASE_DIR = Path(__file__).resolve().parent.parent
LOG_DIR = BASE_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOG_FILE = LOG_DIR / "inspections.log"


# ============================
#   REQUEST ID
# ============================

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


# ============================
#   LOGGING SETUP
# ============================

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(request_id)s | %(name)s | %(message)s"


def setup_logging() -> None:
    log_level = "DEBUG" if settings.APP_DEBUG else "INFO"
    quiet = "INFO" if settings.APP_DEBUG else "WARNING"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_id": {"()": RequestIdFilter},
            },
            "formatters": {
                "line": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "line",
                    "filters": ["request_id"],
                    "level": log_level,
                },
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "formatter": "line",
                    "filters": ["request_id"],
                    "filename": str(LOG_FILE),
                    "maxBytes": 5 * 1024 * 1024,
                    "backupCount": 5,
                    "encoding": "utf-8",
                    "level": log_level,
                },
            },
            "root": {
                "level": log_level,
                "handlers": ["console", "file"],
            },
            # uvicorn.access se reemplaza por el log [HTTP] del middleware
            "loggers": {
                "uvicorn": {"level": "INFO"},
                "uvicorn.access": {"level": "WARNING"},
                "sqlalchemy.engine": {"level": quiet},
                "botocore": {"level": "WARNING"},
                "boto3": {"level": "WARNING"},
            },
        }
    )


logger = logging.getLogger("inspections")
