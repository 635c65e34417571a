# core/database.py
from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from core.config import settings
from core.logging_config import logger


# =========================================================
# ENGINE / SESSION
# =========================================================

DATABASE_URL = settings.DATABASE_URL

# SQLite (local) requiere check_same_thread=False
connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    future=True,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)

Base = declarative_base()


# =========================================================
# DEPENDENCY
# =========================================================

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =========================================================
# INIT DB / READINESS
# =========================================================

def init_db(bind=None) -> None:
    """
    Importa modelos SOLO aquí (lazy) para registrar las tablas en Base,
    evitando imports circulares entre database <-> models <-> services.
    """
    import core.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def check_db_connection(db: Session) -> bool:
    """
    Ping mínimo a DB usando la sesión inyectada.
    """
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("[DB] Error en SELECT 1")
        return False
