from __future__ import annotations
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from error_alerting.config import get_settings


class Base(DeclarativeBase):
    pass


def _dsn() -> str:
    s = get_settings()
    if not s.database_url:
        raise RuntimeError("Database configuration required. Please set the DATABASE_URL environment variable.")
    return s.database_url


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # sqlite ignores pool timeouts but needs cross-thread access for Celery/uvicorn workers
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_timeout": get_settings().db_pool_timeout_seconds}


engine = create_engine(_dsn(), **_engine_kwargs(_dsn()))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

def override_engine(e):  # test helper
    global engine, SessionLocal
    engine = e
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def new_session():
    """Open a session on the current engine (honours override_engine)."""
    return SessionLocal()


def healthcheck() -> bool:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
        return True
