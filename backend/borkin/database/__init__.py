"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from borkin.core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 5,
    # Fail fast when the pool is exhausted rather than blocking the request
    "pool_timeout": 2,
    "pool_recycle": 30,
    "pool_pre_ping": True,
    "future": True,
}


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """SQLite (local/dev) gets a single-thread-safe config; everything else is pooled."""
    if db_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "future": True}
    return dict(_DEFAULT_POOL_KWARGS)


engine: Engine = create_engine(settings.database_url, **_build_engine_kwargs(settings.database_url))


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create tables for local development; production schemas are managed out of band."""
    import borkin.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
