# backend/mentor_sessions/database.py
"""
Database engine, session factory, and declarative base shared across the application.
"""

from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from .core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str, **overrides: Any) -> Engine:
    """Create an engine tuned for the target dialect."""
    if url.startswith("sqlite"):
        kwargs: dict[str, Any] = {
            "connect_args": {"check_same_thread": False},
            "echo": settings.sql_echo,
        }
    else:
        kwargs = {
            "poolclass": QueuePool,
            "pool_size": settings.database_pool_size,  # Number of persistent connections
            "max_overflow": settings.database_max_overflow,
            "pool_timeout": 30,
            "pool_recycle": 3600,
            "pool_pre_ping": True,  # Test connections before using
            "echo": settings.sql_echo,
        }
    kwargs.update(overrides)
    new_engine = create_engine(url, **kwargs)

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        if url.startswith("sqlite"):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
        logger.debug("Database connection established")

    return new_engine


engine: Engine = build_engine(settings.get_database_url())

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


def init_db(bind: Engine | None = None) -> None:
    """Create all tables for the registered models."""
    from . import models  # noqa: F401  registers mappers on Base.metadata

    Base.metadata.create_all(bind=bind or engine)
