"""Engine, session factory and the request-scoped session dependency."""

import logging
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from contractflow.config import settings

logger = logging.getLogger(__name__)

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.is_sqlite else {},
    pool_pre_ping=not settings.is_sqlite,
    echo=settings.DATABASE_ECHO,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=True)


class Base(DeclarativeBase):
    """Declarative base shared by every ContractFlow table."""


def get_db() -> Iterator[Session]:
    """Yield one session per request and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create missing tables for every mapped model."""
    import contractflow.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database ready with %s tables", len(Base.metadata.tables))
