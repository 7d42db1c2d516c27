import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from .config import settings

logger = logging.getLogger(__name__)

class Base(DeclarativeBase):
    pass

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """
    Create any missing tables and indexes.
    Alembic owns schema changes in deployed environments; this keeps fresh
    local and test databases usable without running migrations.
    """
    from . import models  # noqa: F401  registers mappers on Base.metadata

    target = bind if bind is not None else engine
    Base.metadata.create_all(bind=target)
    logger.debug("Schema ensured on %s", target.url)
