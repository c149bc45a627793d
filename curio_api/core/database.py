"""
Database engine and request-scoped sessions.
"""

import logging
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,        # Validate connections before use
    pool_recycle=3600,         # Recycle connections after 1 hour
    echo=settings.SQL_ECHO,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False  # Keep objects available after commit
)


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup and error handling"""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """Create any missing tables."""
    from .. import models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(bind=engine)
