"""
Database configuration and session management.

The ledger treats the relational store as a collaborator: every service
operation runs inside one ``session_scope`` unit of work, which commits on
success, rolls back on any error, and reports SQLAlchemy failures as
``StorageFailure``.
"""
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from wager_ledger.core.exceptions import StorageFailure
from wager_ledger.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def create_engine_for(url: str, echo: bool = False) -> Engine:
    """Create an engine with pooling suited to the backend."""
    if url.startswith("sqlite"):
        # Sessions are handed between the request thread pool and the scheduler
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False, "timeout": 30})

    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_engine() -> Engine:
    """Get or create the process-wide engine from settings."""
    global _engine, _SessionLocal

    if _engine is None:
        from wager_ledger.core.config import settings
        _engine = create_engine_for(settings.DATABASE_URL, echo=settings.SQL_ECHO)
        _SessionLocal = create_session_factory(_engine)

    return _engine


def get_session_factory() -> sessionmaker:
    get_engine()
    return _SessionLocal


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all ledger tables that don't exist yet."""
    from wager_ledger.models import Base
    Base.metadata.create_all(bind=engine or get_engine(), checkfirst=True)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """
    Run a block as one transaction.

    Usage:
        with session_scope(factory) as db:
            ledger.debit(..., db=db)
            seats.create(...)
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure, transaction rolled back: {e}")
        raise StorageFailure("Storage operation failed", detail=str(e.__class__.__name__)) from e
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()

