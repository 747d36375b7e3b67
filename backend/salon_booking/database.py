import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .errors import StorageUnavailable

logger = logging.getLogger(__name__)


def build_engine(url: str, lock_timeout: float | None = None):
    """
    Create an engine for the booking database.

    SQLite gets check_same_thread=False (FastAPI runs sync endpoints in a
    thread pool) and a busy timeout equal to the claim lock bound, so a
    writer that cannot get the database lock fails instead of blocking.
    """
    if lock_timeout is None:
        lock_timeout = settings.claim_lock_timeout_seconds
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": lock_timeout}

    engine = create_engine(url, connect_args=connect_args)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def enable_sqlite_fk(dbapi_connection, _):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.resolved_database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def storage_errors(db: Session):
    """Read block: driver failures roll back and surface as StorageUnavailable."""
    try:
        yield db
    except DBAPIError as exc:
        logger.warning(f"Booking storage unavailable: {exc}")
        db.rollback()
        raise StorageUnavailable() from exc
