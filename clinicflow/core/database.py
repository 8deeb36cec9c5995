from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from clinicflow.core.config import get_settings

settings = get_settings()


def enable_sqlite_write_locks(target: Engine) -> Engine:
    """
    Make every SQLite transaction start with ``BEGIN IMMEDIATE``.

    SQLite ignores ``SELECT ... FOR UPDATE`` and pysqlite defers BEGIN until
    the first write, so a locked read-validate-write would otherwise let two
    writers read the same state. Taking the database write lock at BEGIN
    serializes those transactions instead.
    """

    @event.listens_for(target, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return target


_is_sqlite = settings.database_url.startswith("sqlite")
_connect_args = {"check_same_thread": False, "timeout": 30} if _is_sqlite else {}

# Main SQLAlchemy engine
engine = create_engine(
    str(settings.database_url),
    future=True,
    pool_pre_ping=True,
    connect_args=_connect_args,
)
if _is_sqlite:
    enable_sqlite_write_locks(engine)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session.

    Services own their transaction boundaries (commit / rollback);
    this only guarantees the session is closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Context manager for running work outside of a request.

    Usage:
        with session_scope() as db:
            schedule_service.upsert_schedule(db, payload=...)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
