"""SQLAlchemy engine and session helpers for the report history store.

Supports SQLite (local and test use) and any server database SQLAlchemy
has a synchronous driver for.  The scheduler calls the store from worker
threads, so sessions are short-lived and never shared between threads.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def get_engine(database_url: str, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for *database_url*.

    SQLite databases get WAL journaling and foreign key enforcement on every
    connection; in-memory SQLite uses a single shared connection so that all
    threads see the same database.
    """
    if not database_url.startswith("sqlite"):
        engine = create_engine(database_url, echo=echo, pool_pre_ping=True, pool_recycle=3600)
        logger.info("Created engine for %s", engine.url.render_as_string(hide_password=True))
        return engine

    in_memory = database_url in ("sqlite://", "sqlite:///:memory:")
    if in_memory:
        engine = create_engine(
            "sqlite://",
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_path = database_url.split("///", 1)[-1]
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn: object, _: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    logger.info("Created SQLite engine: %s", engine.url)
    return engine


def create_tables(engine: Engine) -> None:
    """Create all reporting tables; idempotent and safe on every startup."""
    from reporting_engine.state.tables import Base

    Base.metadata.create_all(engine)
    logger.info("Reporting tables created/verified")


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Yield a session with automatic commit/rollback semantics.

    On successful exit the session is committed.  If an exception propagates
    the session is rolled back before the error is re-raised.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
