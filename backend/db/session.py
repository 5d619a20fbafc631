"""
SQLAlchemy engine and session management.

The engine (and its connection pool) belongs to the application: it is
created in the FastAPI lifespan, stored on `app.state` and disposed on
shutdown. Route handlers receive a request-scoped Session through the
`get_db_session` dependency; nothing in the service layer reaches for a
module-level client.
"""

import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, SessionTransaction, sessionmaker

from backend.config import settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str | None = None, **engine_kwargs) -> Engine:
    """
    Create the application engine.

    Args:
        database_url: SQLAlchemy URL; defaults to settings.database_url
        **engine_kwargs: Extra keyword arguments for create_engine()

    Returns:
        Configured Engine. SQLite connections get foreign keys enabled and
        are allowed to cross threads (FastAPI runs sync handlers in a pool).

    Raises:
        ValueError: If no database URL is configured
    """
    url = database_url or settings.database_url
    if not url:
        raise ValueError("DATABASE_URL is not configured")

    if url.startswith("sqlite"):
        connect_args = engine_kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(
            url,
            echo=settings.DATABASE_ECHO,
            connect_args=connect_args,
            **engine_kwargs,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine_kwargs.setdefault("pool_pre_ping", True)
        engine = create_engine(url, echo=settings.DATABASE_ECHO, **engine_kwargs)

    logger.info(f"Database engine created for dialect={engine.dialect.name}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the engine; objects stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


def get_db_session(request: Request) -> Iterator[Session]:
    """
    FastAPI dependency yielding one Session per request.

    Services open their own `session.begin()` blocks for writes; the session
    is always closed (and any open transaction rolled back) afterwards.
    """
    session_factory: sessionmaker = request.app.state.session_factory
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def write_transaction(session: Session) -> SessionTransaction:
    """
    Begin the transaction a service write runs in.

    Reads issued earlier on the same Session autobegin a transaction; it is
    committed first (it holds no changes) so the write starts clean.
    """
    if session.in_transaction():
        session.commit()
    return session.begin()
