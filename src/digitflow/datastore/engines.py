"""Async SQLAlchemy engine construction for SQLite and PostgreSQL URLs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

if TYPE_CHECKING:
    from digitflow.config.settings import DatabaseConfig


def _sqlite_on_connect(dbapi_connection, connection_record) -> None:  # noqa: ANN001
    # Device rows go away with their key through ON DELETE CASCADE.
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def _pool_options(config: DatabaseConfig) -> dict[str, Any]:
    overflow = max(config.max_open_connections - config.max_idle_connections, 0)
    return {
        "pool_size": config.max_idle_connections,
        "max_overflow": overflow,
        "pool_pre_ping": True,
    }


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Build an ``AsyncEngine`` for ``config.dsn``.

    Pool sizing only applies to server databases; SQLite connections get
    foreign key enforcement switched on instead.
    """
    sqlite = make_url(config.dsn).get_backend_name() == "sqlite"
    options = {} if sqlite else _pool_options(config)
    engine = create_async_engine(config.dsn, echo=config.debug_sql, **options)
    if sqlite:
        event.listen(engine.sync_engine, "connect", _sqlite_on_connect)
    return engine
