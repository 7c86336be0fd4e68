"""Key store connection: one async engine, one short-lived session per operation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import async_sessionmaker

from digitflow.datastore.engines import create_engine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from digitflow.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)

_ERR_NOT_OPEN = "Datastore is not open. Call open() first."


class Datastore:
    """Owns the engine behind the access key tables.

    Services open one session per operation and commit it themselves::

        async with engine.datastore.session() as session:
            session.add(key)
            await session.commit()

    Sessions do not expire objects on commit, so rows returned by a service
    stay readable after its session has closed.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._engine

    async def open(self, *, migrate: bool = False) -> None:
        """Connect to the configured database.

        Args:
            migrate: Also create any missing key store tables.
        """
        if self._engine is not None:
            return
        engine = create_engine(self._config)
        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)
        logger.debug("Datastore opened: %s", engine.url.render_as_string(hide_password=True))
        if migrate:
            from digitflow.datastore.migrations import run_auto_migrate

            await run_auto_migrate(engine)

    async def close(self) -> None:
        """Dispose the engine. Safe to call more than once."""
        if self._engine is None:
            return
        engine, self._engine, self._sessions = self._engine, None, None
        await engine.dispose()
        logger.debug("Datastore closed")

    def session(self) -> AsyncSession:
        """A new session, to be used as an async context manager."""
        if self._sessions is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._sessions()
