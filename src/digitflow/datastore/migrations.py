"""Key store schema management.

The schema is two tables (access keys and their bound devices) and only ever
gains tables, so creating whatever is missing at startup is all the migration
there is.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy import MetaData
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def _metadata() -> MetaData:
    # Importing the package registers every model on Base.metadata.
    from digitflow.engine import models

    return models.Base.metadata


async def run_auto_migrate(engine: AsyncEngine) -> None:
    """Create missing key store tables; existing tables are left untouched."""
    metadata = _metadata()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.debug("Key store tables ready: %s", ", ".join(sorted(metadata.tables)))


async def drop_all_tables(engine: AsyncEngine) -> None:
    """Drop the key store tables. Tests and local resets only."""
    async with engine.begin() as conn:
        await conn.run_sync(_metadata().drop_all)
