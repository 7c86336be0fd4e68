"""Key store persistence (async SQLAlchemy)."""

from __future__ import annotations

from digitflow.datastore.client import Datastore
from digitflow.datastore.migrations import drop_all_tables, run_auto_migrate

__all__ = ["Datastore", "drop_all_tables", "run_auto_migrate"]
