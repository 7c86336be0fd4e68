"""Key store data models (SQLAlchemy ORM).

Import :data:`ALL_MODELS` for table creation.
"""

from digitflow.engine.models.access_key import AccessKey
from digitflow.engine.models.base import Base, ensure_utc, utcnow
from digitflow.engine.models.device import BoundDevice

ALL_MODELS: list[type[Base]] = [
    AccessKey,
    BoundDevice,
]

__all__ = [
    "ALL_MODELS",
    "AccessKey",
    "Base",
    "BoundDevice",
    "ensure_utc",
    "utcnow",
]
