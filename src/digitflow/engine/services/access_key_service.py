"""AccessKey service: issuing, listing, toggling and deleting keys."""

from __future__ import annotations

import calendar
import logging
import secrets
import string
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from digitflow.engine.models.access_key import AccessKey
from digitflow.engine.models.base import utcnow
from digitflow.engine.models.device import BoundDevice
from digitflow.errors.definitions import ErrAccessKeyNotFound

if TYPE_CHECKING:
    from digitflow.engine.client import DigitFlowEngine

logger = logging.getLogger(__name__)

_BASE36_ALPHABET = string.digits + string.ascii_uppercase
_RANDOM_SEGMENT_LENGTH = 6
_MAX_GENERATE_ATTEMPTS = 3


def to_base36(value: int) -> str:
    """Encode a non-negative integer in uppercase base 36."""
    if value < 0:
        msg = "value must be non-negative"
        raise ValueError(msg)
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_access_key(prefix: str = "DFP", now: datetime | None = None) -> str:
    """Generate a shareable access key string.

    Format: ``<prefix>-<year>-<6 random base-36 chars>-<base-36 ms timestamp>``.
    The random segment comes from :mod:`secrets`. Keys are capability tokens
    looked up in the key store; nothing about the string is self-verifying.
    """
    now = now or utcnow()
    random_part = "".join(
        secrets.choice(_BASE36_ALPHABET) for _ in range(_RANDOM_SEGMENT_LENGTH)
    )
    timestamp = to_base36(int(now.timestamp() * 1000))
    return f"{prefix}-{now.year}-{random_part}-{timestamp}"


def add_months(moment: datetime, months: int) -> datetime:
    """Shift *moment* by whole calendar months, clamping to the month's last day."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class AccessKeyService:
    """Administrative operations on the key store.

    - Issue keys with an expiry N months out and an optional device limit
    - List keys newest first
    - Activate / deactivate (reversible)
    - Delete (irreversible, bound devices go with it)
    """

    def __init__(self, engine: DigitFlowEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def new_access_key(
        self,
        *,
        expiry_months: int | None = None,
        device_limit: int | None = None,
    ) -> AccessKey:
        """Issue a new active access key.

        Args:
            expiry_months: Months until expiry. Defaults to the configured value (12).
            device_limit: Max bound devices. ``None`` falls back to the configured
                default, which itself defaults to a single-device key.

        Returns:
            The persisted AccessKey model.
        """
        auth = self._engine.config.auth
        if expiry_months is None:
            expiry_months = auth.default_expiry_months
        if device_limit is None:
            device_limit = auth.default_device_limit

        attempt = 0
        while True:
            attempt += 1
            now = utcnow()
            access_key = AccessKey(
                access_key=generate_access_key(auth.key_prefix, now),
                is_active=True,
                device_limit=device_limit,
                expires_at=add_months(now, expiry_months),
                created_at=now,
            )
            try:
                async with self._engine.datastore.session() as session:
                    session.add(access_key)
                    await session.commit()
                    await session.refresh(access_key)
            except IntegrityError:
                if attempt == _MAX_GENERATE_ATTEMPTS:
                    raise
                logger.warning("Access key collision, regenerating (attempt %d)", attempt)
            else:
                logger.info(
                    "Issued access key id=%d device_limit=%s", access_key.id, device_limit
                )
                return access_key

    async def get_access_key(self, id_: int) -> AccessKey | None:
        """Look up an access key by its row ID."""
        async with self._engine.datastore.session() as session:
            return await session.get(AccessKey, id_)

    async def get_by_key(self, key: str) -> AccessKey | None:
        """Look up an access key by its key string (active or not)."""
        async with self._engine.datastore.session() as session:
            result = await session.execute(select(AccessKey).where(AccessKey.access_key == key))
            return result.scalar_one_or_none()

    async def list_access_keys(self) -> list[AccessKey]:
        """List every access key, newest first."""
        async with self._engine.datastore.session() as session:
            result = await session.execute(
                select(AccessKey).order_by(AccessKey.created_at.desc(), AccessKey.id.desc())
            )
            return list(result.scalars().all())

    async def set_active(self, id_: int, is_active: bool) -> None:
        """Activate or deactivate a key.

        Raises:
            DFPError: If the key does not exist.
        """
        async with self._engine.datastore.session() as session:
            result = await session.execute(
                update(AccessKey).where(AccessKey.id == id_).values(is_active=is_active)
            )
            if result.rowcount == 0:
                raise ErrAccessKeyNotFound
            await session.commit()
        logger.info("Access key id=%d is_active=%s", id_, is_active)

    async def delete_access_key(self, id_: int) -> None:
        """Delete a key and its bound devices.

        Raises:
            DFPError: If the key does not exist.
        """
        async with self._engine.datastore.session() as session:
            await session.execute(delete(BoundDevice).where(BoundDevice.access_key_id == id_))
            result = await session.execute(delete(AccessKey).where(AccessKey.id == id_))
            if result.rowcount == 0:
                await session.rollback()
                raise ErrAccessKeyNotFound
            await session.commit()
        logger.info("Deleted access key id=%d", id_)

    async def count_access_keys(self) -> int:
        """Count all keys in the store."""
        from sqlalchemy import func

        async with self._engine.datastore.session() as session:
            result = await session.execute(select(func.count(AccessKey.id)))
            return result.scalar_one()
