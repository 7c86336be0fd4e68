"""Verification service: access key checks and first-use device binding.

``verify`` is the login path: it validates the key and binds the presenting
device on first use. ``check`` is the read-only variant used to re-validate a
session on every protected navigation.

Binding is race-free. The single-device variant binds with an UPDATE guarded
by ``device_fingerprint IS NULL``. The multi-device variant first locks the
parent key row (``SELECT ... FOR UPDATE``; SQLite serialises writers instead)
and then inserts with an ``INSERT ... SELECT`` guarded by the current device
count, so two devices racing for the last slot cannot both win, even under
READ COMMITTED on PostgreSQL.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func, insert, literal, select, update
from sqlalchemy.exc import IntegrityError

from digitflow.engine.models.access_key import AccessKey
from digitflow.engine.models.base import utcnow
from digitflow.engine.models.device import BoundDevice
from digitflow.errors.definitions import (
    ErrAccessKeyExpired,
    ErrDeviceConflict,
    ErrDeviceDeactivated,
    ErrInvalidAccessKey,
    ErrMissingCredentials,
    err_device_limit,
)
from digitflow.errors.dfp_errors import DFPError

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from digitflow.engine.client import DigitFlowEngine

logger = logging.getLogger(__name__)


def lock_key_row(key_id: int) -> Select[tuple[int]]:
    """Row lock on an access key, held until the binding transaction ends.

    Concurrent multi-device binds for one key queue up here, so each sees the
    previous one's device when it counts. SQLite renders no ``FOR UPDATE``.
    """
    return select(AccessKey.id).where(AccessKey.id == key_id).with_for_update()


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a successful verification."""

    access_key: str
    expires_at: datetime | None
    newly_bound: bool = False


class VerificationService:
    """Decides allow/deny for a (key, device fingerprint) pair."""

    def __init__(self, engine: DigitFlowEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def verify(self, key: str, fingerprint: str) -> VerificationResult:
        """Verify a key for a device, binding the device on first use.

        Args:
            key: The access key string.
            fingerprint: The presenting device's fingerprint.

        Returns:
            VerificationResult describing the allowed key.

        Raises:
            DFPError: 400 for missing fields, 401 for unknown, inactive or
                expired keys, 403 for device conflicts and exhausted limits.
        """
        try:
            result = await self._verify(key.strip() if key else "", fingerprint or "")
        except DFPError as exc:
            self._record("denied", exc.code)
            raise
        self._record("allowed", "bound" if result.newly_bound else "known-device")
        return result

    async def check(self, key: str, fingerprint: str) -> bool:
        """Read-only re-validation of a key/device pair. Never binds."""
        if not key or not fingerprint:
            return False
        now = utcnow()
        async with self._engine.datastore.session() as session:
            ak = await self._load_key(session, key)
            if ak is None or not ak.is_active or ak.is_expired(now):
                return False
            if not ak.is_multi_device:
                return ak.device_fingerprint == fingerprint
            device = await self._load_device(session, ak.id, fingerprint)
            return device is not None and device.is_active

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _verify(self, key: str, fingerprint: str) -> VerificationResult:
        if not key or not fingerprint:
            raise ErrMissingCredentials

        now = utcnow()
        async with self._engine.datastore.session() as session:
            ak = await self._load_key(session, key)
            if ak is None or not ak.is_active:
                raise ErrInvalidAccessKey
            if ak.is_expired(now):
                raise ErrAccessKeyExpired

            # Plain values: a rollback inside _bind_multi expires ORM state.
            key_id, key_str, expires_at = ak.id, ak.access_key, ak.expires_at
            if ak.is_multi_device:
                newly_bound = await self._bind_multi(
                    session, key_id, ak.device_limit or 0, fingerprint, now
                )
            else:
                newly_bound = await self._bind_single(
                    session, key_id, ak.device_fingerprint, fingerprint, now
                )
            await session.commit()

        if newly_bound:
            logger.info("Access key id=%d bound to a new device", key_id)
        return VerificationResult(
            access_key=key_str,
            expires_at=expires_at,
            newly_bound=newly_bound,
        )

    async def _bind_single(
        self,
        session: AsyncSession,
        key_id: int,
        bound: str | None,
        fingerprint: str,
        now: datetime,
    ) -> bool:
        if bound is None:
            result = await session.execute(
                update(AccessKey)
                .where(AccessKey.id == key_id, AccessKey.device_fingerprint.is_(None))
                .values(device_fingerprint=fingerprint, last_used_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return True
            # Another device bound the key between our read and our update.
            bound = await session.scalar(
                select(AccessKey.device_fingerprint).where(AccessKey.id == key_id)
            )

        if bound != fingerprint:
            raise ErrDeviceConflict
        await self._touch_key(session, key_id, now)
        return False

    async def _bind_multi(
        self,
        session: AsyncSession,
        key_id: int,
        limit: int,
        fingerprint: str,
        now: datetime,
    ) -> bool:
        device = await self._load_device(session, key_id, fingerprint)
        if device is not None:
            if not device.is_active:
                raise ErrDeviceDeactivated
            await self._touch_device(session, device.id, now)
            await self._touch_key(session, key_id, now)
            return False

        await session.execute(lock_key_row(key_id))
        bound_count = (
            select(func.count(BoundDevice.id))
            .where(BoundDevice.access_key_id == key_id)
            .scalar_subquery()
        )
        ts = DateTime(timezone=True)
        source = select(
            literal(key_id, Integer),
            literal(fingerprint, Text),
            literal("", String),
            literal(now, ts),
            literal(now, ts),
            literal(True, Boolean),
        ).where(bound_count < limit)
        stmt = insert(BoundDevice.__table__).from_select(
            [
                "access_key_id",
                "device_fingerprint",
                "device_name",
                "first_used_at",
                "last_used_at",
                "is_active",
            ],
            source,
        )
        try:
            result = await session.execute(stmt)
        except IntegrityError:
            # The same device won a concurrent first-use race; it is bound now.
            await session.rollback()
            return await self._bind_multi(session, key_id, limit, fingerprint, now)

        if result.rowcount == 0:
            raise err_device_limit(limit)
        await self._touch_key(session, key_id, now)
        return True

    @staticmethod
    async def _load_key(session: AsyncSession, key: str) -> AccessKey | None:
        result = await session.execute(select(AccessKey).where(AccessKey.access_key == key))
        return result.scalar_one_or_none()

    @staticmethod
    async def _load_device(
        session: AsyncSession, access_key_id: int, fingerprint: str
    ) -> BoundDevice | None:
        result = await session.execute(
            select(BoundDevice).where(
                BoundDevice.access_key_id == access_key_id,
                BoundDevice.device_fingerprint == fingerprint,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _touch_key(session: AsyncSession, access_key_id: int, now: datetime) -> None:
        await session.execute(
            update(AccessKey)
            .where(AccessKey.id == access_key_id)
            .values(last_used_at=now)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def _touch_device(session: AsyncSession, device_id: int, now: datetime) -> None:
        await session.execute(
            update(BoundDevice)
            .where(BoundDevice.id == device_id)
            .values(last_used_at=now)
            .execution_options(synchronize_session=False)
        )

    def _record(self, outcome: str, reason: str) -> None:
        metrics = self._engine.metrics
        if metrics is not None:
            metrics.record_verification(outcome, reason)
