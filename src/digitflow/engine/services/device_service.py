"""Device service: admin inspection of devices bound to multi-device keys."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update

from digitflow.engine.models.device import BoundDevice
from digitflow.errors.definitions import ErrDeviceNotFound

if TYPE_CHECKING:
    from digitflow.engine.client import DigitFlowEngine

logger = logging.getLogger(__name__)


class DeviceService:
    """List, toggle and remove bound devices."""

    def __init__(self, engine: DigitFlowEngine) -> None:
        self._engine = engine

    async def list_devices(self, access_key_id: int) -> list[BoundDevice]:
        """List the devices bound to a key, most recently used first."""
        async with self._engine.datastore.session() as session:
            result = await session.execute(
                select(BoundDevice)
                .where(BoundDevice.access_key_id == access_key_id)
                .order_by(BoundDevice.last_used_at.desc(), BoundDevice.id.desc())
            )
            return list(result.scalars().all())

    async def count_devices(self, access_key_id: int) -> int:
        """Count devices bound to a key, active or not."""
        from sqlalchemy import func

        async with self._engine.datastore.session() as session:
            result = await session.execute(
                select(func.count(BoundDevice.id)).where(
                    BoundDevice.access_key_id == access_key_id
                )
            )
            return result.scalar_one()

    async def set_active(self, id_: int, is_active: bool) -> None:
        """Activate or deactivate a bound device.

        A deactivated device still occupies a slot under the key's limit
        until it is deleted.

        Raises:
            DFPError: If the device does not exist.
        """
        async with self._engine.datastore.session() as session:
            result = await session.execute(
                update(BoundDevice).where(BoundDevice.id == id_).values(is_active=is_active)
            )
            if result.rowcount == 0:
                raise ErrDeviceNotFound
            await session.commit()
        logger.info("Device id=%d is_active=%s", id_, is_active)

    async def delete_device(self, id_: int) -> None:
        """Remove a bound device, freeing its slot.

        Raises:
            DFPError: If the device does not exist.
        """
        async with self._engine.datastore.session() as session:
            result = await session.execute(delete(BoundDevice).where(BoundDevice.id == id_))
            if result.rowcount == 0:
                raise ErrDeviceNotFound
            await session.commit()
        logger.info("Deleted device id=%d", id_)
