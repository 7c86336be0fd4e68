"""AccessKey model: license keys with device binding."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from digitflow.engine.models.base import Base, ensure_utc, utcnow


class AccessKey(Base):
    """A capability string granting dashboard access.

    Keys come in two variants:

    - single-device (``device_limit`` is NULL): the first verifying device is
      stored in ``device_fingerprint`` and every other device is refused;
    - multi-device (``device_limit`` set): devices are rows in
      ``access_key_devices`` and at most ``device_limit`` of them may bind.
    """

    __tablename__ = "access_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    access_key: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True, comment="Shareable key string"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    device_fingerprint: Mapped[str | None] = mapped_column(
        Text, nullable=True, default=None, comment="Bound device (single-device keys)"
    )
    device_limit: Mapped[int | None] = mapped_column(
        Integer, nullable=True, default=None, comment="Max bound devices (multi-device keys)"
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    @property
    def is_multi_device(self) -> bool:
        return self.device_limit is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the key's expiry lies strictly in the past. No grace period."""
        expires_at = ensure_utc(self.expires_at)
        if expires_at is None:
            return False
        return expires_at < (now or utcnow())

    def __repr__(self) -> str:
        return f"<AccessKey id={self.id} key={self.access_key} active={self.is_active}>"
