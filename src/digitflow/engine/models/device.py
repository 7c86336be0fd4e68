"""BoundDevice model: devices registered under a multi-device key."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from digitflow.engine.models.base import Base, utcnow


class BoundDevice(Base):
    """One device fingerprint bound to an access key."""

    __tablename__ = "access_key_devices"
    __table_args__ = (
        UniqueConstraint("access_key_id", "device_fingerprint", name="uq_access_key_device"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    access_key_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("access_keys.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    device_fingerprint: Mapped[str] = mapped_column(Text, nullable=False)
    device_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    first_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<BoundDevice id={self.id} key_id={self.access_key_id} active={self.is_active}>"
