"""API request/response Pydantic schemas.

These are the *API-layer* schemas: thin wrappers that define the HTTP
contract. They are kept apart from the SQLAlchemy models; the
endpoint code maps between ORM objects and these schemas. Field names are
snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class VerifyRequest(CamelModel):
    """POST /api/auth/verify: both fields are checked by the service."""

    access_key: str | None = None
    device_fingerprint: str | None = None


class VerifyResponse(CamelModel):
    success: bool = True
    access_key: str
    expires_at: datetime | None = None


class CheckRequest(CamelModel):
    """POST /api/auth/check: optional; the session cookie is used otherwise."""

    access_key: str | None = None
    device_fingerprint: str | None = None


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class AccessKeyCreateRequest(CamelModel):
    """POST /api/admin/access-keys."""

    expiry_months: int | None = Field(None, ge=1, le=1200)
    device_limit: int | None = Field(None, ge=1)


class SetActiveRequest(CamelModel):
    """PATCH /api/admin/access-keys and /api/admin/devices."""

    id: int
    is_active: bool


class AccessKeyResponse(CamelModel):
    """Serialised access key for API responses."""

    id: int
    access_key: str
    is_active: bool
    device_fingerprint: str | None = None
    device_limit: int | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None
    last_used_at: datetime | None = None


class AccessKeyCreateResponse(CamelModel):
    access_key: str
    data: AccessKeyResponse


class DeviceResponse(CamelModel):
    """Serialised bound device, with its key string for display."""

    id: int
    access_key_id: int
    access_key: str = ""
    device_fingerprint: str
    device_name: str = ""
    first_used_at: datetime | None = None
    last_used_at: datetime | None = None
    is_active: bool


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class MarketResponse(CamelModel):
    id: str
    name: str


class StartAnalysisRequest(CamelModel):
    """POST /api/analysis/start: ``maxTicks`` defaults to the configured window."""

    market: str
    max_ticks: int | None = None
