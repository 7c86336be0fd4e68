"""Admin endpoints: issue, toggle and delete access keys; manage bound devices.

Every route requires the ``x-admin-key`` header.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from digitflow.api.dependencies import get_engine, require_admin
from digitflow.api.routes.schemas import (
    AccessKeyCreateRequest,
    AccessKeyCreateResponse,
    AccessKeyResponse,
    DeviceResponse,
    SetActiveRequest,
)
from digitflow.engine.client import DigitFlowEngine  # noqa: TC001
from digitflow.engine.models.base import ensure_utc
from digitflow.errors.definitions import (
    ErrAccessKeyNotFound,
    ErrMissingAccessKeyID,
    ErrMissingDeviceID,
)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ak_resp(ak: Any) -> AccessKeyResponse:
    return AccessKeyResponse(
        id=ak.id,
        access_key=ak.access_key,
        is_active=ak.is_active,
        device_fingerprint=ak.device_fingerprint,
        device_limit=ak.device_limit,
        expires_at=ensure_utc(ak.expires_at),
        created_at=ensure_utc(ak.created_at),
        last_used_at=ensure_utc(ak.last_used_at),
    )


def _device_resp(d: Any, access_key: str) -> dict:
    return DeviceResponse(
        id=d.id,
        access_key_id=d.access_key_id,
        access_key=access_key,
        device_fingerprint=d.device_fingerprint,
        device_name=d.device_name,
        first_used_at=ensure_utc(d.first_used_at),
        last_used_at=ensure_utc(d.last_used_at),
        is_active=d.is_active,
    ).to_json()


# ---------------------------------------------------------------------------
# Access keys
# ---------------------------------------------------------------------------


@router.get("/access-keys")
async def list_access_keys(
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    """List every access key, newest first."""
    keys = await engine.access_key_service.list_access_keys()
    return {"keys": [_ak_resp(k).to_json() for k in keys]}


@router.post("/access-keys")
async def create_access_key(
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
    body: AccessKeyCreateRequest | None = None,
) -> dict:
    """Issue a new key; single-device unless ``deviceLimit`` is given."""
    body = body or AccessKeyCreateRequest()
    ak = await engine.access_key_service.new_access_key(
        expiry_months=body.expiry_months,
        device_limit=body.device_limit,
    )
    return AccessKeyCreateResponse(access_key=ak.access_key, data=_ak_resp(ak)).to_json()


@router.patch("/access-keys")
async def set_access_key_active(
    body: SetActiveRequest,
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    """Activate or deactivate a key."""
    await engine.access_key_service.set_active(body.id, body.is_active)
    return {"success": True}


@router.delete("/access-keys")
async def delete_access_key(
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
    id: int | None = None,  # noqa: A002
) -> dict:
    """Delete a key and its bound devices."""
    if id is None:
        raise ErrMissingAccessKeyID
    await engine.access_key_service.delete_access_key(id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


@router.get("/devices")
async def list_devices(
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
    access_key_id: Annotated[int | None, Query(alias="accessKeyId")] = None,
) -> dict:
    """List the devices bound to a key, most recently used first."""
    if access_key_id is None:
        raise ErrMissingAccessKeyID
    ak = await engine.access_key_service.get_access_key(access_key_id)
    if ak is None:
        raise ErrAccessKeyNotFound
    devices = await engine.device_service.list_devices(access_key_id)
    return {"devices": [_device_resp(d, ak.access_key) for d in devices]}


@router.patch("/devices")
async def set_device_active(
    body: SetActiveRequest,
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    """Activate or deactivate one bound device."""
    await engine.device_service.set_active(body.id, body.is_active)
    return {"success": True}


@router.delete("/devices")
async def delete_device(
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
    id: int | None = None,  # noqa: A002
) -> dict:
    """Unbind a device, freeing its slot."""
    if id is None:
        raise ErrMissingDeviceID
    await engine.device_service.delete_device(id)
    return {"success": True}
