"""Auth endpoints: verify an access key, check a session, log out."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from digitflow.api.dependencies import get_engine
from digitflow.api.middleware.auth import Session
from digitflow.api.routes.schemas import CheckRequest, VerifyRequest, VerifyResponse
from digitflow.engine.client import DigitFlowEngine  # noqa: TC001
from digitflow.engine.models.base import ensure_utc
from digitflow.errors.definitions import ErrVerificationFailed
from digitflow.errors.dfp_errors import DFPError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/verify")
async def verify(
    response: Response,
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
    body: VerifyRequest | None = None,
) -> dict:
    """Verify a key for this device and start a session on success.

    A missing body or missing fields are a 400, not a validation error.
    """
    body = body or VerifyRequest()
    try:
        result = await engine.verification_service.verify(
            body.access_key or "", body.device_fingerprint or ""
        )
    except SQLAlchemyError:
        logger.exception("Access key verification failed")
        raise ErrVerificationFailed from None

    auth = engine.config.auth
    session = Session(access_key=result.access_key, device_fingerprint=body.device_fingerprint or "")
    response.set_cookie(
        auth.cookie_name,
        session.encode(),
        max_age=auth.cookie_max_age,
        path="/",
        samesite="lax",
    )
    return VerifyResponse(
        access_key=result.access_key,
        expires_at=ensure_utc(result.expires_at),
    ).to_json()


@router.post("/check", response_model=None)
async def check(
    request: Request,
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
    body: CheckRequest | None = None,
) -> dict | JSONResponse:
    """Re-validate credentials from the body, or from the session cookie."""
    key, fingerprint = "", ""
    if body is not None and body.access_key:
        key, fingerprint = body.access_key, body.device_fingerprint or ""
    else:
        token = request.cookies.get(engine.config.auth.cookie_name)
        if token:
            try:
                session = Session.decode(token)
            except DFPError:
                session = None
            if session is not None:
                key, fingerprint = session.access_key, session.device_fingerprint

    try:
        authenticated = await engine.verification_service.check(key, fingerprint)
    except SQLAlchemyError:
        logger.exception("Session check failed")
        return JSONResponse(status_code=500, content={"authenticated": False})

    if not authenticated:
        return JSONResponse(status_code=401, content={"authenticated": False})
    return {"authenticated": True}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    """Drop the session cookie and the caller's analysis state."""
    cookie_name = engine.config.auth.cookie_name
    token = request.cookies.get(cookie_name)
    if token:
        try:
            session = Session.decode(token)
        except DFPError:
            session = None
        if session is not None:
            await engine.analysis_manager.discard(session.access_key)
            await engine.scan_manager.discard(session.access_key)
    response.delete_cookie(cookie_name, path="/")
    return {"success": True}
