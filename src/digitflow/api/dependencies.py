"""``Depends()`` callables shared by the route modules."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from digitflow.api.middleware.auth import (
    AUTH_HEADER_ADMIN_KEY,
    Session,
    authenticate_session,
    check_admin_key,
)
from digitflow.engine.client import DigitFlowEngine  # noqa: TC001
from digitflow.errors.definitions import ErrNotReady


def get_engine(request: Request) -> DigitFlowEngine:
    """The engine the lifespan put on ``app.state``; 503 outside of it."""
    engine: DigitFlowEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise ErrNotReady
    return engine


async def require_session(
    request: Request,
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> Session:
    """The caller's session, decoded from the cookie and checked against the store.

    Raises:
        DFPError: 401 if the cookie is missing or no longer verifies.
    """
    return await authenticate_session(engine, request.cookies.get(engine.config.auth.cookie_name))


def require_admin(
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
    admin_key: Annotated[str, Header(alias=AUTH_HEADER_ADMIN_KEY)] = "",
) -> None:
    """Guard for the admin routes: 401 without the header, 403 on a mismatch."""
    check_admin_key(engine, admin_key)
