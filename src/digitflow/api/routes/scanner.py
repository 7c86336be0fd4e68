"""Scanner endpoints: start a multi-market scan and poll its progress."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from digitflow.api.dependencies import get_engine, require_session
from digitflow.api.middleware.auth import Session  # noqa: TC001
from digitflow.engine.client import DigitFlowEngine  # noqa: TC001

router = APIRouter(prefix="/scanner", tags=["scanner"])


@router.post("", status_code=202)
async def start_scan(
    session: Annotated[Session, Depends(require_session)],
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    """Start a background scan of every market; 409 while one is running."""
    return engine.scan_manager.start(session.access_key).to_dict()


@router.get("")
async def get_scan(
    session: Annotated[Session, Depends(require_session)],
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    """Progress, live per-market state and, once done, the ranked signals."""
    return engine.scan_manager.get(session.access_key).to_dict()
