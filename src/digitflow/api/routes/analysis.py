"""Analysis endpoints: markets, the caller's live session and its snapshot stream."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from digitflow.api.dependencies import get_engine, require_session
from digitflow.api.middleware.auth import Session, authenticate_session
from digitflow.api.routes.schemas import MarketResponse, StartAnalysisRequest
from digitflow.engine.client import DigitFlowEngine  # noqa: TC001
from digitflow.errors.definitions import ErrNotReady
from digitflow.errors.dfp_errors import DFPError
from digitflow.feed.markets import MARKETS

if TYPE_CHECKING:
    from digitflow.analysis.session import AnalysisSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analysis"])


@router.get("/markets")
async def list_markets() -> dict:
    """The instruments an analysis session or scan can target."""
    return {"markets": [MarketResponse(id=m.id, name=m.name).to_json() for m in MARKETS]}


@router.post("/analysis/start")
async def start_analysis(
    body: StartAnalysisRequest,
    session: Annotated[Session, Depends(require_session)],
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    """Start the caller's session, switching market or window size if they changed."""
    analysis = await engine.analysis_manager.start(
        session.access_key, body.market, body.max_ticks
    )
    return analysis.snapshot().to_dict()


@router.post("/analysis/stop")
async def stop_analysis(
    session: Annotated[Session, Depends(require_session)],
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    analysis = await engine.analysis_manager.stop(session.access_key)
    return analysis.snapshot().to_dict()


@router.post("/analysis/reset")
async def reset_analysis(
    session: Annotated[Session, Depends(require_session)],
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    analysis = engine.analysis_manager.reset(session.access_key)
    return analysis.snapshot().to_dict()


@router.get("/analysis")
async def get_analysis(
    session: Annotated[Session, Depends(require_session)],
    engine: Annotated[DigitFlowEngine, Depends(get_engine)],
) -> dict:
    """Current window, patterns, statistics, predictions and match log."""
    return engine.analysis_manager.get(session.access_key).snapshot().to_dict()


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while (await websocket.receive())["type"] != "websocket.disconnect":
        pass


async def pump_snapshots(websocket: WebSocket, analysis: AnalysisSession) -> None:
    """Send snapshots from *analysis* until the client leaves or the session is discarded.

    The socket is read alongside the subscription, so a client that goes away
    while no ticks arrive (a stopped session) still ends the loop.
    """
    queue = analysis.subscribe()
    gone = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        await websocket.send_json(analysis.snapshot().to_dict())
        while True:
            pending = asyncio.create_task(queue.get())
            await asyncio.wait({pending, gone}, return_when=asyncio.FIRST_COMPLETED)
            if gone.done():
                pending.cancel()
                logger.debug("Analysis stream for %s closed by client", analysis.market)
                return
            snapshot = pending.result()
            if snapshot is None:
                await websocket.close(code=status.WS_1000_NORMAL_CLOSURE, reason="session ended")
                return
            analysis.last_activity = time.monotonic()
            await websocket.send_json(snapshot.to_dict())
    except WebSocketDisconnect:
        logger.debug("Analysis stream for %s closed by client", analysis.market)
    finally:
        gone.cancel()
        analysis.unsubscribe(queue)


@router.websocket("/analysis/stream")
async def stream_analysis(websocket: WebSocket) -> None:
    """Push a snapshot of the caller's session after every change.

    The socket closes with 1013 before startup completes, with 1008 when the
    session cookie does not verify or no analysis session exists, and with
    1000 once the session is discarded.
    """
    engine: DigitFlowEngine | None = getattr(websocket.app.state, "engine", None)
    if engine is None:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason=ErrNotReady.message)
        return

    token = websocket.cookies.get(engine.config.auth.cookie_name)
    try:
        session = await authenticate_session(engine, token)
        analysis = engine.analysis_manager.get(session.access_key)
    except DFPError as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return

    await websocket.accept()
    await pump_snapshots(websocket, analysis)
