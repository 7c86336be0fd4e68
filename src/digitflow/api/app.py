"""FastAPI application factory for the Digit Flow Pro server."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from digitflow import __version__
from digitflow.api.middleware.cors import setup_cors
from digitflow.api.middleware.session_gate import SessionGateMiddleware
from digitflow.api.routes import api_router, pages_router
from digitflow.config.settings import AppConfig
from digitflow.engine.client import DigitFlowEngine
from digitflow.errors.dfp_errors import DFPError
from digitflow.metrics.collector import EngineMetrics
from digitflow.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from digitflow.feed.client import TickStream

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the engine for as long as the app serves requests.

    Shutdown closes every feed connection before the key store.
    """
    engine = DigitFlowEngine(
        app.state.config,
        stream_factory=app.state.stream_factory,
        metrics=app.state.metrics,
    )
    await engine.initialize()
    app.state.engine = engine
    try:
        yield
    finally:
        app.state.engine = None
        await engine.close()


async def _dfp_error_handler(request: Request, exc: DFPError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _install_middleware(app: FastAPI, config: AppConfig) -> None:
    # Starlette runs the last added middleware first: CORS, metrics, gate.
    app.add_middleware(
        SessionGateMiddleware,
        cookie_name=config.auth.cookie_name,
        login_path=config.auth.login_path,
        public_paths=config.auth.public_paths,
    )
    if app.state.metrics is not None:
        app.add_middleware(PrometheusMiddleware, registry=app.state.metrics.registry)
    setup_cors(app, config.server.cors_origins)


def _install_base_routes(app: FastAPI) -> None:
    @app.get("/health", tags=["base"])
    async def health(request: Request) -> dict[str, str]:
        engine: DigitFlowEngine | None = getattr(request.app.state, "engine", None)
        if engine is None:
            return {"status": "starting"}
        return {"status": "ok", **await engine.health_check()}

    metrics: EngineMetrics | None = app.state.metrics
    if metrics is None:
        return

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def scrape() -> Response:
        return Response(generate_latest(metrics.registry), media_type=CONTENT_TYPE_LATEST)


def create_app(
    *,
    config: AppConfig | None = None,
    stream_factory: Callable[[str], TickStream] | None = None,
) -> FastAPI:
    """Build the app; ``uvicorn --factory`` calls this with no arguments.

    Args:
        config: Settings; read from the environment (and ``DFP_CONFIG_PATH``)
            when omitted.
        stream_factory: Tick stream builder; the live feed when omitted.
    """
    config = config or AppConfig()
    app = FastAPI(
        title="Digit Flow Pro",
        version=__version__,
        description="Last-digit tick analysis behind device-bound access keys",
        debug=config.debug,
        lifespan=_lifespan,
    )
    app.state.config = config
    app.state.stream_factory = stream_factory
    app.state.metrics = EngineMetrics() if config.metrics.enabled else None

    _install_middleware(app, config)
    app.add_exception_handler(DFPError, _dfp_error_handler)  # type: ignore[arg-type]
    _install_base_routes(app)
    app.include_router(api_router)
    app.include_router(pages_router)
    return app
