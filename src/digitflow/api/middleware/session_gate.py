"""Session gate: redirects unauthenticated page navigations to the login page.

API routes enforce authentication themselves; this middleware only protects
HTML navigations. Every protected request is re-checked against the key
store, with no caching.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

from digitflow.api.middleware.auth import Session
from digitflow.errors.dfp_errors import DFPError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from starlette.middleware.base import RequestResponseEndpoint
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Allow a navigation only when its session cookie still verifies.

    Args:
        app: The wrapped ASGI app.
        cookie_name: Name of the session cookie.
        login_path: Where unauthenticated navigations are sent.
        public_paths: Path prefixes that always pass through.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        cookie_name: str,
        login_path: str,
        public_paths: Sequence[str],
    ) -> None:
        super().__init__(app)
        self._cookie_name = cookie_name
        self._login_path = login_path
        self._public_paths = tuple(public_paths)

    def is_public(self, path: str) -> bool:
        return path == self._login_path or path.startswith(self._public_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.is_public(request.url.path):
            return await call_next(request)

        token = request.cookies.get(self._cookie_name)
        if not token:
            return RedirectResponse(self._login_path, status_code=307)

        if not await self._session_valid(request, token):
            response = RedirectResponse(self._login_path, status_code=307)
            response.delete_cookie(self._cookie_name, path="/")
            return response

        return await call_next(request)

    async def _session_valid(self, request: Request, token: str) -> bool:
        engine = getattr(request.app.state, "engine", None)
        if engine is None:
            return False
        try:
            session = Session.decode(token)
            return await engine.verification_service.check(
                session.access_key, session.device_fingerprint
            )
        except DFPError:
            return False
        except SQLAlchemyError:
            logger.exception("Session check failed")
            return False
