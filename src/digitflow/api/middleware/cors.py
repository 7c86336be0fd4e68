"""Cross-origin access for the JSON API.

The session cookie has to travel with cross-origin API calls, so credentials
are allowed; the admin key header must pass the pre-flight check.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

from digitflow.api.middleware.auth import AUTH_HEADER_ADMIN_KEY

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi import FastAPI


def setup_cors(app: FastAPI, origins: Sequence[str] = ("*",)) -> None:
    """Install CORS for *origins* (every origin by default)."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["content-type", AUTH_HEADER_ADMIN_KEY],
    )
