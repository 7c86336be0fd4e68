"""Placeholder HTML pages.

The dashboard and login screens are rendered elsewhere; these exist so the
session gate has a login target and a protected page to guard.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(include_in_schema=False)

_LOGIN_PAGE = """<!doctype html>
<html><head><title>Digit Flow Pro - Login</title></head>
<body><h1>Digit Flow Pro</h1>
<p>POST your access key and device fingerprint to <code>/api/auth/verify</code>.</p>
</body></html>"""

_DASHBOARD_PAGE = """<!doctype html>
<html><head><title>Digit Flow Pro</title></head>
<body><h1>Digit Flow Pro</h1>
<p>Live analysis: <code>/api/analysis</code>, <code>/api/analysis/stream</code>.</p>
</body></html>"""


@router.get("/login")
async def login_page() -> HTMLResponse:
    return HTMLResponse(_LOGIN_PAGE)


@router.get("/")
async def dashboard_page() -> HTMLResponse:
    return HTMLResponse(_DASHBOARD_PAGE)
