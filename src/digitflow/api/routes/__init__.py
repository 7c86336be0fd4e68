"""REST API routes.

Combines all sub-routers under the ``/api`` prefix; the HTML placeholder
pages live at the root.
"""

from fastapi import APIRouter

from digitflow.api.routes.admin import router as admin_router
from digitflow.api.routes.analysis import router as analysis_router
from digitflow.api.routes.auth import router as auth_router
from digitflow.api.routes.pages import router as pages_router
from digitflow.api.routes.scanner import router as scanner_router

api_router = APIRouter(prefix="/api")

api_router.include_router(auth_router)
api_router.include_router(admin_router)
api_router.include_router(analysis_router)
api_router.include_router(scanner_router)

__all__ = ["api_router", "pages_router"]
