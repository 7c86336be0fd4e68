"""API middleware: session auth, session gate, CORS."""

from digitflow.api.middleware.auth import Session
from digitflow.api.middleware.cors import setup_cors
from digitflow.api.middleware.session_gate import SessionGateMiddleware

__all__ = ["Session", "SessionGateMiddleware", "setup_cors"]
