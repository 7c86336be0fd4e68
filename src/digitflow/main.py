"""Application entry point for the Digit Flow Pro server."""

from __future__ import annotations

import os

import uvicorn

from digitflow.config.settings import ServerConfig


def main() -> None:
    """Start the Digit Flow Pro server."""
    server = ServerConfig()
    reload = os.getenv("DFP_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "digitflow.api.app:create_app",
        factory=True,
        host=server.host,
        port=server.port,
        reload=reload,
        log_level=server.log_level,
    )


if __name__ == "__main__":
    main()
