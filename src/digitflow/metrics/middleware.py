"""Prometheus HTTP metrics as a plain ASGI middleware.

- ``http_request_total{method,route,status_code,app}``
- ``http_request_duration_seconds{method,route,app}``

Requests are labelled with the matched route template (``/api/admin/devices``)
rather than the raw URL, so ids and query strings cannot blow up label
cardinality; unmatched paths share one label. Websocket traffic and the
``/metrics`` scrape itself are not counted.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram

if TYPE_CHECKING:
    from prometheus_client import CollectorRegistry
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

_APP_LABEL = "digitflow"
_UNMATCHED_ROUTE = "<unmatched>"
_SKIP_PATHS = frozenset({"/metrics"})


def _route_label(scope: Scope) -> str:
    # The router stores the matched route on the shared scope dict.
    return getattr(scope.get("route"), "path", None) or _UNMATCHED_ROUTE


class PrometheusMiddleware:
    """Counts and times HTTP requests per route template."""

    def __init__(self, app: ASGIApp, *, registry: CollectorRegistry) -> None:
        self.app = app
        self._requests = Counter(
            "http_request_total",
            "HTTP requests by route and status",
            ("method", "route", "status_code", "app"),
            registry=registry,
        )
        self._latency = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency by route",
            ("method", "route", "app"),
            registry=registry,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in _SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        status = 500

        async def send_with_status(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        start = time.monotonic()
        try:
            await self.app(scope, receive, send_with_status)
        finally:
            method, route = scope["method"], _route_label(scope)
            self._requests.labels(method, route, str(status), _APP_LABEL).inc()
            self._latency.labels(method, route, _APP_LABEL).observe(time.monotonic() - start)
