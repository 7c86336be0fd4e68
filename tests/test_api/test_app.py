"""Tests for the app factory: health, metrics and error payloads."""

from __future__ import annotations

from fastapi.testclient import TestClient

from digitflow.api.app import create_app


def test_health_ok(test_client) -> None:
    resp = test_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "engine": "ok", "datastore": "ok"}


def test_health_before_startup(app_config, stream_factory) -> None:
    # Without entering the context manager the lifespan never runs.
    client = TestClient(create_app(config=app_config, stream_factory=stream_factory))
    assert client.get("/health").json() == {"status": "starting"}


def test_metrics_endpoint(test_client) -> None:
    test_client.get("/health")
    resp = test_client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "http_request_total" in resp.text


def test_metrics_disabled(app_config, stream_factory) -> None:
    app_config.metrics.enabled = False
    app = create_app(config=app_config, stream_factory=stream_factory)
    assert app.state.metrics is None
    with TestClient(app) as client:
        assert client.app.state.engine.metrics is None
        assert client.get("/metrics").status_code == 404


def test_error_payload_shape(test_client) -> None:
    resp = test_client.get("/api/analysis")
    assert resp.status_code == 401
    assert resp.json() == {"error": "unauthorized", "code": "unauthorized"}


def test_cors_headers(test_client) -> None:
    resp = test_client.get("/api/markets", headers={"Origin": "http://example.com"})
    assert resp.headers["access-control-allow-origin"] in ("*", "http://example.com")
    assert resp.headers["access-control-allow-credentials"] == "true"


def test_cors_preflight_allows_admin_header(test_client) -> None:
    resp = test_client.options(
        "/api/admin/access-keys",
        headers={
            "Origin": "http://example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "x-admin-key",
        },
    )
    assert resp.status_code == 200
    assert "x-admin-key" in resp.headers["access-control-allow-headers"].lower()


def test_not_ready_before_startup(app_config, stream_factory) -> None:
    # No context manager: the lifespan never runs, so no engine exists.
    client = TestClient(create_app(config=app_config, stream_factory=stream_factory))
    resp = client.post("/api/auth/check", json={})
    assert resp.status_code == 503
    assert resp.json()["code"] == "not-ready"
