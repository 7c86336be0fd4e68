"""Tests for /api/scanner."""

from __future__ import annotations

import time

import pytest
from conftest import FakeStreamFactory
from fastapi.testclient import TestClient

from digitflow.api.app import create_app
from digitflow.config.settings import ScannerConfig
from digitflow.feed.markets import MARKETS


@pytest.fixture
def scan_client(app_config):
    app_config.scanner = ScannerConfig(duration=0.3, poll_interval=0.05)
    quotes = {m.id: ["1.02", "1.04", "1.12", "1.14", "1.21"] for m in MARKETS}
    app = create_app(config=app_config, stream_factory=FakeStreamFactory(quotes))
    with TestClient(app) as client:
        key = client.post(
            "/api/admin/access-keys", headers={"x-admin-key": "test-admin-key"}
        ).json()["accessKey"]
        client.post("/api/auth/verify", json={"accessKey": key, "deviceFingerprint": "fp"})
        yield client


def _wait_for_scan(client: TestClient, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get("/api/scanner").json()
        if body["status"] != "running":
            return body
        time.sleep(0.05)
    pytest.fail("scan did not finish")


def test_requires_session(test_client) -> None:
    assert test_client.post("/api/scanner").status_code == 401
    assert test_client.get("/api/scanner").status_code == 401


def test_no_scan_yet(logged_in_client) -> None:
    resp = logged_in_client.get("/api/scanner")
    assert resp.status_code == 404
    assert resp.json()["code"] == "no-scan"


def test_scan_runs_to_completion(scan_client) -> None:
    resp = scan_client.post("/api/scanner")
    assert resp.status_code == 202
    assert resp.json()["status"] == "running"

    body = _wait_for_scan(scan_client)
    assert body["status"] == "done"
    assert body["progress"] == 100.0
    assert len(body["signals"]) == len(MARKETS)
    assert body["best"] == body["signals"][0]
    confidences = [s["confidence"] for s in body["signals"]]
    assert confidences == sorted(confidences, reverse=True)
    # four of five digits are even in every market
    assert body["best"]["best_strategy"] == "even"


def test_second_scan_while_running(scan_client) -> None:
    assert scan_client.post("/api/scanner").status_code == 202
    resp = scan_client.post("/api/scanner")
    assert resp.status_code == 409
    assert resp.json()["code"] == "scan-in-progress"
    _wait_for_scan(scan_client)
    assert scan_client.post("/api/scanner").status_code == 202
