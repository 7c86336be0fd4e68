"""Tests for the page-navigation session gate."""

from __future__ import annotations

import pytest

from digitflow.api.middleware.auth import Session


def test_redirects_without_cookie(test_client) -> None:
    resp = test_client.get("/", follow_redirects=False)
    assert resp.status_code == 307
    assert resp.headers["location"] == "/login"


def test_login_page_is_public(test_client) -> None:
    resp = test_client.get("/login", follow_redirects=False)
    assert resp.status_code == 200
    assert "Digit Flow Pro" in resp.text


@pytest.mark.parametrize("path", ["/health", "/api/markets"])
def test_public_paths_pass(test_client, path: str) -> None:
    assert test_client.get(path, follow_redirects=False).status_code == 200


def test_valid_session_passes(logged_in_client) -> None:
    resp = logged_in_client.get("/", follow_redirects=False)
    assert resp.status_code == 200


def test_stale_session_is_cleared(test_client) -> None:
    token = Session(access_key="DFP-0000-AAAAAA-1", device_fingerprint="fp").encode()
    test_client.cookies.set("dfp_session", token)
    resp = test_client.get("/", follow_redirects=False)
    assert resp.status_code == 307
    assert resp.headers["location"] == "/login"
    assert "dfp_session" in resp.headers["set-cookie"]


def test_malformed_cookie_redirects(test_client) -> None:
    test_client.cookies.set("dfp_session", "%%%")
    resp = test_client.get("/", follow_redirects=False)
    assert resp.status_code == 307


def test_is_public() -> None:
    from digitflow.api.middleware.session_gate import SessionGateMiddleware

    gate = SessionGateMiddleware(
        None, cookie_name="c", login_path="/login", public_paths=["/api/", "/health"]
    )
    assert gate.is_public("/login")
    assert gate.is_public("/api/auth/verify")
    assert gate.is_public("/health")
    assert not gate.is_public("/")
    assert not gate.is_public("/dashboard")
