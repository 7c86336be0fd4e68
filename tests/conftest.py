"""Shared test fixtures for the digitflow test suite."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from digitflow.config.settings import DatabaseEngine
from digitflow.feed.client import Tick, last_digit

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

ADMIN_KEY = "test-admin-key"


class FakeTickStream:
    """Stands in for ``TickStream``: replays scripted quotes, then idles.

    ``hold`` keeps the stream open after the script runs out, the way a live
    feed would, until the consuming task is cancelled.
    """

    def __init__(
        self,
        symbol: str,
        quotes: Iterable[str] = (),
        *,
        delay: float = 0.0,
        hold: bool = True,
    ) -> None:
        self.symbol = symbol
        self.quotes = list(quotes)
        self.delay = delay
        self.hold = hold
        self.connected = False
        self.error: str | None = None

    async def ticks(self) -> AsyncIterator[Tick]:
        self.connected = True
        try:
            for quote in self.quotes:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield Tick(symbol=self.symbol, quote=quote, digit=last_digit(quote))
            if self.hold:
                await asyncio.Event().wait()
        finally:
            self.connected = False


class FakeStreamFactory:
    """Builds ``FakeTickStream`` objects and remembers them per symbol."""

    def __init__(self, quotes: dict[str, list[str]] | None = None, **kwargs: object) -> None:
        self.quotes = quotes or {}
        self.kwargs = kwargs
        self.streams: dict[str, list[FakeTickStream]] = {}

    def __call__(self, symbol: str) -> FakeTickStream:
        stream = FakeTickStream(symbol, self.quotes.get(symbol, ()), **self.kwargs)
        self.streams.setdefault(symbol, []).append(stream)
        return stream


@pytest.fixture
def app_config():
    """Provide a test AppConfig with safe defaults."""
    from digitflow.config.settings import AppConfig, AuthConfig, DatabaseConfig, TaskConfig

    return AppConfig(
        debug=True,
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn="sqlite+aiosqlite:///:memory:",
        ),
        auth=AuthConfig(admin_key=ADMIN_KEY),
        task=TaskConfig(enabled=False),
    )


@pytest.fixture
def stream_factory() -> FakeStreamFactory:
    return FakeStreamFactory()


@pytest.fixture
async def engine(app_config, stream_factory):
    """An initialized engine on an in-memory database."""
    from digitflow.engine.client import DigitFlowEngine

    eng = DigitFlowEngine(app_config, stream_factory=stream_factory)
    await eng.initialize()
    yield eng
    await eng.close()


@pytest.fixture
def test_client(app_config, stream_factory):
    """Provide a FastAPI TestClient with the app wired to test config."""
    from fastapi.testclient import TestClient

    from digitflow.api.app import create_app

    app = create_app(config=app_config, stream_factory=stream_factory)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


ADMIN_HEADERS = {"x-admin-key": ADMIN_KEY}


def issue_key(client, **body: object) -> str:
    """Create an access key through the admin API and return its value."""
    resp = client.post("/api/admin/access-keys", json=body or None, headers=ADMIN_HEADERS)
    assert resp.status_code == 200, resp.text
    return resp.json()["accessKey"]


@pytest.fixture
def logged_in_client(test_client):
    """A TestClient holding a valid session cookie for a fresh key."""
    key = issue_key(test_client)
    resp = test_client.post(
        "/api/auth/verify", json={"accessKey": key, "deviceFingerprint": "fp-test"}
    )
    assert resp.status_code == 200, resp.text
    test_client.access_key = key
    return test_client
