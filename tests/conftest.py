"""Pytest configuration for the Webflow BFF."""
from __future__ import annotations

import os
from collections.abc import Callable

import httpx
import pytest

TEST_SECRET = "test-secret-for-session-tokens"


def pytest_configure():
    # webflow_bff.main builds a module-level app at import time.
    os.environ.setdefault("JWT_SECRET", TEST_SECRET)


class FakeUpstream:
    """httpx.MockTransport backend that serves canned answers per (method, path).

    A route value may be a single `httpx.Response` or a list consumed in order
    (the last one repeats). Every request is recorded in `calls`.
    """

    def __init__(self, routes: dict[tuple[str, str], object] | None = None) -> None:
        self.routes: dict[tuple[str, str], object] = dict(routes or {})
        self.calls: list[httpx.Request] = []

    def add(self, method: str, path: str, *responses: httpx.Response) -> None:
        self.routes[(method, path)] = list(responses) if len(responses) > 1 else responses[0]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404, json={"message": f"no route for {request.url.path}"})
        if isinstance(answer, list):
            answer = answer.pop(0) if len(answer) > 1 else answer[0]
        # fresh copy so a repeated answer can be read again
        return httpx.Response(answer.status_code, headers=answer.headers, content=answer.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def paths(self) -> list[str]:
        return [c.url.path for c in self.calls]


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings():
    from webflow_bff.config import Settings

    return Settings(jwt_secret=TEST_SECRET, admin_email="admin@example.com")


@pytest.fixture
def delays() -> list[float]:
    return []


@pytest.fixture
def make_client(settings, upstream, delays) -> Callable[..., object]:
    from fastapi.testclient import TestClient

    from webflow_bff.main import create_app
    from webflow_bff.service.credentials import InMemorySessionStore

    async def record_sleep(seconds: float) -> None:
        delays.append(seconds)

    def factory(**overrides):
        app = create_app(
            overrides.pop("settings", settings),
            transport=upstream.transport,
            store=overrides.pop("store", InMemorySessionStore()),
            sleep=record_sleep,
        )
        return TestClient(app)

    return factory


@pytest.fixture
def client(make_client):
    return make_client()
