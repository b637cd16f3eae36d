from __future__ import annotations

import json
from collections.abc import Callable
from io import BytesIO
from typing import Any
from urllib.parse import urlsplit

import pytest
from PIL import Image

from remote_browser.client import WebDriverClient
from remote_browser.http_client import HttpClientError, HttpResponse
from remote_browser.wait import ConditionPoller

Handler = Callable[[Any], HttpResponse]


def json_response(value: Any, status: int = 200) -> HttpResponse:
    return HttpResponse(status=status, body=json.dumps({"value": value}).encode())


def error_response(status: int, message: str, error: str = "unknown error") -> HttpResponse:
    body = {"value": {"error": error, "message": message, "stacktrace": ""}}
    return HttpResponse(status=status, body=json.dumps(body).encode())


class StubTransport:
    """Records every request and answers from per-route handlers."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Any]] = []
        self.routes: dict[tuple[str, str], Handler] = {}

    def on(self, method: str, path: str, response: HttpResponse | Handler | Exception) -> None:
        if isinstance(response, HttpResponse):
            self.routes[(method, path)] = lambda _payload: response
        elif isinstance(response, Exception):

            def _raise(_payload: Any) -> HttpResponse:
                raise response

            self.routes[(method, path)] = _raise
        else:
            self.routes[(method, path)] = response

    def request(self, method: str, url: str, payload: Any = None) -> HttpResponse:
        self.calls.append((method, url, payload))
        path = urlsplit(url).path
        handler = self.routes.get((method, path))
        if handler is None:
            raise HttpClientError(f"no stub route for {method} {path}")
        return handler(payload)

    def paths(self) -> list[str]:
        return [urlsplit(url).path for _method, url, _payload in self.calls]


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def png_bytes(size: tuple[int, int], color: tuple[int, int, int, int] = (0, 0, 0, 255)) -> bytes:
    buf = BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(transport: StubTransport, clock: FakeClock) -> WebDriverClient:
    """Client with a live session "s1"; the create call is not kept in transport.calls."""
    poller = ConditionPoller(interval=0.1, timeout=1.0, clock=clock, sleep=clock.sleep)
    c = WebDriverClient("http://driver.test", transport=transport, poller=poller, sleep=clock.sleep)
    transport.on("POST", "/session", json_response({"sessionId": "s1", "capabilities": {"browserName": "Safari"}}))
    c.create_session({"browserName": "Safari"})
    transport.calls.clear()
    return c
