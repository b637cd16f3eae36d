from __future__ import annotations

import http.client
import json
import urllib.parse
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import HTTPHandler, HTTPSHandler, Request, build_opener

USER_AGENT = "remote-browser/1.0"


class HttpClientError(Exception):
    pass


@dataclass
class HttpResponse:
    status: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


class Transport(Protocol):
    def request(self, method: str, url: str, payload: Any = None) -> HttpResponse: ...


def _build_request(method: str, url: str, payload: Any) -> Request:
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    data: bytes | None = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        headers["Content-Type"] = "application/json; charset=utf-8"
    return Request(url, data=data, headers=headers, method=method)


class UrllibTransport:
    """JSON-over-HTTP exchange with the automation endpoint.

    Non-2xx responses come back as regular HttpResponse values; only failures
    of the exchange itself raise HttpClientError.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout
        self._opener = build_opener(HTTPHandler(), HTTPSHandler())

    def request(self, method: str, url: str, payload: Any = None) -> HttpResponse:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise HttpClientError("Only http/https are supported")
        req = _build_request(method, url, payload)
        try:
            with self._opener.open(req, timeout=self.timeout) as resp:
                return HttpResponse(status=resp.status, body=resp.read())
        except HTTPError as exc:
            body = exc.read() if exc.fp is not None else b""
            return HttpResponse(status=exc.code, body=body)
        except (TimeoutError, URLError, ConnectionError, http.client.HTTPException) as exc:
            raise HttpClientError(str(exc)) from exc
