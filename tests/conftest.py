"""Shared fixtures for tests."""

from __future__ import annotations

import asyncio
import base64
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest
from Crypto.PublicKey import RSA

from njfu_lib.config import Credentials
from njfu_lib.session import Session

LOGIN_PAGE = """
<html><body>
<form id="casLoginForm" method="post">
  <input type="text" id="username" name="username" value=""/>
  <input type="hidden" name="lt" value="LT-42-abc"/>
  <input type="hidden" name="dllt" value="userNamePasswordLogin"/>
  <input type="hidden" name="execution" value="e1s1"/>
  <input type="hidden" name="_eventId" value="submit"/>
  <input type="hidden" name="rmShown" value="1"/>
  <input type="hidden" id="pwdDefaultEncryptSalt" value="abcdefghijklmnop"/>
</form>
</body></html>
"""

Handler = Callable[[httpx.Request], httpx.Response]


def run(coro):
    return asyncio.run(coro)


class FakeServer:
    """Routes requests by (method, path) to queued responses.

    The last queued response for a route is reused for every later request.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Handler]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, status: int = 200, **kwargs: Any) -> "FakeServer":
        return self.add_handler(method, url, lambda request: httpx.Response(status, **kwargs))

    def add_handler(self, method: str, url: str, handler: Handler) -> "FakeServer":
        key = (method, httpx.URL(url).path)
        self.routes.setdefault(key, []).append(handler)
        return self

    def fail(self, method: str, url: str) -> "FakeServer":
        def raise_connect_error(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)
        return self.add_handler(method, url, raise_connect_error)

    def calls(self, url: str, method: str | None = None) -> List[httpx.Request]:
        path = httpx.URL(url).path
        return [
            r for r in self.requests
            if r.url.path == path and (method is None or r.method == method)
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, text="not found")
        handler = queue.pop(0) if len(queue) > 1 else queue[0]
        return handler(request)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def client(server: FakeServer) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(server), follow_redirects=True)


@pytest.fixture(scope="session")
def rsa_key() -> RSA.RsaKey:
    return RSA.generate(1024)


@pytest.fixture(scope="session")
def public_key_b64(rsa_key: RSA.RsaKey) -> str:
    """Public key the way ic-web serves it: bare base64 DER, no PEM envelope."""
    return base64.b64encode(rsa_key.publickey().export_key(format="DER")).decode()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="2021001", cas_password="edu-secret", booking_password="lib-secret")


@pytest.fixture
def session() -> Session:
    return Session(proxy_ticket="TICKET-1", booking_token="tok-abc", account_number="100200")


def sleep_recorder() -> Tuple[List[float], Callable[[float], Any]]:
    delays: List[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    return delays, fake_sleep
