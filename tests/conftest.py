import asyncio
from typing import Any, Callable, Optional

import httpx
import pytest

from restaurant_checkout.context import SessionContext
from restaurant_checkout.csrf import CsrfTokenManager
from restaurant_checkout.session import SessionGuard
from restaurant_checkout.storage import MemoryStorage

BASE_URL = "http://testserver"

Handler = Callable[[httpx.Request], Any]


class FakeBackend:
    """Routes MockTransport requests to per-test handlers and records them"""

    def __init__(self):
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []
        self.csrf_issued = 0
        self.route("GET", "/api/csrf-token", self._issue_csrf)

    def _issue_csrf(self, request: httpx.Request) -> httpx.Response:
        self.csrf_issued += 1
        return httpx.Response(200, json={"csrfToken": f"csrf-{self.csrf_issued}"})

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method, path)] = handler

    def reply(self, method: str, path: str, status: int = 200, json: Any = None, content: Optional[bytes] = None) -> None:
        """Always answer a route with the same status and body"""
        def handler(request):
            if content is not None:
                return httpx.Response(status, content=content)
            if json is None:
                return httpx.Response(status)
            return httpx.Response(status, json=json)
        self.route(method, path, handler)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await asyncio.sleep(0)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not found"})
        result = handler(request)
        if asyncio.iscoroutine(result):
            result = await result
        return result


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FailingStorage(MemoryStorage):
    """Reads work, writes raise"""

    def set(self, key, value):
        raise OSError("disk full")

    def remove(self, key):
        raise OSError("disk full")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
async def http_client(backend):
    async with httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(backend)) as client:
        yield client


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def context():
    return SessionContext()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def csrf(http_client, context):
    return CsrfTokenManager(http_client, context)


@pytest.fixture
def guard(http_client, context, csrf, clock):
    return SessionGuard(http_client, context, csrf, clock=clock)


@pytest.fixture
def failing_storage():
    return FailingStorage()
