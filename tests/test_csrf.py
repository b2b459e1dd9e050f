import asyncio

import httpx
import pytest

from restaurant_checkout.errors import SecurityTokenError
from restaurant_checkout.storage import CSRF_STORAGE_KEY


async def test_concurrent_ensure_token_makes_one_request(csrf, backend):
    first, second = await asyncio.gather(csrf.ensure_token(), csrf.ensure_token())

    assert first == second == "csrf-1"
    assert len(backend.calls("GET", "/api/csrf-token")) == 1


async def test_cached_token_is_reused(csrf, backend):
    await csrf.ensure_token()
    token = await csrf.ensure_token()

    assert token == "csrf-1"
    assert backend.csrf_issued == 1


async def test_fresh_discards_cached_token(csrf, backend):
    await csrf.ensure_token()
    token = await csrf.ensure_token(fresh=True)

    assert token == "csrf-2"
    assert backend.csrf_issued == 2


async def test_concurrent_fresh_requests_share_one_fetch(csrf, backend):
    await csrf.ensure_token()
    tokens = await asyncio.gather(
        csrf.ensure_token(fresh=True),
        csrf.ensure_token(fresh=True),
        csrf.ensure_token(),
    )

    assert set(tokens) == {"csrf-2"}
    assert backend.csrf_issued == 2


async def test_token_request_busts_caches(csrf, backend):
    await csrf.ensure_token()
    request = backend.calls("GET", "/api/csrf-token")[0]

    assert request.url.params["forceRefresh"] == "true"
    assert "_t" in request.url.params
    assert "no-cache" in request.headers["Cache-Control"]


async def test_falls_back_to_cookie_when_endpoint_has_no_token(csrf, backend):
    backend.route(
        "GET",
        "/api/csrf-token",
        lambda request: httpx.Response(
            200,
            json={"status": "success"},
            headers={"Set-Cookie": "XSRF-TOKEN=from-cookie; Path=/"},
        ),
    )

    assert await csrf.ensure_token() == "from-cookie"


async def test_falls_back_to_cookie_when_endpoint_unreachable(csrf, backend, http_client):
    http_client.cookies.set("XSRF-TOKEN", "cookie-token")

    def unreachable(request):
        raise httpx.ConnectError("down", request=request)

    backend.route("GET", "/api/csrf-token", unreachable)

    assert await csrf.ensure_token() == "cookie-token"


async def test_raises_when_no_source_has_a_token(csrf, backend):
    backend.reply("GET", "/api/csrf-token", 500, json={"message": "boom"})

    with pytest.raises(SecurityTokenError):
        await csrf.ensure_token()


async def test_token_cached_in_session_storage(csrf, context):
    await csrf.ensure_token()

    assert csrf.session_storage.get(CSRF_STORAGE_KEY) == "csrf-1"

    context.csrf_token = None
    assert csrf.cached_token() == "csrf-1"


async def test_attach_sets_every_header_name(csrf):
    await csrf.ensure_token()

    headers = csrf.attach({"Accept": "application/json"})

    assert headers == {
        "Accept": "application/json",
        "X-CSRF-Token": "csrf-1",
        "X-XSRF-TOKEN": "csrf-1",
    }


async def test_clear_forgets_token(csrf, http_client):
    await csrf.ensure_token()
    http_client.cookies.set("XSRF-TOKEN", "cookie-token")

    csrf.clear()

    assert csrf.cached_token() is None
    assert csrf.cookie_token() is None
    assert csrf.attach({}) == {}
