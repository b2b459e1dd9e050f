import asyncio
import json

import httpx
import pytest

from restaurant_checkout.errors import HardFailureError, ValidationError
from restaurant_checkout.models import OrderStatus, SubmittedOrder
from restaurant_checkout.reconcile import OrderAdminService, StatusReconciler, unwrap_order_body


def local_order(**overrides):
    fields = {
        "id": "o1",
        "order_number": "ORD-000001",
        "status": OrderStatus.PENDING,
        "total": 27.5,
        "items": [{"menuItemId": "a", "name": "Pizza", "price": 10.0, "quantity": 2}],
        "created_at": "2026-10-18T12:00:00",
        "customer_name": "Ana",
    }
    fields.update(overrides)
    return SubmittedOrder(**fields)


@pytest.fixture
def admin(guard, csrf):
    service = OrderAdminService(guard, csrf)
    service.load([local_order()])
    return service


# ==================== Reconciler ====================


def test_intended_status_wins_when_server_omits_it():
    merged = StatusReconciler().apply(local_order(), {"success": True}, OrderStatus.CONFIRMED)

    assert merged.status == OrderStatus.CONFIRMED
    assert merged.customer_name == "Ana"
    assert merged.total == 27.5


def test_intended_status_wins_over_stale_echo():
    merged = StatusReconciler().apply(local_order(), {"data": {"status": "pending"}}, "confirmed")

    assert merged.status == OrderStatus.CONFIRMED


def test_server_fields_override_local_ones():
    response = {"data": {"total": 30.0, "estimatedTime": 25, "customerName": None}}

    merged = StatusReconciler().apply(local_order(), response, OrderStatus.PREPARING)

    assert merged.total == 30.0
    assert merged.extra["estimatedTime"] == 25
    assert merged.customer_name == "Ana"


def test_identity_fields_survive_empty_response():
    merged = StatusReconciler().apply(local_order(authoritative=False), None, OrderStatus.CANCELLED)

    assert merged.id == "o1"
    assert merged.order_number == "ORD-000001"
    assert merged.created_at == "2026-10-18T12:00:00"
    assert merged.items[0]["menuItemId"] == "a"
    assert not merged.authoritative


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"data": {"id": "x"}}, {"id": "x"}),
        ({"order": {"id": "x"}}, {"id": "x"}),
        ({"success": True, "message": "ok", "id": "x"}, {"id": "x"}),
        ("not a dict", {}),
    ],
)
def test_unwrap_order_body(body, expected):
    assert unwrap_order_body(body) == expected


# ==================== Admin service ====================


async def test_change_status_merges_server_answer(admin, backend):
    backend.reply("PUT", "/api/orders/o1/status", 200, json={"success": True, "data": {"id": "o1"}})

    order = await admin.change_status("o1", "confirmed")

    assert order.status == OrderStatus.CONFIRMED
    assert admin.get("o1").status == OrderStatus.CONFIRMED
    request = backend.calls("PUT", "/api/orders/o1/status")[0]
    assert json.loads(request.content) == {"status": "confirmed"}
    assert request.headers["X-CSRF-Token"] == "csrf-1"


async def test_failed_status_change_rolls_back(admin, backend):
    backend.reply("PUT", "/api/orders/o1/status", 500, json={"message": "boom"})

    with pytest.raises(HardFailureError, match=r"Server error \(500\)"):
        await admin.change_status("o1", OrderStatus.READY)

    assert admin.get("o1").status == OrderStatus.PENDING


async def test_unreachable_server_rolls_back(admin, backend):
    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    backend.route("PUT", "/api/orders/o1/status", refused)

    with pytest.raises(HardFailureError, match="No response from server"):
        await admin.change_status("o1", OrderStatus.READY)

    assert admin.get("o1").status == OrderStatus.PENDING


async def test_unknown_order_is_rejected(admin, backend):
    with pytest.raises(HardFailureError, match="Order not found"):
        await admin.change_status("missing", OrderStatus.READY)

    assert backend.calls("PUT", "/api/orders/missing/status") == []


async def test_invalid_status_is_rejected(admin):
    with pytest.raises(ValidationError, match="Invalid order status"):
        await admin.change_status("o1", "teleported")


async def test_cancel(admin, backend):
    backend.reply("POST", "/api/orders/o1/cancel", 200, json={"success": True})

    order = await admin.cancel("o1")

    assert order.status == OrderStatus.CANCELLED


async def test_update_applies_changes(admin, backend):
    backend.reply("PUT", "/api/orders/o1", 200, json={"data": {"id": "o1", "notes": "no onions"}})

    order = await admin.update("o1", {"customerName": "Ana Silva", "notes": "no onions"})

    assert order.customer_name == "Ana Silva"
    assert order.extra["notes"] == "no onions"
    assert order.status == OrderStatus.PENDING


async def test_delete_with_204_removes_from_cache(admin, backend):
    backend.reply("DELETE", "/api/orders/o1", 204)

    assert await admin.delete("o1") is True
    assert admin.get("o1") is None


async def test_delete_forbidden(admin, backend):
    backend.reply("DELETE", "/api/orders/o1", 403, json={"message": "Forbidden"})

    with pytest.raises(HardFailureError, match="Permission denied"):
        await admin.delete("o1")

    assert admin.get("o1") is not None


async def test_fetch_loads_into_cache(guard, csrf, backend):
    admin = OrderAdminService(guard, csrf)
    backend.reply("GET", "/api/orders/o9", 200, json={"success": True, "data": {"id": "o9", "status": "ready"}})

    order = await admin.fetch("o9")

    assert order.status == OrderStatus.READY
    assert admin.get("o9") is order


async def test_track(admin, backend):
    backend.reply("GET", "/api/orders/o1/track", 200, json={"data": {"status": "preparing", "estimatedMinutes": 20}})

    assert await admin.track("o1") == {"status": "preparing", "estimatedMinutes": 20}


async def test_update_with_invalid_status_is_rejected_before_sending(admin, backend):
    with pytest.raises(ValidationError, match="Invalid order status"):
        await admin.update("o1", {"status": "teleported"})

    assert backend.calls("PUT", "/api/orders/o1") == []
    assert admin.get("o1").status == OrderStatus.PENDING


async def test_update_with_status_applies_it(admin, backend):
    backend.reply("PUT", "/api/orders/o1", 200, json={"data": {"id": "o1", "status": "pending"}})

    order = await admin.update("o1", {"status": "ready"})

    assert order.status == OrderStatus.READY


async def test_failed_transition_does_not_undo_a_later_one(admin, backend):
    entered = asyncio.Event()
    release = asyncio.Event()

    async def handler(request):
        if json.loads(request.content)["status"] == "confirmed":
            entered.set()
            await release.wait()
            return httpx.Response(500, json={"message": "boom"})
        return httpx.Response(200, json={"success": True})

    backend.route("PUT", "/api/orders/o1/status", handler)

    slow = asyncio.create_task(admin.change_status("o1", "confirmed"))
    await entered.wait()
    await admin.change_status("o1", "ready")
    release.set()

    with pytest.raises(HardFailureError):
        await slow

    assert admin.get("o1").status == OrderStatus.READY
