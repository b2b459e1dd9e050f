"""End-to-end checkout against the mock restaurant app"""

import json
from datetime import date

import httpx
import pytest

from mock_restaurant.database.orders import order_db
from mock_restaurant.main import app
from mock_restaurant.models.order import OrderStatus as ServerOrderStatus
from mock_restaurant.models.order import PaymentStatus as ServerPaymentStatus
from mock_restaurant.security.tokens import token_store
from restaurant_checkout import (
    CardDetails,
    CartItem,
    CheckoutRequest,
    CustomerDetails,
    DeliveryAddress,
    OrderStatus,
    RestaurantClient,
    ValidationError,
)
from restaurant_checkout.config import Settings
from restaurant_checkout.storage import CART_STORAGE_KEY, JsonFileStorage, MemoryStorage

TODAY = date(2026, 10, 18)
CUSTOMER = CustomerDetails(name="Ana Silva", email="ana@example.com", phone="555-0100")
ADDRESS = DeliveryAddress(street="1 Main St", city="Lisbon", state="Lisboa", zip_code="1000-001")


def card(number="4111 1111 1111 1111"):
    return CardDetails(
        card_number=number,
        expiry_month="12",
        expiry_year="28",
        cvc="123",
        holder_name="Ana Silva",
    )


@pytest.fixture(autouse=True)
def reset_server():
    order_db.reset()
    token_store.reset()
    yield
    order_db.reset()
    token_store.reset()


@pytest.fixture
def visited():
    return []


@pytest.fixture
async def client(visited):
    async def navigate(url):
        visited.append(url)

    settings = Settings(api_base_url="http://testserver", register_cash_payments=True)
    async with RestaurantClient(
        settings=settings,
        transport=httpx.ASGITransport(app=app),
        storage=MemoryStorage(),
        navigate=navigate,
        today=lambda: TODAY,
    ) as client:
        client.cart.add(CartItem("pizza", "Margherita", 10.0, 2))
        client.cart.add(CartItem("salad", "Caesar", 5.0, 1))
        yield client


def staff_session(client):
    tokens = token_store.issue_session("staff-1")
    client.session.establish(tokens.access_token, tokens.refresh_token)
    return tokens


# ==================== Checkout ====================


async def test_cash_checkout_creates_order_and_clears_cart(client, visited):
    outcome = await client.checkout(
        CheckoutRequest(customer=CUSTOMER, payment_method="cash", special_instructions="No onions")
    )

    stored = order_db.get_order(outcome.order_id)
    assert stored is not None
    assert stored.table_number == 1
    assert stored.total == 27.5
    assert stored.special_instructions == "No onions"

    assert outcome.order.authoritative
    assert outcome.order.order_number == stored.order_number
    assert outcome.payment.success
    assert outcome.payment.transaction_id.startswith(f"cash_{outcome.order_id}_")
    assert not outcome.payment_pending

    assert client.cart.is_empty()
    assert client.instructions.get() == ""
    assert visited == [f"/order-confirmation/{outcome.order_id}"]
    assert outcome.navigation.succeeded


async def test_delivery_card_checkout(client):
    outcome = await client.checkout(
        CheckoutRequest(
            customer=CUSTOMER,
            payment_method="credit_card",
            is_delivery=True,
            delivery_address=ADDRESS,
            card=card(),
        )
    )

    stored = order_db.get_order(outcome.order_id)
    assert stored.is_delivery
    assert stored.delivery_address.zip_code == "1000-001"
    assert stored.total == 32.5
    assert stored.payment_status == ServerPaymentStatus.PAID
    assert outcome.payment.transaction_id == stored.transaction_id


async def test_declined_card_leaves_order_with_pending_payment(client):
    outcome = await client.checkout(
        CheckoutRequest(customer=CUSTOMER, payment_method="credit_card", card=card("4000 0000 0000 0002"))
    )

    assert outcome.payment_pending
    assert outcome.payment.error == "Card declined"
    assert order_db.get_order(outcome.order_id).payment_status == ServerPaymentStatus.PENDING
    assert client.cart.is_empty()


async def test_invalid_card_creates_no_order(client):
    with pytest.raises(ValidationError, match="exactly 16 digits"):
        await client.checkout(
            CheckoutRequest(customer=CUSTOMER, payment_method="credit_card", card=card("4111"))
        )

    assert order_db.orders == {}
    assert client.cart.count() == 3


async def test_form_errors_are_collected(client):
    request = CheckoutRequest(
        customer=CustomerDetails(name=" ", email="", phone="555"),
        payment_method=None,
        is_delivery=True,
    )

    with pytest.raises(ValidationError) as exc_info:
        await client.checkout(request)

    assert set(exc_info.value.errors) == {
        "name", "email", "address", "city", "region", "postal_code", "payment_method",
    }
    assert order_db.orders == {}


async def test_totals_include_delivery_fee(client):
    assert client.checkout_service.totals().total == 27.5
    assert client.checkout_service.totals(is_delivery=True).total == 32.5


# ==================== Security ====================


async def test_mutation_without_csrf_header_is_rejected():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as raw:
        response = await raw.post("/api/orders", json={})

    assert response.status_code == 403
    assert "CSRF" in response.json()["message"]


async def test_expired_access_token_is_refreshed(client):
    tokens = staff_session(client)
    outcome = await client.checkout(CheckoutRequest(customer=CUSTOMER, payment_method="cash"))
    token_store.expire_access(tokens.access_token)

    order = await client.admin.fetch(outcome.order_id)

    assert order.id == outcome.order_id
    assert client.context.access_token != tokens.access_token
    assert client.context.refresh_token != tokens.refresh_token
    assert client.context.refresh_failures == 0


async def test_logout_revokes_session(client):
    staff_session(client)
    csrf_token = await client.csrf.ensure_token()

    await client.logout()

    assert not client.context.is_authenticated
    assert client.context.logged_out
    assert token_store.access_tokens == {}
    assert csrf_token not in token_store.csrf_tokens


# ==================== Staff operations ====================


async def test_status_change_cancel_and_delete(client):
    staff_session(client)
    outcome = await client.checkout(CheckoutRequest(customer=CUSTOMER, payment_method="cash"))
    client.admin.load([outcome.order])

    order = await client.admin.change_status(outcome.order_id, OrderStatus.PREPARING)
    assert order.status == OrderStatus.PREPARING
    assert order_db.get_order(outcome.order_id).status == ServerOrderStatus.PREPARING

    tracking = await client.admin.track(outcome.order_id)
    assert tracking["status"] == "preparing"
    assert tracking["estimatedMinutes"] == 15

    order = await client.admin.cancel(outcome.order_id)
    assert order.status == OrderStatus.CANCELLED
    assert order_db.get_order(outcome.order_id).status == ServerOrderStatus.CANCELLED

    assert await client.admin.delete(outcome.order_id) is True
    assert client.admin.get(outcome.order_id) is None
    assert order_db.get_order(outcome.order_id) is None


async def test_update_order_details(client):
    staff_session(client)
    outcome = await client.checkout(CheckoutRequest(customer=CUSTOMER, payment_method="cash"))
    client.admin.load([outcome.order])

    order = await client.admin.update(outcome.order_id, {"tableNumber": 7})

    assert order.extra["tableNumber"] == 7
    assert order_db.get_order(outcome.order_id).table_number == 7


async def test_empty_cart_recovers_from_persisted_file(tmp_path):
    path = tmp_path / "client.json"
    settings = Settings(api_base_url="http://testserver")
    async with RestaurantClient(
        settings=settings,
        transport=httpx.ASGITransport(app=app),
        storage=JsonFileStorage(path),
        today=lambda: TODAY,
    ) as client:
        path.write_text(json.dumps({
            CART_STORAGE_KEY: [{"itemId": "lasagna", "name": "Lasagna", "price": 12.0, "quantity": 1}],
        }))

        outcome = await client.checkout(CheckoutRequest(customer=CUSTOMER, payment_method="cash"))

    stored = order_db.get_order(outcome.order_id)
    assert [item.menu_item_id for item in stored.items] == ["lasagna"]
    assert stored.total == 13.2


async def test_infinite_price_is_submitted_as_zero(client):
    client.cart.add(CartItem("water", "Water", float("inf"), 1))

    outcome = await client.checkout(CheckoutRequest(customer=CUSTOMER, payment_method="cash"))

    stored = order_db.get_order(outcome.order_id)
    assert [item.price for item in stored.items if item.menu_item_id == "water"] == [0.0]
    assert stored.total == 27.5
