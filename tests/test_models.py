from restaurant_checkout.models import (
    CartItem,
    CustomerDetails,
    DeliveryAddress,
    DraftOrder,
    OrderStatus,
    PaymentMethod,
    SubmittedOrder,
    compute_totals,
)

CUSTOMER = CustomerDetails(name="Ana", email="ana@example.com", phone="555-0100")
ITEMS = [CartItem("a", "Pizza", 10.0, 2), CartItem("b", "Salad", 5.0, 1)]


def test_totals_with_ten_percent_tax():
    totals = compute_totals(25, tax_rate=0.1)

    assert totals.subtotal == 25
    assert totals.tax == 2.5
    assert totals.total == 27.5


def test_delivery_fee_only_applies_to_delivery():
    assert compute_totals(25, 0.1, delivery_fee=5, is_delivery=True).total == 32.5
    assert compute_totals(25, 0.1, delivery_fee=5, is_delivery=False).total == 27.5


def test_non_finite_totals_become_zero():
    totals = compute_totals(float("nan"), 0.1)

    assert (totals.subtotal, totals.tax, totals.total) == (0.0, 0.0, 0.0)


def test_dine_in_draft_defaults_to_table_one():
    draft = DraftOrder.from_cart(ITEMS, CUSTOMER, PaymentMethod.CASH, tax_rate=0.1)
    payload = draft.to_payload()

    assert draft.total == 27.5
    assert payload["tableNumber"] == 1
    assert "deliveryAddress" not in payload
    assert payload["deliveryType"] == "STANDARD"
    assert payload["delivery_type"] == "STANDARD"
    assert payload["items"][0] == {"menuItemId": "a", "name": "Pizza", "price": 10.0, "quantity": 2}


def test_delivery_draft_carries_address_and_fee():
    address = DeliveryAddress("1 Main St", "Lisbon", "Lisboa", "1000-001")
    draft = DraftOrder.from_cart(
        ITEMS,
        CUSTOMER,
        PaymentMethod.CREDIT_CARD,
        tax_rate=0.1,
        delivery_fee=5,
        is_delivery=True,
        delivery_address=address,
    )
    payload = draft.to_payload()

    assert payload["isDelivery"] is True
    assert payload["deliveryAddress"]["zipCode"] == "1000-001"
    assert "tableNumber" not in payload
    assert payload["total"] == 32.5
    assert payload["paymentMethod"] == "credit_card"


def test_submitted_order_normalization():
    order = SubmittedOrder.from_payload({"id": "abcdef123456", "totalPrice": 19.9})

    assert order.total == 19.9
    assert order.status == OrderStatus.PENDING
    assert order.order_number == "ORD-123456"


def test_submitted_order_keeps_unknown_fields():
    order = SubmittedOrder.from_payload(
        {"id": "1", "status": "ready", "tableNumber": 4, "orderNumber": "ORD-9"}
    )

    assert order.status == OrderStatus.READY
    assert order.to_dict()["tableNumber"] == 4
    assert order.to_dict()["orderNumber"] == "ORD-9"


def test_unknown_status_falls_back_to_pending():
    assert SubmittedOrder.from_payload({"id": "1", "status": "teleported"}).status == OrderStatus.PENDING
