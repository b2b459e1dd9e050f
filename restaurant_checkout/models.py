"""Checkout Data Models"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    """Order lifecycle status (server is authoritative)"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    MOBILE_PAYMENT = "mobile_payment"
    DEBIT_CARD = "debit_card"
    ONLINE = "online"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class DeliveryType(str, Enum):
    # The backend requires this field regardless of actual delivery mode
    STANDARD = "STANDARD"


def safe_amount(value: Any) -> float:
    """Coerce to a finite float, 0.0 otherwise"""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


@dataclass
class CartItem:
    """Line item held by the cart"""
    item_id: str
    name: str
    price: float
    quantity: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartItem":
        return cls(
            item_id=str(data["itemId"]),
            name=str(data["name"]),
            price=float(data["price"]),
            quantity=int(data["quantity"]),
        )


@dataclass(frozen=True)
class OrderItem:
    """Line item as sent to the order endpoint"""
    menu_item_id: str
    name: str
    price: float
    quantity: int
    special_instructions: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "menuItemId": self.menu_item_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }
        if self.special_instructions:
            payload["specialInstructions"] = self.special_instructions
        return payload

    @classmethod
    def from_cart_item(cls, item: CartItem) -> "OrderItem":
        return cls(
            menu_item_id=item.item_id,
            name=item.name,
            price=item.price,
            quantity=item.quantity,
        )


@dataclass(frozen=True)
class DeliveryAddress:
    street: str
    city: str
    state: str
    zip_code: str
    additional_info: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
        }
        if self.additional_info:
            payload["additionalInfo"] = self.additional_info
        return payload


@dataclass(frozen=True)
class CustomerDetails:
    """Contact fields collected on the checkout form"""
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class OrderTotals:
    subtotal: float
    tax: float
    total: float


def compute_totals(
    subtotal: float,
    tax_rate: float,
    delivery_fee: float = 0.0,
    is_delivery: bool = False,
) -> OrderTotals:
    """Tax and grand total for a subtotal; non-finite inputs count as zero"""
    subtotal = safe_amount(subtotal)
    tax = safe_amount(subtotal * tax_rate)
    total = subtotal + tax + (safe_amount(delivery_fee) if is_delivery else 0.0)
    return OrderTotals(
        subtotal=subtotal,
        tax=round(tax, 2),
        total=round(safe_amount(total), 2),
    )


@dataclass(frozen=True)
class DraftOrder:
    """Order payload built once per checkout attempt"""
    customer_name: str
    contact_phone: str
    email: str
    items: tuple[OrderItem, ...]
    is_delivery: bool
    payment_method: PaymentMethod
    subtotal: float
    tax: float
    total: float
    delivery_address: Optional[DeliveryAddress] = None
    table_number: Optional[int] = None
    special_instructions: str = ""

    @classmethod
    def from_cart(
        cls,
        items: list[CartItem],
        customer: CustomerDetails,
        payment_method: PaymentMethod,
        tax_rate: float,
        delivery_fee: float = 0.0,
        is_delivery: bool = False,
        delivery_address: Optional[DeliveryAddress] = None,
        table_number: Optional[int] = None,
        special_instructions: str = "",
    ) -> "DraftOrder":
        """
        Build a draft from cart items.

        Dine-in orders without a table default to table 1.
        """
        order_items = tuple(OrderItem.from_cart_item(item) for item in items)
        subtotal = sum(safe_amount(item.price) * item.quantity for item in order_items)
        totals = compute_totals(subtotal, tax_rate, delivery_fee, is_delivery)

        if not is_delivery and table_number is None:
            table_number = 1

        return cls(
            customer_name=customer.name,
            contact_phone=customer.phone,
            email=customer.email,
            items=order_items,
            is_delivery=is_delivery,
            payment_method=payment_method,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
            delivery_address=delivery_address if is_delivery else None,
            table_number=None if is_delivery else table_number,
            special_instructions=special_instructions,
        )

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "customerName": self.customer_name,
            "contactPhone": self.contact_phone,
            "email": self.email,
            "items": [item.to_payload() for item in self.items],
            "isDelivery": self.is_delivery,
            "paymentMethod": self.payment_method.value,
            "specialInstructions": self.special_instructions,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
            "deliveryType": DeliveryType.STANDARD.value,
            "delivery_type": DeliveryType.STANDARD.value,
        }
        if self.is_delivery and self.delivery_address:
            payload["deliveryAddress"] = self.delivery_address.to_payload()
        else:
            payload["tableNumber"] = self.table_number
        return payload


def parse_status(value: Any) -> OrderStatus:
    """Server status string to enum, pending when unknown"""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).lower())
    except ValueError:
        logger.warning(f"Unknown order status {value!r}, treating as pending")
        return OrderStatus.PENDING


@dataclass
class SubmittedOrder:
    """
    Order as known to the client after submission.

    `authoritative` is False when the id was synthesized client-side.
    Fields the client does not model are kept in `extra`.
    """
    id: str
    order_number: str
    status: OrderStatus = OrderStatus.PENDING
    total: float = 0.0
    items: list[dict[str, Any]] = field(default_factory=list)
    created_at: Optional[str] = None
    customer_name: Optional[str] = None
    authoritative: bool = True
    extra: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def default_order_number(order_id: str) -> str:
        return f"ORD-{order_id[-6:]}"

    @classmethod
    def from_payload(
        cls,
        data: dict[str, Any],
        order_id: Optional[str] = None,
        authoritative: bool = True,
    ) -> "SubmittedOrder":
        """Normalize a server order object"""
        resolved_id = str(order_id or data.get("id") or data.get("_id") or "")
        total = data.get("total") or data.get("totalPrice") or 0
        known = {
            "id", "_id", "orderNumber", "status", "total", "totalPrice",
            "items", "createdAt", "customerName",
        }
        return cls(
            id=resolved_id,
            order_number=data.get("orderNumber") or cls.default_order_number(resolved_id),
            status=parse_status(data.get("status") or OrderStatus.PENDING),
            total=safe_amount(total),
            items=list(data.get("items") or []),
            created_at=data.get("createdAt"),
            customer_name=data.get("customerName"),
            authoritative=authoritative,
            extra={k: v for k, v in data.items() if k not in known},
        )

    @classmethod
    def synthesized(cls, order_id: str, draft: Optional[DraftOrder] = None) -> "SubmittedOrder":
        """Order record for a client-synthesized fallback id"""
        return cls(
            id=order_id,
            order_number=cls.default_order_number(order_id),
            total=draft.total if draft else 0.0,
            items=[item.to_payload() for item in draft.items] if draft else [],
            customer_name=draft.customer_name if draft else None,
            authoritative=False,
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "orderNumber": self.order_number,
            "status": self.status.value,
            "total": self.total,
            "items": self.items,
            "createdAt": self.created_at,
            "customerName": self.customer_name,
        })
        return data


@dataclass
class CardDetails:
    """Raw card form input; the full number never leaves the client"""
    card_number: str = field(repr=False)
    expiry_month: str
    expiry_year: str
    cvc: str = field(repr=False)
    holder_name: str


@dataclass
class PaymentResult:
    """Outcome of a payment attempt"""
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    simulated: bool = False  # success assumed without server confirmation

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "transactionId": self.transaction_id,
            "error": self.error,
            "simulated": self.simulated,
        }
