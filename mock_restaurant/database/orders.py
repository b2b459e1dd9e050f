"""Order storage for mock restaurant"""

import uuid
from datetime import datetime
from typing import Optional

from ..models.order import (
    CreateOrderRequest,
    Order,
    OrderStatus,
    PaymentStatus,
    UpdateOrderRequest,
)

PREP_MINUTES = {
    OrderStatus.PENDING: 30,
    OrderStatus.CONFIRMED: 25,
    OrderStatus.PREPARING: 15,
    OrderStatus.READY: 5,
}


class OrderDatabase:
    """In-memory order storage"""

    def __init__(self):
        self.orders: dict[str, Order] = {}

    def create_order(self, request: CreateOrderRequest) -> Order:
        """Create an order from a checkout submission"""
        now = datetime.utcnow()
        order_id = uuid.uuid4().hex[:24]

        order = Order(
            id=order_id,
            order_number=f"ORD-{order_id[-6:].upper()}",
            status=OrderStatus.PENDING,
            customer_name=request.customer_name,
            contact_phone=request.contact_phone,
            email=request.email,
            items=request.items,
            is_delivery=request.is_delivery,
            delivery_address=request.delivery_address if request.is_delivery else None,
            table_number=None if request.is_delivery else (request.table_number or 1),
            payment_method=request.payment_method,
            special_instructions=request.special_instructions,
            subtotal=request.subtotal,
            tax=request.tax,
            total=request.total,
            created_at=now,
            updated_at=now,
        )

        self.orders[order.id] = order
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        """Get an order by ID"""
        return self.orders.get(order_id)

    def update_status(self, order_id: str, status: OrderStatus) -> Optional[Order]:
        """Update order status"""
        order = self.get_order(order_id)
        if not order:
            return None

        order.status = status
        order.updated_at = datetime.utcnow()
        return order

    def update_order(self, order_id: str, changes: UpdateOrderRequest) -> Optional[Order]:
        """Apply the fields present in a partial update"""
        order = self.get_order(order_id)
        if not order:
            return None

        for field, value in changes.model_dump(exclude_unset=True).items():
            setattr(order, field, value)
        order.updated_at = datetime.utcnow()
        return order

    def record_payment(self, order_id: str, transaction_id: str) -> Optional[Order]:
        """Mark an order as paid"""
        order = self.get_order(order_id)
        if not order:
            return None

        order.payment_status = PaymentStatus.PAID
        order.transaction_id = transaction_id
        order.updated_at = datetime.utcnow()
        return order

    def estimated_minutes(self, order: Order) -> int:
        return PREP_MINUTES.get(order.status, 0)

    def delete_order(self, order_id: str) -> bool:
        """Delete an order"""
        if order_id in self.orders:
            del self.orders[order_id]
            return True
        return False

    def list_orders(self, limit: int = 50) -> list[Order]:
        """List recent orders"""
        orders = list(self.orders.values())
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[:limit]

    def reset(self) -> None:
        self.orders.clear()


# Singleton instance
order_db = OrderDatabase()
