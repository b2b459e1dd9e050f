# Mock Restaurant Models

from .order import (
    CardInfo,
    CreateOrderRequest,
    DeliveryAddress,
    Order,
    OrderEnvelope,
    OrderItem,
    OrderStatus,
    OrderTracking,
    PaymentMethod,
    PaymentResponse,
    PaymentStatus,
    ProcessCardRequest,
    RegisterCashRequest,
    StatusUpdateRequest,
    UpdateOrderRequest,
)

__all__ = [
    "CardInfo",
    "CreateOrderRequest",
    "DeliveryAddress",
    "Order",
    "OrderEnvelope",
    "OrderItem",
    "OrderStatus",
    "OrderTracking",
    "PaymentMethod",
    "PaymentResponse",
    "PaymentStatus",
    "ProcessCardRequest",
    "RegisterCashRequest",
    "StatusUpdateRequest",
    "UpdateOrderRequest",
]
