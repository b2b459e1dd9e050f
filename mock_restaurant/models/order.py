"""Order and payment models for the mock restaurant"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
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


class CamelModel(BaseModel):
    """Accepts and emits camelCase JSON"""
    model_config = ConfigDict(populate_by_name=True)


class OrderItem(CamelModel):
    """Line item in an order"""
    menu_item_id: str = Field(alias="menuItemId")
    name: str
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")


class DeliveryAddress(CamelModel):
    street: str
    city: str
    state: str
    zip_code: str = Field(alias="zipCode")
    additional_info: Optional[str] = Field(default=None, alias="additionalInfo")


class CreateOrderRequest(CamelModel):
    """Order as submitted by the checkout page"""
    customer_name: str = Field(alias="customerName")
    contact_phone: str = Field(alias="contactPhone")
    email: str
    items: list[OrderItem]
    is_delivery: bool = Field(default=False, alias="isDelivery")
    delivery_address: Optional[DeliveryAddress] = Field(default=None, alias="deliveryAddress")
    table_number: Optional[int] = Field(default=None, alias="tableNumber")
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH, alias="paymentMethod")
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")
    subtotal: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    delivery_type: Optional[str] = Field(default=None, alias="deliveryType")


class UpdateOrderRequest(CamelModel):
    """Partial order update from staff views"""
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    contact_phone: Optional[str] = Field(default=None, alias="contactPhone")
    table_number: Optional[int] = Field(default=None, alias="tableNumber")
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")
    status: Optional[OrderStatus] = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class Order(CamelModel):
    """Stored order"""
    id: str
    order_number: str = Field(alias="orderNumber")
    status: OrderStatus = OrderStatus.PENDING
    customer_name: str = Field(alias="customerName")
    contact_phone: str = Field(alias="contactPhone")
    email: str
    items: list[OrderItem]
    is_delivery: bool = Field(default=False, alias="isDelivery")
    delivery_address: Optional[DeliveryAddress] = Field(default=None, alias="deliveryAddress")
    table_number: Optional[int] = Field(default=None, alias="tableNumber")
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, alias="paymentStatus")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")
    subtotal: float
    tax: float
    total: float
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class OrderEnvelope(BaseModel):
    """Standard response wrapper for order mutations"""
    success: bool = True
    message: str
    data: Order


class OrderTracking(CamelModel):
    order_id: str = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    status: OrderStatus
    estimated_minutes: int = Field(alias="estimatedMinutes")
    updated_at: datetime = Field(alias="updatedAt")


class CardInfo(CamelModel):
    """Card metadata; the full number is never sent"""
    card_number_last4: str = Field(alias="cardNumberLast4", pattern=r"^\d{4}$")
    card_token: str = Field(alias="cardToken")
    exp_month: str = Field(alias="expMonth")
    exp_year: str = Field(alias="expYear")
    cardholder_name: str = Field(alias="cardholderName")


class ProcessCardRequest(CamelModel):
    order_id: str = Field(alias="orderId")
    amount: float = Field(gt=0)
    currency: str = Field(default="EUR", pattern=r"^[A-Z]{3}$")
    card_info: CardInfo = Field(alias="cardInfo")
    is_delivery: bool = Field(default=False, alias="isDelivery")
    delivery_type: Optional[str] = Field(default=None, alias="deliveryType")


class RegisterCashRequest(CamelModel):
    order_id: str = Field(alias="orderId")
    amount: float = 0.0
    currency: str = "EUR"
    transaction_id: str = Field(alias="transactionId")
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH, alias="paymentMethod")


class PaymentResponse(CamelModel):
    success: bool
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    message: Optional[str] = None
