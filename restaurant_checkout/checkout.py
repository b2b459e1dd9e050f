"""
Checkout Service

End-to-end checkout: form validation, card pre-check, order submission,
payment, cart cleanup and the redirect to the confirmation view.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Union

from .cart import CartStore
from .errors import CheckoutError, ValidationError
from .models import (
    CardDetails,
    CustomerDetails,
    DeliveryAddress,
    DraftOrder,
    OrderTotals,
    PaymentMethod,
    PaymentResult,
    SubmittedOrder,
    compute_totals,
)
from .navigation import ConfirmationNavigator, NavigationResult
from .orders import OrderSubmissionOrchestrator
from .payments import PaymentProcessor, validate_card
from .storage import InstructionsStore

logger = logging.getLogger(__name__)


@dataclass
class CheckoutRequest:
    """Everything the checkout form collects"""
    customer: CustomerDetails
    payment_method: Optional[Union[PaymentMethod, str]]
    is_delivery: bool = False
    delivery_address: Optional[DeliveryAddress] = None
    table_number: Optional[int] = None
    special_instructions: Optional[str] = None  # None means use the saved text
    card: Optional[CardDetails] = None


@dataclass
class CheckoutOutcome:
    """Result of a checkout that produced an order"""
    order: SubmittedOrder
    payment: PaymentResult
    navigation: Optional[NavigationResult] = None

    @property
    def order_id(self) -> str:
        return self.order.id

    @property
    def payment_pending(self) -> bool:
        return not self.payment.success


def _blank(value: Optional[str]) -> bool:
    return not value or not str(value).strip()


class CheckoutService:
    """Drives one checkout attempt across cart, orders and payments"""

    def __init__(
        self,
        cart: CartStore,
        orders: OrderSubmissionOrchestrator,
        payments: PaymentProcessor,
        instructions: InstructionsStore,
        tax_rate: float = 0.1,
        delivery_fee: float = 5.0,
        navigator: Optional[ConfirmationNavigator] = None,
        today: Callable[[], date] = date.today,
    ):
        self.cart = cart
        self.orders = orders
        self.payments = payments
        self.instructions = instructions
        self.tax_rate = tax_rate
        self.delivery_fee = delivery_fee
        self.navigator = navigator
        self._today = today

    def totals(self, is_delivery: bool = False) -> OrderTotals:
        """Current cart totals as shown on the checkout page"""
        return compute_totals(self.cart.subtotal(), self.tax_rate, self.delivery_fee, is_delivery)

    def save_instructions(self, text: str) -> None:
        self.instructions.set(text)

    def validate_form(self, request: CheckoutRequest) -> PaymentMethod:
        """
        Check the contact, delivery and payment fields.

        Returns:
            The selected payment method

        Raises:
            ValidationError: Carries every failing field in `errors`
        """
        errors = {}
        customer = request.customer

        if _blank(customer.name):
            errors["name"] = "Name is required"
        if _blank(customer.email):
            errors["email"] = "Email is required"
        if _blank(customer.phone):
            errors["phone"] = "Phone is required"

        if request.is_delivery:
            address = request.delivery_address
            if address is None or _blank(address.street):
                errors["address"] = "Address is required"
            if address is None or _blank(address.city):
                errors["city"] = "City is required"
            if address is None or _blank(address.state):
                errors["region"] = "Region is required"
            if address is None or _blank(address.zip_code):
                errors["postal_code"] = "Postal code is required"

        method = None
        if not request.payment_method:
            errors["payment_method"] = "Payment method is required"
        else:
            try:
                method = PaymentMethod(request.payment_method)
            except ValueError:
                errors["payment_method"] = "Invalid payment method"

        if errors:
            field, message = next(iter(errors.items()))
            raise ValidationError(message, field=field, errors=errors)

        return method

    def build_draft(self, request: CheckoutRequest, method: PaymentMethod) -> DraftOrder:
        instructions = request.special_instructions
        if instructions is None:
            instructions = self.instructions.get()

        return DraftOrder.from_cart(
            self.cart.items,
            customer=request.customer,
            payment_method=method,
            tax_rate=self.tax_rate,
            delivery_fee=self.delivery_fee,
            is_delivery=request.is_delivery,
            delivery_address=request.delivery_address,
            table_number=request.table_number,
            special_instructions=instructions,
        )

    async def checkout(self, request: CheckoutRequest) -> CheckoutOutcome:
        """
        Run a checkout attempt.

        Once an order id exists the attempt completes: a failed payment is
        reported as pending rather than raised, and the cart is cleared.

        Args:
            request: Form input

        Returns:
            Order, payment result and navigation outcome

        Raises:
            ValidationError: Form or card input is invalid (nothing was sent)
            CheckoutError: Order creation failed
        """
        method = self.validate_form(request)

        if method == PaymentMethod.CREDIT_CARD:
            if request.card is None:
                raise ValidationError("Card details are required", field="card_number")
            validate_card(request.card, self._today())

        if request.special_instructions is not None:
            self.save_instructions(request.special_instructions)

        draft = self.build_draft(request, method)
        order = await self.orders.submit_order(draft)

        try:
            payment = await self.payments.pay(
                order.id,
                method,
                details=request.card,
                amount=order.total or draft.total,
                is_delivery=draft.is_delivery,
            )
        except CheckoutError as e:
            logger.error(f"Payment for order {order.id} failed: {e}")
            payment = PaymentResult(success=False, error=e.message)

        if not payment.success:
            logger.warning(f"Order {order.id} created but payment is pending: {payment.error}")

        self.cart.clear()
        self.instructions.clear()

        navigation = None
        if self.navigator is not None:
            navigation = await self.navigator.go_to_confirmation(order.id)

        return CheckoutOutcome(order=order, payment=payment, navigation=navigation)
