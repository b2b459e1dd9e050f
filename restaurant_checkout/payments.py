"""
Payment Processor

Captures payment against a resolved order id. Card details are validated
locally and only the last four digits plus a client token are sent.
"""

import logging
import math
import re
from datetime import date
from typing import Any, Callable, Optional, Union

import httpx

from .csrf import CsrfTokenManager
from .errors import CheckoutError, SecurityTokenError, ValidationError, parse_json, response_message
from .models import CardDetails, DeliveryType, PaymentMethod, PaymentResult
from .policy import OptimisticSuccessPolicy, OutcomePolicy, synthesize_transaction_id, timestamp_ms
from .session import SessionGuard

logger = logging.getLogger(__name__)

PROCESS_CARD_PATH = "/api/payments/process-card"
REGISTER_CASH_PATH = "/api/payments/register-cash"

CVC_PATTERN = re.compile(r"\d{3,4}")


def validate_card(card: CardDetails, today: Optional[date] = None) -> str:
    """
    Check card fields before anything is sent.

    Args:
        card: Raw form input
        today: Reference date for the expiry check

    Returns:
        The card number with separators stripped

    Raises:
        ValidationError: First invalid field, with a user-facing message
    """
    digits = re.sub(r"\D", "", card.card_number or "")
    if len(digits) != 16:
        raise ValidationError("Card number must be exactly 16 digits", field="card_number")

    if not card.holder_name or len(card.holder_name.strip()) < 2:
        raise ValidationError("Valid cardholder name is required", field="holder_name")

    try:
        month = int(card.expiry_month)
        year = int(card.expiry_year)
    except (TypeError, ValueError):
        raise ValidationError("Invalid expiry date format", field="expiry") from None

    if not 1 <= month <= 12:
        raise ValidationError("Invalid expiry date format", field="expiry")

    # two-digit years are 20xx
    if year < 100:
        year += 2000

    today = today or date.today()
    if (year, month) < (today.year, today.month):
        raise ValidationError("Card is expired", field="expiry")

    if not CVC_PATTERN.fullmatch((card.cvc or "").strip()):
        raise ValidationError("CVC must be 3-4 digits", field="cvc")

    return digits


class PaymentProcessor:
    """Card and cash payments for created orders"""

    def __init__(
        self,
        guard: SessionGuard,
        csrf: CsrfTokenManager,
        policy: Optional[OutcomePolicy] = None,
        register_cash_payments: bool = False,
        currency: str = "EUR",
        today: Callable[[], date] = date.today,
    ):
        self.guard = guard
        self.csrf = csrf
        self.policy = policy or OptimisticSuccessPolicy()
        self.currency = currency
        self.register_cash_payments = register_cash_payments
        self._today = today

    async def pay(
        self,
        order_id: str,
        method: Union[PaymentMethod, str],
        details: Optional[CardDetails] = None,
        amount: float = 0.0,
        is_delivery: bool = False,
    ) -> PaymentResult:
        """
        Pay for an order.

        Args:
            order_id: Id returned by order submission
            method: Payment method
            details: Card input, required for credit card
            amount: Amount to capture
            is_delivery: Whether the order is delivered

        Returns:
            Payment result

        Raises:
            ValidationError: Unknown method or invalid card fields
        """
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise ValidationError("Invalid payment method", field="payment_method") from None

        if method == PaymentMethod.CREDIT_CARD:
            if details is None:
                raise ValidationError("Card details are required", field="card_number")
            return await self.pay_by_card(order_id, details, amount, is_delivery)

        if method == PaymentMethod.CASH:
            return await self.pay_cash(order_id, amount)

        # collected out-of-band at the counter or on delivery
        transaction_id = f"{method.value}_{order_id}_{timestamp_ms()}"
        logger.info(f"Recorded {method.value} payment intent for order {order_id}")
        return PaymentResult(success=True, transaction_id=transaction_id)

    # ==================== Card ====================

    async def pay_by_card(
        self,
        order_id: str,
        card: CardDetails,
        amount: float,
        is_delivery: bool = False,
    ) -> PaymentResult:
        """Validate the card, then capture the amount"""
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or math.isnan(amount) or amount <= 0:
            return PaymentResult(success=False, error="Invalid payment amount")

        digits = validate_card(card, self._today())
        last4 = digits[-4:]

        try:
            await self.csrf.ensure_token(fresh=True)
        except SecurityTokenError as e:
            logger.warning(f"Proceeding without a fresh CSRF token: {e}")

        payload = {
            "orderId": order_id,
            "amount": amount,
            "currency": self.currency,
            "deliveryType": DeliveryType.STANDARD.value,
            "isDelivery": is_delivery,
            "cardInfo": {
                "cardNumberLast4": last4,
                "cardToken": f"tok_{timestamp_ms()}_{last4}",
                "expMonth": str(card.expiry_month),
                "expYear": str(card.expiry_year),
                "cardholderName": card.holder_name.strip(),
            },
        }

        logger.info(
            f"Processing card payment for order {order_id}: "
            f"{amount} {self.currency} on card ending {last4}"
        )

        try:
            response = await self.guard.request("POST", PROCESS_CARD_PATH, json=payload)
        except httpx.TransportError as e:
            return self.policy.resolve_payment("simulated", type(e).__name__, cause=e)

        return self._interpret(response, order_id)

    def _interpret(self, response: httpx.Response, order_id: str) -> PaymentResult:
        body = parse_json(response)

        if response.is_success:
            if body is None:
                return self.policy.resolve_payment("fallback", "unparseable response body")

            transaction_id = _find_transaction_id(body) or synthesize_transaction_id("tx")
            logger.info(f"Payment captured for order {order_id}: {transaction_id}")
            return PaymentResult(success=True, transaction_id=transaction_id)

        error = response_message(response) or f"Payment failed with status {response.status_code}"
        logger.error(f"Payment failed for order {order_id}: {response.status_code} - {error}")
        return PaymentResult(success=False, error=error)

    # ==================== Cash ====================

    async def pay_cash(self, order_id: str, amount: float = 0.0) -> PaymentResult:
        """
        Cash is collected out-of-band, so this always succeeds.

        Registration with the server, when enabled, is best effort.
        """
        transaction_id = f"cash_{order_id}_{timestamp_ms()}"

        if self.register_cash_payments:
            try:
                await self.csrf.ensure_token(fresh=True)
                response = await self.guard.request(
                    "POST",
                    REGISTER_CASH_PATH,
                    json={
                        "orderId": order_id,
                        "amount": amount,
                        "currency": self.currency,
                        "transactionId": transaction_id,
                        "paymentMethod": PaymentMethod.CASH.value,
                    },
                )
                if not response.is_success:
                    logger.warning(
                        f"Cash registration for order {order_id} returned {response.status_code}"
                    )
            except (httpx.HTTPError, CheckoutError) as e:
                logger.warning(f"Cash registration failed for order {order_id}: {e}")

        logger.info(f"Cash payment of {amount} {self.currency} recorded for order {order_id}")
        return PaymentResult(success=True, transaction_id=transaction_id)


def _find_transaction_id(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    for candidate in (body, body.get("data")):
        if isinstance(candidate, dict) and candidate.get("transactionId"):
            return str(candidate["transactionId"])
    return None
