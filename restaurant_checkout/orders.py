"""
Order submission

Turns a DraftOrder into a created order on the restaurant API and resolves
an order id, falling back to a synthesized one when the outcome is
ambiguous.
"""

import logging
import math
import random
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Sequence

import httpx

from .csrf import CsrfTokenManager
from .errors import (
    EMPTY_CART_MESSAGE,
    INVALID_ORDER_MESSAGE,
    NO_RESPONSE_MESSAGE,
    CheckoutError,
    HardFailureError,
    SecurityTokenError,
    ValidationError,
    error_for_response,
    is_connect_failure,
    parse_json,
)
from .models import CartItem, DraftOrder, OrderItem, SubmittedOrder, compute_totals
from .policy import OptimisticSuccessPolicy, OutcomePolicy, timestamp_ms
from .session import SessionGuard
from .storage import OrderDebugLog

logger = logging.getLogger(__name__)

ORDERS_PATH = "/api/orders"
UNKNOWN_ITEM_NAME = "Unknown Item"

CartSource = Callable[[], Sequence[CartItem]]


# ==================== Response decoding ====================


@dataclass
class DecodedOrder:
    """Order id and the object it was found in"""
    order_id: str
    data: dict[str, Any]


def decode_order_response(body: Any) -> Optional[DecodedOrder]:
    """
    Find the created order in a response body.

    The backend is expected to answer with the order object either at the
    top level, under "data" or under "order", identified by "id" (or Mongo
    style "_id"). Anything else yields None.
    """
    if not isinstance(body, dict):
        return None

    for candidate in (body, body.get("data"), body.get("order")):
        if not isinstance(candidate, dict):
            continue
        order_id = candidate.get("id") or candidate.get("_id")
        if isinstance(order_id, (str, int)) and str(order_id):
            return DecodedOrder(order_id=str(order_id), data=candidate)
    return None


# ==================== Orchestrator ====================


class OrderSubmissionOrchestrator:
    """
    Submits one order per call and never re-submits on its own.

    Response interpretation, in order:
    1. 2xx with an order id in the body: authoritative id
    2. 2xx without one (unparseable or empty body): policy decides
    3. non-2xx whose body still carries an order id: authoritative id
    4. anything else: classified CheckoutError
    """

    def __init__(
        self,
        guard: SessionGuard,
        csrf: CsrfTokenManager,
        policy: Optional[OutcomePolicy] = None,
        tax_rate: float = 0.1,
        delivery_fee: float = 5.0,
        repair_malformed_items: bool = True,
        recovery_sources: Sequence[CartSource] = (),
        debug_log: Optional[OrderDebugLog] = None,
    ):
        self.guard = guard
        self.csrf = csrf
        self.policy = policy or OptimisticSuccessPolicy()
        self.tax_rate = tax_rate
        self.delivery_fee = delivery_fee
        self.repair_malformed_items = repair_malformed_items
        self.recovery_sources = list(recovery_sources)
        self.debug_log = debug_log

    def _log(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        if self.debug_log is not None:
            self.debug_log.record(message, data)

    def _with_items(self, draft: DraftOrder, items: tuple[OrderItem, ...]) -> DraftOrder:
        subtotal = sum(item.price * item.quantity for item in items)
        totals = compute_totals(subtotal, self.tax_rate, self.delivery_fee, draft.is_delivery)
        return replace(
            draft,
            items=items,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
        )

    def _ensure_items(self, draft: DraftOrder) -> DraftOrder:
        """Recover line items from the fallback cart sources if the draft has none"""
        if draft.items:
            return draft

        for source in self.recovery_sources:
            recovered = list(source() or [])
            if recovered:
                logger.warning(f"Draft order was empty, recovered {len(recovered)} items")
                items = tuple(OrderItem.from_cart_item(item) for item in recovered)
                return self._with_items(draft, items)

        raise ValidationError(EMPTY_CART_MESSAGE, field="items")

    def _repair(self, draft: DraftOrder) -> DraftOrder:
        """Patch line items with missing name, id or price"""
        repaired = []
        changed = 0

        for item in draft.items:
            name = item.name if isinstance(item.name, str) and item.name.strip() else UNKNOWN_ITEM_NAME
            price = item.price
            if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price):
                price = 0.0
            menu_item_id = item.menu_item_id
            if not menu_item_id or not str(menu_item_id).strip():
                menu_item_id = f"item-{timestamp_ms()}-{random.randint(0, 9999)}"

            if (name, price, menu_item_id) != (item.name, item.price, item.menu_item_id):
                changed += 1
                item = replace(item, name=name, price=float(price), menu_item_id=str(menu_item_id))
            repaired.append(item)

        if not changed:
            return draft

        if not self.repair_malformed_items:
            raise ValidationError(
                "Some cart items are invalid. Please review your cart.",
                field="items",
            )

        logger.warning(f"Repaired {changed} malformed order items before submission")
        return self._with_items(draft, tuple(repaired))

    async def submit(self, draft: DraftOrder) -> str:
        """
        Create the order and return its id.

        Args:
            draft: Order built from the cart

        Returns:
            Authoritative or synthesized order id
        """
        order = await self.submit_order(draft)
        return order.id

    async def submit_order(self, draft: DraftOrder) -> SubmittedOrder:
        """Create the order and return the normalized order record"""
        draft = self._repair(self._ensure_items(draft))

        try:
            await self.csrf.ensure_token(fresh=True)
        except SecurityTokenError as e:
            logger.warning(f"Proceeding without a fresh CSRF token: {e}")

        payload = draft.to_payload()
        self._log(
            "Order creation attempt",
            {"items": len(draft.items), "total": draft.total, "isDelivery": draft.is_delivery},
        )
        logger.info(f"Submitting order: {len(draft.items)} items, total {draft.total}")

        try:
            response = await self.guard.request("POST", ORDERS_PATH, json=payload)
        except httpx.TransportError as e:
            if is_connect_failure(e):
                self._log("Order creation failed", {"error": str(e)})
                raise HardFailureError(NO_RESPONSE_MESSAGE) from e
            order_id = self.policy.resolve_order(type(e).__name__, cause=e)
            self._log("Order outcome ambiguous", {"orderId": order_id, "error": str(e)})
            return SubmittedOrder.synthesized(order_id, draft)
        except CheckoutError as e:
            self._log("Order creation failed", {"error": e.message, "status": e.status_code})
            raise

        try:
            order = self._interpret(response, draft)
        except CheckoutError as e:
            self._log("Order creation failed", {"error": e.message, "status": e.status_code})
            raise

        self._log(
            "Order created",
            {"orderId": order.id, "authoritative": order.authoritative, "status": response.status_code},
        )
        return order

    def _interpret(self, response: httpx.Response, draft: DraftOrder) -> SubmittedOrder:
        body = parse_json(response)
        decoded = decode_order_response(body)

        if response.is_success:
            if decoded:
                logger.info(f"Order {decoded.order_id} created")
                return SubmittedOrder.from_payload(decoded.data, order_id=decoded.order_id)

            reason = "unparseable response body" if body is None else "no order id in response"
            order_id = self.policy.resolve_order(reason)
            return SubmittedOrder.synthesized(order_id, draft)

        if decoded:
            logger.warning(
                f"Order endpoint returned {response.status_code} but the body carries "
                f"order {decoded.order_id}; treating it as created"
            )
            return SubmittedOrder.from_payload(decoded.data, order_id=decoded.order_id)

        logger.error(f"Order creation failed: {response.status_code} - {response.text}")
        raise error_for_response(response, default_message=INVALID_ORDER_MESSAGE)
