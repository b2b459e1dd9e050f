"""
Order status reconciliation

Keeps cached order views consistent with status-changing calls made from
staff/admin screens: optimistic local transition, server call, then merge
or rollback.
"""

import logging
from dataclasses import replace
from typing import Any, Iterable, Optional, Union

import httpx

from .csrf import CsrfTokenManager
from .errors import (
    NO_RESPONSE_MESSAGE,
    HardFailureError,
    SecurityTokenError,
    ValidationError,
    error_for_response,
    parse_json,
)
from .models import OrderStatus, SubmittedOrder
from .orders import ORDERS_PATH
from .session import SessionGuard

logger = logging.getLogger(__name__)

ENVELOPE_KEYS = {"success", "message"}


def unwrap_order_body(body: Any) -> dict[str, Any]:
    """Order fields from a response body, tolerating {data: ...} / {order: ...} envelopes"""
    if not isinstance(body, dict):
        return {}
    for key in ("data", "order"):
        if isinstance(body.get(key), dict):
            return body[key]
    return {k: v for k, v in body.items() if k not in ENVELOPE_KEYS}


def _valid_status(value: Union[OrderStatus, str]) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError("Invalid order status", field="status") from None


class StatusReconciler:
    """Merges server responses into locally cached orders"""

    def apply(
        self,
        local_order: SubmittedOrder,
        server_response: Any,
        intended_status: Union[OrderStatus, str],
    ) -> SubmittedOrder:
        """
        Merge a status-change response into the pre-mutation local copy.

        Local fields survive unless the server explicitly returns a value
        for them. Status is always the intended one, whatever the server
        echoes.

        Args:
            local_order: Order as cached before the mutation
            server_response: Decoded response body (may be None)
            intended_status: Status the caller transitioned to

        Returns:
            The merged order
        """
        merged = local_order.to_dict()
        for key, value in unwrap_order_body(server_response).items():
            if value is not None:
                merged[key] = value

        merged["status"] = OrderStatus(intended_status).value
        return SubmittedOrder.from_payload(
            merged,
            order_id=str(merged.get("id") or local_order.id),
            authoritative=local_order.authoritative,
        )


class OrderAdminService:
    """
    Cached order list for staff views.

    Usage:
        admin = OrderAdminService(guard, csrf)
        admin.load(orders)
        await admin.change_status(order_id, OrderStatus.CONFIRMED)
    """

    def __init__(
        self,
        guard: SessionGuard,
        csrf: CsrfTokenManager,
        reconciler: Optional[StatusReconciler] = None,
    ):
        self.guard = guard
        self.csrf = csrf
        self.reconciler = reconciler or StatusReconciler()
        self._orders: dict[str, SubmittedOrder] = {}

    # ==================== Cache ====================

    def load(self, orders: Iterable[Union[SubmittedOrder, dict[str, Any]]]) -> None:
        for order in orders:
            if isinstance(order, dict):
                order = SubmittedOrder.from_payload(order)
            self._orders[order.id] = order

    def get(self, order_id: str) -> Optional[SubmittedOrder]:
        return self._orders.get(order_id)

    @property
    def orders(self) -> list[SubmittedOrder]:
        return list(self._orders.values())

    def _require(self, order_id: str) -> SubmittedOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise HardFailureError("Order not found", status_code=404)
        return order

    async def _fresh_token(self) -> None:
        try:
            await self.csrf.ensure_token(fresh=True)
        except SecurityTokenError as e:
            logger.warning(f"Proceeding without a fresh CSRF token: {e}")

    async def _call(self, method: str, path: str, json: Optional[Any] = None) -> httpx.Response:
        try:
            return await self.guard.request(method, path, json=json)
        except httpx.TransportError as e:
            raise HardFailureError(NO_RESPONSE_MESSAGE) from e

    # ==================== Status changes ====================

    async def _transition(
        self,
        order_id: str,
        status: OrderStatus,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
    ) -> SubmittedOrder:
        original = self._require(order_id)
        await self._fresh_token()

        optimistic = replace(original, status=status)
        self._orders[order_id] = optimistic
        succeeded = False
        try:
            response = await self._call(method, path, json=json)
            if not response.is_success:
                logger.error(f"Status change for {order_id} failed: {response.status_code}")
                raise error_for_response(response)
            merged = self.reconciler.apply(original, parse_json(response), status)
            succeeded = True
        finally:
            # a later transition owns the cache entry once it replaces ours
            if not succeeded and self._orders.get(order_id) is optimistic:
                logger.info(f"Rolling back order {order_id} to {original.status.value}")
                self._orders[order_id] = original

        self._orders[order_id] = merged
        logger.info(f"Order {order_id} is now {status.value}")
        return merged

    async def change_status(
        self,
        order_id: str,
        new_status: Union[OrderStatus, str],
    ) -> SubmittedOrder:
        """Transition an order and reconcile the cached copy"""
        status = _valid_status(new_status)

        return await self._transition(
            order_id,
            status,
            "PUT",
            f"{ORDERS_PATH}/{order_id}/status",
            json={"status": status.value},
        )

    async def cancel(self, order_id: str) -> SubmittedOrder:
        return await self._transition(
            order_id,
            OrderStatus.CANCELLED,
            "POST",
            f"{ORDERS_PATH}/{order_id}/cancel",
        )

    async def update(self, order_id: str, changes: dict[str, Any]) -> SubmittedOrder:
        """Partial update; the cached copy takes the changes, then the server's answer"""
        original = self._require(order_id)
        intended = original.status
        if changes.get("status") is not None:
            intended = _valid_status(changes["status"])
        await self._fresh_token()

        response = await self._call("PUT", f"{ORDERS_PATH}/{order_id}", json=changes)
        if not response.is_success:
            logger.error(f"Update of order {order_id} failed: {response.status_code}")
            raise error_for_response(response)

        updated = SubmittedOrder.from_payload(
            {**original.to_dict(), **changes},
            order_id=original.id,
            authoritative=original.authoritative,
        )
        merged = self.reconciler.apply(updated, parse_json(response), intended)
        self._orders[order_id] = merged
        return merged

    # ==================== Other operations ====================

    async def delete(self, order_id: str) -> bool:
        """Delete an order; 200 and 204 both count as success"""
        await self._fresh_token()
        response = await self._call("DELETE", f"{ORDERS_PATH}/{order_id}")

        if response.status_code in (200, 204):
            self._orders.pop(order_id, None)
            logger.info(f"Order {order_id} deleted")
            return True

        if response.status_code == 403:
            raise HardFailureError("Permission denied", status_code=403)
        raise error_for_response(response)

    async def fetch(self, order_id: str) -> SubmittedOrder:
        """Load one order from the server into the cache"""
        response = await self._call("GET", f"{ORDERS_PATH}/{order_id}")
        if not response.is_success:
            raise error_for_response(response)

        order = SubmittedOrder.from_payload(unwrap_order_body(parse_json(response)), order_id=order_id)
        self._orders[order.id] = order
        return order

    async def track(self, order_id: str) -> dict[str, Any]:
        """Tracking info for an order"""
        response = await self._call("GET", f"{ORDERS_PATH}/{order_id}/track")
        if not response.is_success:
            raise error_for_response(response)
        return unwrap_order_body(parse_json(response))
