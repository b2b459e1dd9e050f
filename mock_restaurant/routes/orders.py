"""Order API routes for mock restaurant"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from ..database.orders import order_db
from ..models.order import (
    CreateOrderRequest,
    Order,
    OrderEnvelope,
    OrderStatus,
    OrderTracking,
    StatusUpdateRequest,
    UpdateOrderRequest,
)
from ..security.csrf_middleware import optional_auth, require_auth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])

FINAL_STATUSES = {OrderStatus.COMPLETED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}


def _get_or_404(order_id: str) -> Order:
    order = order_db.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("", response_model=OrderEnvelope, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    user_id: Optional[str] = Depends(optional_auth),
):
    """
    Create an order from the checkout page.

    The backend insists on deliveryType even for dine-in orders.
    """
    if not request.items:
        raise HTTPException(status_code=400, detail="Order must contain at least one item")

    if not request.delivery_type:
        raise HTTPException(status_code=400, detail="Delivery type is required")

    if request.is_delivery and not request.delivery_address:
        raise HTTPException(status_code=400, detail="Delivery address is required for delivery orders")

    order = order_db.create_order(request)
    logger.info(
        f"Order {order.id} created: {order.total} - "
        f"{'delivery' if order.is_delivery else f'table {order.table_number}'}"
        f"{f' for user {user_id}' if user_id else ''}"
    )

    return OrderEnvelope(message="Order created successfully", data=order)


@router.get("", response_model=list[Order])
async def list_orders(limit: int = 50, user_id: str = Depends(require_auth)):
    """List recent orders"""
    return order_db.list_orders(limit=limit)


@router.get("/{order_id}", response_model=Order)
async def get_order(order_id: str, user_id: Optional[str] = Depends(optional_auth)):
    """Get order details"""
    return _get_or_404(order_id)


@router.put("/{order_id}", response_model=OrderEnvelope)
async def update_order(
    order_id: str,
    changes: UpdateOrderRequest,
    user_id: str = Depends(require_auth),
):
    """Partial update from staff views"""
    _get_or_404(order_id)
    order = order_db.update_order(order_id, changes)
    logger.info(f"Order {order_id} updated by {user_id}")
    return OrderEnvelope(message="Order updated", data=order)


@router.put("/{order_id}/status", response_model=OrderEnvelope)
async def update_status(
    order_id: str,
    request: StatusUpdateRequest,
    user_id: str = Depends(require_auth),
):
    """Move an order to a new status"""
    _get_or_404(order_id)
    order = order_db.update_status(order_id, request.status)
    logger.info(f"Order {order_id} -> {request.status.value} by {user_id}")
    return OrderEnvelope(message=f"Order status updated to {request.status.value}", data=order)


@router.post("/{order_id}/cancel", response_model=OrderEnvelope)
async def cancel_order(order_id: str, user_id: Optional[str] = Depends(optional_auth)):
    """Cancel an order that has not been completed"""
    order = _get_or_404(order_id)
    if order.status in FINAL_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot cancel an order that is {order.status.value}",
        )

    order = order_db.update_status(order_id, OrderStatus.CANCELLED)
    logger.info(f"Order {order_id} cancelled")
    return OrderEnvelope(message="Order cancelled", data=order)


@router.get("/{order_id}/track", response_model=OrderTracking)
async def track_order(order_id: str):
    """Status and estimated time for an order"""
    order = _get_or_404(order_id)
    return OrderTracking(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        estimated_minutes=order_db.estimated_minutes(order),
        updated_at=order.updated_at,
    )


@router.delete("/{order_id}", status_code=204)
async def delete_order(order_id: str, user_id: str = Depends(require_auth)):
    """Delete an order"""
    if not order_db.delete_order(order_id):
        raise HTTPException(status_code=404, detail="Order not found")
    logger.info(f"Order {order_id} deleted by {user_id}")
    return Response(status_code=204)
