"""Payment API routes for mock restaurant"""

import logging
import uuid

from fastapi import APIRouter, HTTPException

from ..database.orders import order_db
from ..models.order import PaymentResponse, ProcessCardRequest, RegisterCashRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])

# Card ending in these digits is declined, for exercising failure paths
DECLINED_LAST4 = "0002"


@router.post("/process-card", response_model=PaymentResponse)
async def process_card(request: ProcessCardRequest):
    """
    Capture a card payment (mock - succeeds unless the card is the decline card).

    Only the last four digits and a client token are ever received.
    """
    order = order_db.get_order(request.order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    last4 = request.card_info.card_number_last4
    if last4 == DECLINED_LAST4:
        logger.info(f"Declined card ending {last4} for order {order.id}")
        raise HTTPException(status_code=402, detail="Card declined")

    transaction_id = f"txn_{uuid.uuid4().hex[:12]}"
    order_db.record_payment(order.id, transaction_id)
    logger.info(f"Captured {request.amount} {request.currency} for order {order.id} on card ending {last4}")

    return PaymentResponse(
        success=True,
        transaction_id=transaction_id,
        message="Payment processed successfully",
    )


@router.post("/register-cash", response_model=PaymentResponse)
async def register_cash(request: RegisterCashRequest):
    """Record a cash payment intent collected out-of-band"""
    order = order_db.get_order(request.order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    logger.info(
        f"Cash payment {request.transaction_id} ({request.amount} {request.currency}) "
        f"registered for order {order.id}"
    )
    return PaymentResponse(
        success=True,
        transaction_id=request.transaction_id,
        message="Cash payment registered",
    )
