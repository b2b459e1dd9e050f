"""
Ambiguous outcome policies

Decide what happens when an order or payment call may have succeeded on the
server but the client cannot prove it (timeout, dropped connection,
unparseable 2xx body).
"""

import logging
import time
import uuid
from typing import Optional

from .errors import AmbiguousOutcomeError
from .models import PaymentResult

logger = logging.getLogger(__name__)


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def synthesize_order_id() -> str:
    """Client-side fallback order id, unique per call"""
    return f"order-{timestamp_ms()}-{uuid.uuid4().hex[:6]}"


def synthesize_transaction_id(prefix: str) -> str:
    return f"{prefix}_{timestamp_ms()}"


class OutcomePolicy:
    """Base policy; subclasses decide how ambiguity resolves"""

    name = "base"

    def resolve_order(self, reason: str, cause: Optional[BaseException] = None) -> str:
        """Return an order id to proceed with, or raise"""
        raise NotImplementedError

    def resolve_payment(
        self,
        prefix: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> PaymentResult:
        """Return the payment result to report, or raise"""
        raise NotImplementedError


class OptimisticSuccessPolicy(OutcomePolicy):
    """
    Assume success.

    The order may already exist server-side, so the user proceeds to
    confirmation with a synthesized id instead of being left on an error.
    Without server-side idempotency keys this can produce duplicates.
    """

    name = "optimistic"

    def resolve_order(self, reason: str, cause: Optional[BaseException] = None) -> str:
        order_id = synthesize_order_id()
        logger.warning(f"Ambiguous order outcome ({reason}), using fallback id {order_id}")
        return order_id

    def resolve_payment(
        self,
        prefix: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> PaymentResult:
        transaction_id = synthesize_transaction_id(prefix)
        logger.warning(
            f"Ambiguous payment outcome ({reason}), assuming success as {transaction_id}"
        )
        return PaymentResult(success=True, transaction_id=transaction_id, simulated=True)


class StrictOutcomePolicy(OutcomePolicy):
    """Refuse to guess; surface the ambiguity to the caller"""

    name = "strict"

    def resolve_order(self, reason: str, cause: Optional[BaseException] = None) -> str:
        raise AmbiguousOutcomeError(
            f"Order status unknown ({reason}). Please check your orders before retrying.",
            cause=cause,
        )

    def resolve_payment(
        self,
        prefix: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> PaymentResult:
        raise AmbiguousOutcomeError(
            f"Payment status unknown ({reason}). Please check your order before paying again.",
            cause=cause,
        )


POLICIES = {
    OptimisticSuccessPolicy.name: OptimisticSuccessPolicy,
    StrictOutcomePolicy.name: StrictOutcomePolicy,
}


def get_policy(name: str) -> OutcomePolicy:
    """Policy instance by configured name"""
    try:
        return POLICIES[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown outcome policy: {name}") from None
