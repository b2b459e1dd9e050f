# Restaurant checkout client

from .cart import CartStore
from .checkout import CheckoutOutcome, CheckoutRequest, CheckoutService
from .client import RestaurantClient
from .context import SessionContext
from .csrf import CsrfTokenManager
from .errors import (
    AmbiguousOutcomeError,
    AuthenticationError,
    CheckoutError,
    HardFailureError,
    RestaurantClientError,
    SecurityTokenError,
    SessionLoggedOutError,
    ValidationError,
)
from .models import (
    CardDetails,
    CartItem,
    CustomerDetails,
    DeliveryAddress,
    DraftOrder,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentResult,
    PaymentStatus,
    SubmittedOrder,
)
from .navigation import ConfirmationNavigator, NavigationResult, NavigationState
from .orders import OrderSubmissionOrchestrator, decode_order_response
from .payments import PaymentProcessor, validate_card
from .policy import OptimisticSuccessPolicy, OutcomePolicy, StrictOutcomePolicy
from .reconcile import OrderAdminService, StatusReconciler
from .session import SessionGuard

__all__ = [
    "RestaurantClient",
    "CartStore",
    "CheckoutService",
    "CheckoutRequest",
    "CheckoutOutcome",
    "SessionContext",
    "CsrfTokenManager",
    "SessionGuard",
    "OrderSubmissionOrchestrator",
    "decode_order_response",
    "PaymentProcessor",
    "validate_card",
    "StatusReconciler",
    "OrderAdminService",
    "ConfirmationNavigator",
    "NavigationResult",
    "NavigationState",
    "OutcomePolicy",
    "OptimisticSuccessPolicy",
    "StrictOutcomePolicy",
    "CartItem",
    "OrderItem",
    "DraftOrder",
    "SubmittedOrder",
    "CustomerDetails",
    "DeliveryAddress",
    "CardDetails",
    "PaymentResult",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "RestaurantClientError",
    "CheckoutError",
    "ValidationError",
    "SecurityTokenError",
    "AuthenticationError",
    "SessionLoggedOutError",
    "AmbiguousOutcomeError",
    "HardFailureError",
]
