"""
Restaurant Checkout Client

Wires the checkout components around one shared HTTP client and one
SessionContext.
"""

import logging
import time
from datetime import date
from typing import Any, Awaitable, Callable, Optional

import httpx

from .cart import CartStore
from .checkout import CheckoutOutcome, CheckoutRequest, CheckoutService
from .config import Settings, get_settings
from .context import SessionContext
from .csrf import CsrfTokenManager
from .navigation import ConfirmationNavigator
from .orders import OrderSubmissionOrchestrator
from .payments import PaymentProcessor
from .policy import OutcomePolicy, get_policy
from .reconcile import OrderAdminService, StatusReconciler
from .session import SessionGuard
from .storage import InstructionsStore, JsonFileStorage, MemoryStorage, OrderDebugLog, Storage

logger = logging.getLogger(__name__)


class RestaurantClient:
    """
    Client for the restaurant ordering API.

    Usage:
        async with RestaurantClient.from_env() as client:
            client.cart.add(CartItem("a", "Pizza", 10.0, 2))
            outcome = await client.checkout(CheckoutRequest(...))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        storage: Optional[Storage] = None,
        session_storage: Optional[Storage] = None,
        policy: Optional[OutcomePolicy] = None,
        navigate: Optional[Callable[[str], Awaitable[Any]]] = None,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ):
        """
        Args:
            settings: Configuration, defaults to the environment
            transport: Custom httpx transport (tests, ASGI apps)
            storage: Durable storage, defaults to a JSON file at settings.storage_path
            session_storage: Short-lived storage for the CSRF token
            policy: Ambiguous-outcome policy, defaults to settings.outcome_policy
            navigate: Async callback that shows a URL to the user
            clock: Monotonic time source for refresh throttling
            today: Date source for card expiry checks
        """
        self.settings = settings or get_settings()
        self._http_client = httpx.AsyncClient(
            base_url=self.settings.api_base_url.rstrip("/"),
            timeout=self.settings.request_timeout,
            transport=transport,
        )

        self.storage = storage if storage is not None else JsonFileStorage(self.settings.storage_path)
        self.context = SessionContext()
        self.policy = policy or get_policy(self.settings.outcome_policy)

        self.csrf = CsrfTokenManager(
            self._http_client,
            self.context,
            session_storage=session_storage if session_storage is not None else MemoryStorage(),
            header_names=tuple(self.settings.csrf_header_names),
            cookie_name=self.settings.csrf_cookie_name,
        )
        self.session = SessionGuard(
            self._http_client,
            self.context,
            self.csrf,
            min_refresh_interval=self.settings.min_refresh_interval,
            max_refresh_failures=self.settings.max_refresh_failures,
            clock=clock,
        )

        self.cart = CartStore(self.storage)
        self.instructions = InstructionsStore(self.storage)
        self.debug_log = OrderDebugLog(self.storage, max_entries=self.settings.debug_log_size)

        self.orders = OrderSubmissionOrchestrator(
            self.session,
            self.csrf,
            policy=self.policy,
            tax_rate=self.settings.tax_rate,
            delivery_fee=self.settings.delivery_fee,
            repair_malformed_items=self.settings.repair_malformed_items,
            recovery_sources=[lambda: self.cart.items, self.cart.reload],
            debug_log=self.debug_log,
        )
        self.payments = PaymentProcessor(
            self.session,
            self.csrf,
            policy=self.policy,
            register_cash_payments=self.settings.register_cash_payments,
            currency=self.settings.currency,
            today=today,
        )
        self.admin = OrderAdminService(self.session, self.csrf, StatusReconciler())

        self.navigator = None
        if navigate is not None:
            self.navigator = ConfirmationNavigator(
                navigate,
                max_attempts=self.settings.navigation_max_attempts,
                backoff=self.settings.navigation_backoff,
            )

        self.checkout_service = CheckoutService(
            self.cart,
            self.orders,
            self.payments,
            self.instructions,
            tax_rate=self.settings.tax_rate,
            delivery_fee=self.settings.delivery_fee,
            navigator=self.navigator,
            today=today,
        )
        logger.info(
            f"Restaurant client ready for {self.settings.api_base_url} "
            f"({self.policy.name} outcome policy)"
        )

    @classmethod
    def from_env(cls, **kwargs) -> "RestaurantClient":
        """Create client from environment variables / .env"""
        return cls(settings=get_settings(), **kwargs)

    async def checkout(self, request: CheckoutRequest) -> CheckoutOutcome:
        return await self.checkout_service.checkout(request)

    async def logout(self) -> None:
        await self.session.logout()

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    async def __aenter__(self) -> "RestaurantClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
