"""Redirect to the order confirmation view with bounded retry"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

CONFIRMATION_PATH = "/order-confirmation"


class NavigationState(str, Enum):
    NAVIGATED = "navigated"
    FAILED = "failed"


@dataclass
class NavigationResult:
    state: NavigationState
    url: str
    attempts: int
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == NavigationState.NAVIGATED


def confirmation_url(order_id: str) -> str:
    return f"{CONFIRMATION_PATH}/{order_id}"


class ConfirmationNavigator:
    """
    Calls the injected navigate(url) until it succeeds or attempts run out.

    The delay doubles after each failed attempt. FAILED is terminal: the
    caller shows the order id with a manual link instead.
    """

    def __init__(
        self,
        navigate: Callable[[str], Awaitable[Any]],
        max_attempts: int = 3,
        backoff: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._navigate = navigate
        self.max_attempts = max(1, max_attempts)
        self.backoff = backoff
        self._sleep = sleep

    async def go_to_confirmation(self, order_id: str) -> NavigationResult:
        return await self.go(confirmation_url(order_id))

    async def go(self, url: str) -> NavigationResult:
        delay = self.backoff
        error = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                await self._navigate(url)
                logger.info(f"Navigated to {url}")
                return NavigationResult(NavigationState.NAVIGATED, url, attempt)
            except Exception as e:
                error = str(e)
                logger.warning(f"Navigation to {url} failed (attempt {attempt}/{self.max_attempts}): {e}")

            if attempt < self.max_attempts:
                await self._sleep(delay)
                delay *= 2

        logger.error(f"Giving up navigating to {url}")
        return NavigationResult(NavigationState.FAILED, url, self.max_attempts, error=error)
