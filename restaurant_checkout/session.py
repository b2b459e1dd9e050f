"""
Session Guard

Wraps every remote call made by the checkout client. Handles 401 by
refreshing the session once and replaying the call, replays once after a
rejected CSRF token, throttles refresh attempts and forces logout after
repeated refresh failures.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

import httpx

from .context import SessionContext
from .csrf import CsrfTokenManager
from .errors import (
    AUTH_REQUIRED_MESSAGE,
    SECURITY_TOKEN_MESSAGE,
    AuthenticationError,
    SecurityTokenError,
    SessionLoggedOutError,
    is_csrf_failure,
    parse_json,
)

logger = logging.getLogger(__name__)

REFRESH_PATH = "/api/auth/refresh-token"
LOGOUT_PATH = "/api/auth/logout"
MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class SessionGuard:
    """
    Authenticated request dispatcher.

    A call is replayed at most once, whether after a session refresh or a
    CSRF token rotation. Refreshes are coalesced: concurrent 401s share a
    single in-flight refresh.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        context: SessionContext,
        csrf: CsrfTokenManager,
        min_refresh_interval: float = 5.0,
        max_refresh_failures: int = 3,
        clock: Callable[[], float] = time.monotonic,
        on_logout: Optional[Callable[[], Any]] = None,
    ):
        """
        Args:
            http_client: Shared client (base_url, cookies)
            context: Session state this guard owns the auth half of
            csrf: Token manager used for mutating calls
            min_refresh_interval: Seconds between refresh attempts
            max_refresh_failures: Consecutive failures before forced logout
            clock: Monotonic time source
            on_logout: Called (or awaited) after the session is cleared
        """
        self._http_client = http_client
        self.context = context
        self.csrf = csrf
        self.min_refresh_interval = min_refresh_interval
        self.max_refresh_failures = max_refresh_failures
        self._clock = clock
        self._on_logout = on_logout

    # ==================== Session state ====================

    def establish(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        csrf_token: Optional[str] = None,
    ) -> None:
        """Store tokens obtained from a login"""
        self.context.access_token = access_token
        self.context.refresh_token = refresh_token
        self.context.refresh_failures = 0
        self.context.logged_out = False
        if csrf_token:
            self.csrf.store(csrf_token)
        logger.info("Session established")

    def _auth_headers(self) -> dict[str, str]:
        if self.context.access_token:
            return {"Authorization": f"Bearer {self.context.access_token}"}
        return {}

    # ==================== Requests ====================

    async def _send(
        self,
        method: str,
        url: str,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        request_headers = {"Accept": "application/json"}
        request_headers.update(headers or {})
        request_headers.update(self._auth_headers())

        if method in MUTATING_METHODS:
            try:
                await self.csrf.ensure_token()
            except SecurityTokenError as e:
                logger.warning(f"Sending {method} {url} without CSRF token: {e}")
            request_headers = self.csrf.attach(request_headers)

        return await self._http_client.request(
            method,
            url,
            json=json,
            params=params,
            headers=request_headers,
        )

    async def request(
        self,
        method: str,
        url: str,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Dispatch a request with session and CSRF recovery.

        Transport errors propagate unchanged. The replayed response, if
        any, is returned as-is even when it failed again.

        Raises:
            AuthenticationError: 401 and the session could not be refreshed
            SessionLoggedOutError: Refresh failures reached the cap
            SecurityTokenError: CSRF token rejected again after rotation
        """
        method = method.upper()
        sent_with = self.context.access_token
        response = await self._send(method, url, json=json, params=params, headers=headers)

        if response.status_code == 401:
            if self.context.access_token and self.context.access_token != sent_with:
                # another call refreshed the session while this one was in flight
                logger.info(f"Replaying {method} {url} with the refreshed session")
                return await self._send(method, url, json=json, params=params, headers=headers)

            if self.context.refresh_failures >= self.max_refresh_failures:
                await self.force_logout()
                raise SessionLoggedOutError(AUTH_REQUIRED_MESSAGE, status_code=401)

            if not await self.refresh():
                if self.context.logged_out:
                    raise SessionLoggedOutError(AUTH_REQUIRED_MESSAGE, status_code=401)
                raise AuthenticationError(AUTH_REQUIRED_MESSAGE, status_code=401)

            logger.info(f"Replaying {method} {url} after session refresh")
            return await self._send(method, url, json=json, params=params, headers=headers)

        if method in MUTATING_METHODS and is_csrf_failure(response):
            logger.warning(f"CSRF token rejected for {method} {url}, rotating")
            await self.csrf.ensure_token(fresh=True)
            response = await self._send(method, url, json=json, params=params, headers=headers)
            if is_csrf_failure(response):
                raise SecurityTokenError(SECURITY_TOKEN_MESSAGE, status_code=403)

        return response

    # ==================== Refresh ====================

    async def refresh(self) -> bool:
        """
        Refresh the access token.

        Returns:
            True if a new access token was stored
        """
        task = self.context.refresh_task
        if task is not None:
            return await asyncio.shield(task)

        if self.context.refresh_failures >= self.max_refresh_failures:
            logger.warning("Refresh failure limit reached, clearing session")
            await self.force_logout()
            return False

        now = self._clock()
        last = self.context.last_refresh_attempt
        if last is not None and now - last < self.min_refresh_interval:
            logger.info("Session refresh throttled")
            return False

        if not self.context.refresh_token:
            logger.info("No refresh token available")
            return False

        self.context.last_refresh_attempt = now
        task = asyncio.ensure_future(self._do_refresh(self.context.refresh_token))
        self.context.refresh_task = task
        task.add_done_callback(self._refresh_done)
        return await asyncio.shield(task)

    def _refresh_done(self, task: asyncio.Task) -> None:
        if self.context.refresh_task is task:
            self.context.refresh_task = None

    async def _do_refresh(self, refresh_token: str) -> bool:
        try:
            response = await self._http_client.post(
                REFRESH_PATH,
                json={"refreshToken": refresh_token},
                headers={"X-Refresh-Token": refresh_token},
            )
        except httpx.TransportError as e:
            logger.error(f"Session refresh request failed: {e}")
            await self._record_failure()
            return False

        body = parse_json(response)
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]

        if response.is_success and isinstance(body, dict) and body.get("accessToken"):
            self.context.access_token = body["accessToken"]
            if body.get("refreshToken"):
                self.context.refresh_token = body["refreshToken"]
            if body.get("csrfToken"):
                self.csrf.store(body["csrfToken"])
            self.context.refresh_failures = 0
            logger.info("Session refreshed")
            return True

        logger.warning(f"Session refresh rejected: {response.status_code}")
        await self._record_failure()
        return False

    async def _record_failure(self) -> None:
        self.context.refresh_failures += 1
        logger.warning(
            f"Session refresh failed ({self.context.refresh_failures}/{self.max_refresh_failures})"
        )
        if self.context.refresh_failures >= self.max_refresh_failures:
            await self.force_logout()

    # ==================== Logout ====================

    async def logout(self) -> None:
        """Tell the server (best effort), then clear all session and CSRF state"""
        try:
            await self._http_client.post(
                LOGOUT_PATH,
                headers=self.csrf.attach(self._auth_headers()),
            )
        except httpx.HTTPError as e:
            logger.warning(f"Logout request failed: {e}")

        self.context.clear()
        self.csrf.clear()
        self.context.logged_out = True
        logger.info("Session cleared")

        if self._on_logout is not None:
            result = self._on_logout()
            if asyncio.iscoroutine(result):
                await result

    async def force_logout(self) -> None:
        logger.warning("Forcing logout after repeated session refresh failures")
        await self.logout()
