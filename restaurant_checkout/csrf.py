"""
CSRF Token Manager

Acquires, caches and rotates the anti-forgery token that every mutating
request must carry. Tokens come from the token endpoint first and from the
XSRF-TOKEN cookie second.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

from .context import SessionContext
from .errors import SecurityTokenError, parse_json
from .storage import CSRF_STORAGE_KEY, MemoryStorage, Storage

logger = logging.getLogger(__name__)

CSRF_TOKEN_PATH = "/api/csrf-token"
DEFAULT_HEADER_NAMES = ("X-CSRF-Token", "X-XSRF-TOKEN")


class CsrfTokenManager:
    """
    Anti-forgery token cache with coalesced fetching.

    Usage:
        csrf = CsrfTokenManager(http_client, context)
        token = await csrf.ensure_token(fresh=True)
        headers = csrf.attach({"Content-Type": "application/json"})
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        context: SessionContext,
        session_storage: Optional[Storage] = None,
        header_names: tuple[str, ...] = DEFAULT_HEADER_NAMES,
        cookie_name: str = "XSRF-TOKEN",
        token_path: str = CSRF_TOKEN_PATH,
    ):
        self._http_client = http_client
        self.context = context
        self.session_storage = session_storage if session_storage is not None else MemoryStorage()
        self.header_names = tuple(header_names)
        self.cookie_name = cookie_name
        self.token_path = token_path

    def cached_token(self) -> Optional[str]:
        """Token from memory, then session storage"""
        if self.context.csrf_token:
            return self.context.csrf_token

        stored = self.session_storage.get(CSRF_STORAGE_KEY)
        if isinstance(stored, str) and stored:
            self.context.csrf_token = stored
            return stored
        return None

    def cookie_token(self) -> Optional[str]:
        """Token the server set as a cookie, if any"""
        token = None
        for cookie in self._http_client.cookies.jar:
            if cookie.name == self.cookie_name and cookie.value:
                token = cookie.value
        return token

    def store(self, token: str) -> None:
        """Cache a token obtained elsewhere (e.g. a session refresh response)"""
        self.context.csrf_token = token
        self.session_storage.set(CSRF_STORAGE_KEY, token)

    def clear(self) -> None:
        """Forget the token everywhere it is cached"""
        self.context.csrf_token = None
        self.session_storage.remove(CSRF_STORAGE_KEY)
        self._http_client.cookies.delete(self.cookie_name)

    async def ensure_token(self, fresh: bool = False) -> str:
        """
        Return a usable CSRF token.

        Concurrent callers share a single outbound token request.

        Args:
            fresh: Discard any cached token and fetch a new one. Call sites
                pass True once per logical mutating operation.

        Returns:
            The token string

        Raises:
            SecurityTokenError: Neither the endpoint nor the cookie yields a token
        """
        task = self.context.csrf_task
        if task is None:
            if fresh:
                self.context.csrf_token = None
                self.session_storage.remove(CSRF_STORAGE_KEY)
            else:
                token = self.cached_token()
                if token:
                    return token

            task = asyncio.ensure_future(self._fetch())
            self.context.csrf_task = task
            task.add_done_callback(self._fetch_done)

        return await asyncio.shield(task)

    def _fetch_done(self, task: asyncio.Task) -> None:
        if self.context.csrf_task is task:
            self.context.csrf_task = None

    async def _fetch(self) -> str:
        token = None
        try:
            response = await self._http_client.get(
                self.token_path,
                params={"_t": int(time.time() * 1000), "forceRefresh": "true"},
                headers={
                    "Cache-Control": "no-cache, no-store, must-revalidate",
                    "Pragma": "no-cache",
                    "Expires": "0",
                },
            )
            if response.is_success:
                body = parse_json(response)
                if isinstance(body, dict) and isinstance(body.get("csrfToken"), str):
                    token = body["csrfToken"] or None
            else:
                logger.warning(f"CSRF token endpoint returned {response.status_code}")
        except httpx.TransportError as e:
            logger.warning(f"CSRF token request failed: {e}")

        if not token:
            token = self.cookie_token()
            if token:
                logger.info("Using CSRF token from cookie")

        if not token:
            raise SecurityTokenError(
                "Unable to obtain a security token. Please refresh the page and try again."
            )

        self.store(token)
        logger.debug("CSRF token refreshed")
        return token

    def headers(self) -> dict[str, str]:
        """Token headers for the currently cached token (empty if none)"""
        token = self.cached_token() or self.cookie_token()
        if not token:
            return {}
        return {name: token for name in self.header_names}

    def attach(self, headers: Optional[dict[str, str]] = None) -> dict[str, str]:
        """Return a copy of headers decorated with the CSRF token"""
        decorated = dict(headers or {})
        decorated.update(self.headers())
        return decorated
