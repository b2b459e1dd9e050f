"""
CSRF and Session Verification

Rejects state-mutating API requests that do not carry a CSRF token issued by
this server, and resolves bearer tokens for routes that need a logged-in
user.
"""

import logging
from typing import Callable, Optional

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from .tokens import TokenStore, token_store

logger = logging.getLogger(__name__)

CSRF_HEADERS = ("x-csrf-token", "x-xsrf-token", "csrf-token")
CSRF_ERROR_MESSAGE = "Invalid or missing CSRF token. Please refresh the page and try again."
SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
EXEMPT_PATHS = {
    "/api/csrf-token",
    "/api/auth/refresh-token",
    "/api/auth/logout",
}


class CSRFVerificationMiddleware(BaseHTTPMiddleware):
    """
    Middleware that checks the CSRF header on mutating /api requests.

    Safe methods and the token/session endpoints pass through untouched.
    """

    def __init__(self, app, store: TokenStore):
        super().__init__(app)
        self.store = store

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        needs_token = (
            request.method not in SAFE_METHODS
            and path.startswith("/api/")
            and path not in EXEMPT_PATHS
        )

        if needs_token:
            token = next(
                (request.headers[h] for h in CSRF_HEADERS if request.headers.get(h)),
                None,
            )
            if not self.store.is_valid_csrf(token):
                logger.warning(f"CSRF check failed for {request.method} {path}")
                return JSONResponse(
                    status_code=403,
                    content={"success": False, "message": CSRF_ERROR_MESSAGE},
                )

        return await call_next(request)


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


class AuthDependency:
    """
    FastAPI dependency resolving the logged-in user.

    Returns the user id, or None for anonymous requests when auth is optional.
    """

    def __init__(self, require_auth: bool = False):
        self.require_auth = require_auth

    async def __call__(self, request: Request) -> Optional[str]:
        token = bearer_token(request)
        user_id = token_store.user_for_access(token)

        if token and user_id is None:
            # stale tokens get 401 even on optional routes
            raise HTTPException(status_code=401, detail="Invalid or expired access token")

        if self.require_auth and user_id is None:
            raise HTTPException(status_code=401, detail="Authentication required")

        return user_id


# Dependency instances
require_auth = AuthDependency(require_auth=True)
optional_auth = AuthDependency(require_auth=False)
