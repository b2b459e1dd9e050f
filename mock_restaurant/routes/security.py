"""CSRF token and session refresh routes for mock restaurant"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Header, HTTPException, Request, Response

from ..security.csrf_middleware import CSRF_HEADERS, bearer_token
from ..security.tokens import token_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Security"])

CSRF_COOKIE = "XSRF-TOKEN"


@router.get("/csrf-token")
async def get_csrf_token(response: Response):
    """Issue a CSRF token in the body and as a readable cookie"""
    token = token_store.issue_csrf()
    response.set_cookie(CSRF_COOKIE, token, httponly=False, samesite="lax")
    response.headers["Cache-Control"] = "no-store"
    return {"status": "success", "csrfToken": token}


@router.post("/auth/refresh-token")
async def refresh_token(
    response: Response,
    payload: Optional[dict] = Body(default=None),
    x_refresh_token: Optional[str] = Header(None),
):
    """Exchange a refresh token for a new token pair"""
    supplied = (payload or {}).get("refreshToken") or x_refresh_token
    tokens = token_store.rotate(supplied)
    if tokens is None:
        logger.warning("Rejected refresh token")
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    csrf_token = token_store.issue_csrf()
    response.set_cookie(CSRF_COOKIE, csrf_token, httponly=False, samesite="lax")
    logger.info(f"Session refreshed for user {tokens.user_id}")
    return {
        "accessToken": tokens.access_token,
        "refreshToken": tokens.refresh_token,
        "csrfToken": csrf_token,
    }


@router.post("/auth/logout")
async def logout(request: Request, response: Response):
    """Revoke the caller's session tokens and the CSRF token it presented"""
    user_id = token_store.user_for_access(bearer_token(request))
    if user_id:
        token_store.revoke_user(user_id)
        logger.info(f"User {user_id} logged out")
    for header in CSRF_HEADERS:
        if request.headers.get(header):
            token_store.revoke_csrf(request.headers[header])
    response.delete_cookie(CSRF_COOKIE)
    return {"success": True, "message": "Logged out"}
