"""
Checkout Errors

Exception taxonomy shared by every component of the checkout client,
plus helpers that turn an HTTP response into the matching error.
"""

from typing import Any, Optional

import httpx


NO_RESPONSE_MESSAGE = "No response from server. Please check your internet connection."
AUTH_REQUIRED_MESSAGE = "Authentication required. Please log in again."
SECURITY_TOKEN_MESSAGE = "Security token expired. Please refresh the page and try again."
INVALID_ORDER_MESSAGE = "Invalid order data. Please check your information."
EMPTY_CART_MESSAGE = "Your cart is empty. Please add items before checkout."


class RestaurantClientError(Exception):
    """Base exception for restaurant client errors"""
    pass


class CheckoutError(RestaurantClientError):
    """Base class for errors surfaced to the user during checkout"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(CheckoutError):
    """Client-side validation failed; nothing was sent"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        errors: Optional[dict[str, str]] = None,
    ):
        super().__init__(message)
        self.field = field
        self.errors = errors or ({field: message} if field else {})


class SecurityTokenError(CheckoutError):
    """CSRF token missing or rejected"""
    pass


class AuthenticationError(CheckoutError):
    """Authentication-class (401) failure"""
    pass


class SessionLoggedOutError(AuthenticationError):
    """Session was force-logged-out after repeated refresh failures"""
    pass


class AmbiguousOutcomeError(CheckoutError):
    """The call may have succeeded server-side but the client cannot prove it"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class HardFailureError(CheckoutError):
    """Server rejected the call or returned nothing usable"""
    pass


def parse_json(response: httpx.Response) -> Optional[Any]:
    """Decode a JSON body, returning None when it is absent or malformed"""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def response_message(response: httpx.Response) -> Optional[str]:
    """Pull the server's error message out of a response body"""
    body = parse_json(response)
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    elif isinstance(body, str) and body:
        return body
    return None


def is_csrf_failure(response: httpx.Response) -> bool:
    """A 403 whose message names the CSRF token"""
    if response.status_code != 403:
        return False
    message = response_message(response) or ""
    return "csrf" in message.lower()


def error_for_response(
    response: httpx.Response,
    default_message: Optional[str] = None,
) -> CheckoutError:
    """
    Map a non-2xx response to the error taxonomy.

    Args:
        response: The failed response
        default_message: Message used for 400s when the server gives none

    Returns:
        The error to raise
    """
    status = response.status_code
    message = response_message(response)

    if status == 401:
        return AuthenticationError(AUTH_REQUIRED_MESSAGE, status_code=status)
    if is_csrf_failure(response):
        return SecurityTokenError(SECURITY_TOKEN_MESSAGE, status_code=status)
    if status == 400:
        return HardFailureError(
            message or default_message or INVALID_ORDER_MESSAGE,
            status_code=status,
        )
    if status == 403:
        return HardFailureError(message or "Permission denied", status_code=status)
    if status == 404:
        return HardFailureError(message or "Not found", status_code=status)
    return HardFailureError(
        f"Server error ({status}). Please try again later.",
        status_code=status,
    )


def is_connect_failure(exc: httpx.TransportError) -> bool:
    """True when the request never reached the server"""
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout))
