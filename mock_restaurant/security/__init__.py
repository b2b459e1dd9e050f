# Security

from .csrf_middleware import CSRFVerificationMiddleware, optional_auth, require_auth
from .tokens import TokenStore, token_store

__all__ = [
    "CSRFVerificationMiddleware",
    "optional_auth",
    "require_auth",
    "TokenStore",
    "token_store",
]
