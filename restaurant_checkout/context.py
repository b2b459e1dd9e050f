"""Per-session security state shared by the checkout components"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SessionContext:
    """
    Auth tokens, CSRF token and refresh bookkeeping for one client session.

    Only CsrfTokenManager writes the csrf_* fields and only SessionGuard
    writes the auth and refresh fields. In-flight tasks let concurrent
    callers share one fetch or refresh.
    """
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    csrf_token: Optional[str] = None
    refresh_failures: int = 0
    last_refresh_attempt: Optional[float] = None
    logged_out: bool = False
    refresh_task: Optional[asyncio.Task] = field(default=None, repr=False)
    csrf_task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def clear(self) -> None:
        """Drop every token and reset refresh bookkeeping"""
        self.access_token = None
        self.refresh_token = None
        self.csrf_token = None
        self.refresh_failures = 0
        self.last_refresh_attempt = None
