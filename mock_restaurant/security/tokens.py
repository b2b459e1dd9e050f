"""CSRF and session token storage for mock restaurant"""

import secrets
from dataclasses import dataclass
from typing import Optional


@dataclass
class SessionTokens:
    access_token: str
    refresh_token: str
    user_id: str


class TokenStore:
    """In-memory CSRF tokens and access/refresh token pairs"""

    MAX_CSRF_TOKENS = 1000

    def __init__(self):
        self.csrf_tokens: list[str] = []
        self.access_tokens: dict[str, str] = {}  # access token -> user id
        self.refresh_tokens: dict[str, str] = {}  # refresh token -> user id

    # ==================== CSRF ====================

    def issue_csrf(self) -> str:
        token = secrets.token_urlsafe(32)
        self.csrf_tokens.append(token)
        del self.csrf_tokens[: -self.MAX_CSRF_TOKENS]
        return token

    def is_valid_csrf(self, token: Optional[str]) -> bool:
        return bool(token) and token in self.csrf_tokens

    def revoke_csrf(self, token: str) -> None:
        if token in self.csrf_tokens:
            self.csrf_tokens.remove(token)

    # ==================== Sessions ====================

    def issue_session(self, user_id: str) -> SessionTokens:
        tokens = SessionTokens(
            access_token=secrets.token_urlsafe(24),
            refresh_token=secrets.token_urlsafe(32),
            user_id=user_id,
        )
        self.access_tokens[tokens.access_token] = user_id
        self.refresh_tokens[tokens.refresh_token] = user_id
        return tokens

    def user_for_access(self, access_token: Optional[str]) -> Optional[str]:
        if not access_token:
            return None
        return self.access_tokens.get(access_token)

    def rotate(self, refresh_token: Optional[str]) -> Optional[SessionTokens]:
        """Exchange a refresh token for a new pair; the old one stops working"""
        user_id = self.refresh_tokens.pop(refresh_token or "", None)
        if user_id is None:
            return None
        return self.issue_session(user_id)

    def expire_access(self, access_token: str) -> None:
        self.access_tokens.pop(access_token, None)

    def revoke_user(self, user_id: str) -> None:
        self.access_tokens = {t: u for t, u in self.access_tokens.items() if u != user_id}
        self.refresh_tokens = {t: u for t, u in self.refresh_tokens.items() if u != user_id}

    def reset(self) -> None:
        self.csrf_tokens.clear()
        self.access_tokens.clear()
        self.refresh_tokens.clear()


# Singleton instance
token_store = TokenStore()
