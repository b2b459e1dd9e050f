"""Checkout Client Configuration"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Client settings loaded from environment"""

    # Restaurant API
    api_base_url: str = "http://localhost:5000"
    request_timeout: float = 30.0

    # Pricing
    tax_rate: float = 0.1
    delivery_fee: float = 5.0
    currency: str = "EUR"

    # Client-side storage
    storage_path: str = ".restaurant_client.json"
    debug_log_size: int = 5

    # Session refresh
    min_refresh_interval: float = 5.0  # seconds
    max_refresh_failures: int = 3

    # CSRF
    csrf_header_names: list[str] = ["X-CSRF-Token", "X-XSRF-TOKEN"]
    csrf_cookie_name: str = "XSRF-TOKEN"

    # Submission behaviour
    repair_malformed_items: bool = True
    outcome_policy: str = "optimistic"  # "optimistic" or "strict"
    register_cash_payments: bool = False

    # Confirmation redirect
    navigation_max_attempts: int = 3
    navigation_backoff: float = 0.5  # seconds, doubled per attempt

    class Config:
        env_prefix = "RESTAURANT_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
