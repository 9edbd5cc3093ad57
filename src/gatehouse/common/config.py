"""Gatehouse configuration via pydantic-settings."""

import warnings
from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "secret_key": "insecure-dev-key-change-me",
    "super_admin_key": "insecure-super-admin-key-change-me",
}


class GatehouseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GATEHOUSE_")

    environment: str = "development"
    log_level: str = "INFO"

    # Token signing. Rotating secret_key invalidates every issued access token.
    secret_key: str = "insecure-dev-key-change-me"
    jwt_algorithm: str = "HS256"

    # Session lifetimes (seconds)
    access_token_ttl: int = 86400  # 24 hours
    refresh_token_ttl: int = 604800  # 7 days
    reset_token_ttl: int = 3600  # 1 hour
    revoked_retention_days: int = 30

    # Password hashing (argon2id work factor)
    password_min_length: int = 8
    hash_time_cost: int = 3
    hash_memory_cost: int = 65536  # KiB
    hash_parallelism: int = 4

    # Tenants
    trial_days: int = 14
    default_user_limit: int = 100
    plan_user_limits: dict[str, int] = {
        "trial": 100,
        "active": 100,
        "enterprise": 1000,
    }

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/gatehouse.db"

    # API
    api_title: str = "Gatehouse"
    api_version: str = "0.1.0"
    super_admin_key: str = "insecure-super-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # Notification delivery
    email_provider: str = ""  # "sendgrid", "resend" or empty for log-only
    email_api_key: str = ""
    email_from: str = "no-reply@gatehouse.local"
    email_from_name: str = "Gatehouse"
    frontend_url: str = "http://localhost:3000"

    @property
    def access_token_lifetime(self) -> timedelta:
        return timedelta(seconds=self.access_token_ttl)

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return timedelta(seconds=self.refresh_token_ttl)

    @property
    def reset_token_lifetime(self) -> timedelta:
        return timedelta(seconds=self.reset_token_ttl)

    def user_limit_for(self, subscription_status: str) -> int:
        """Return the user ceiling for a subscription plan."""
        return self.plan_user_limits.get(subscription_status, self.default_user_limit)

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"GATEHOUSE_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys; set GATEHOUSE_SECRET_KEY and "
                "GATEHOUSE_SUPER_ADMIN_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> GatehouseSettings:
    settings = GatehouseSettings()
    settings.validate_for_production()
    return settings
