"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

CredentialPolicySettings holds every TTL, window, ceiling and cooldown the
credential core enforces. Defaults match the production policy:
10-minute OTPs, 5 resends/hour with a 60 s cooldown, 5 verify attempts/hour,
1-hour reset links capped at 3 requests/hour, and a 15-minute lockout after
5 failed logins.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "credential-guard"
    credentials_collection: str = "credentials"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without Redis, reset grants live in process memory
    redis_uri: Optional[str] = None


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@example.com"
    zepto_from_name: str = "Credential Guard"
    email_timeout_seconds: float = 5.0


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class CredentialPolicySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Registration OTP
    otp_length: int = Field(default=6, ge=4, le=10)
    otp_ttl_seconds: int = Field(default=600, gt=0)
    otp_window_seconds: int = Field(default=3600, gt=0)
    otp_resend_cooldown_seconds: int = Field(default=60, ge=0)
    otp_max_resends_per_window: int = Field(default=5, gt=0)
    otp_max_verify_attempts: int = Field(default=5, gt=0)

    # Password reset
    reset_ttl_seconds: int = Field(default=3600, gt=0)
    reset_window_seconds: int = Field(default=3600, gt=0)
    reset_cooldown_seconds: int = Field(default=0, ge=0)
    reset_max_requests_per_window: int = Field(default=3, gt=0)
    reset_grant_ttl_seconds: int = Field(default=900, gt=0)
    reset_token_bytes: int = Field(default=32, ge=16)

    # Login lockout
    login_max_attempts: int = Field(default=5, gt=0)
    login_lockout_seconds: int = Field(default=900, gt=0)

    # Remember-me
    remember_ttl_seconds: int = Field(default=2592000, gt=0)
    remember_token_bytes: int = Field(default=32, ge=16)

    # Compare-and-set retries before a write is abandoned
    cas_max_retries: int = Field(default=5, gt=0)

    cookie_secure: bool = True


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_url: str = "http://localhost:8000"
    app_name: str = "credential-guard"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None
    policy: Optional[CredentialPolicySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        if self.policy is None:
            self.policy = CredentialPolicySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
