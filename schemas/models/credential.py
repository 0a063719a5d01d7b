"""
Credential record document model.

Maps to the `credentials` MongoDB collection — one document per account.

Only one-way digests are stored: otp_hash (argon2), reset_token_hash and
remember_token_hash (SHA-256). There is deliberately no plaintext OTP field.

`version` is incremented on every write and is the compare-and-set token that
makes each read → decide → write sequence atomic.

Counters pair with an anchor timestamp and are only meaningful inside their
window (see shared.rate_window):

    otp_resend_count    / otp_last_sent_at        (1 h, plus 60 s cooldown)
    otp_verify_attempts / otp_last_attempt_at     (1 h)
    reset_request_count / reset_last_sent_at      (1 h)
    login_attempts      / last_login_attempt_at   (lockout window)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import ensure_utc

_TIMESTAMP_FIELDS = (
    "otp_expires_at",
    "otp_last_sent_at",
    "otp_last_attempt_at",
    "reset_expires_at",
    "reset_last_sent_at",
    "last_login_attempt_at",
    "remember_expires_at",
    "last_login_at",
    "created_at",
    "updated_at",
)


class CredentialDoc(MongoBaseModel):
    """Document model for the `credentials` collection."""

    # Identity
    email: str
    username: str
    full_name: Optional[str] = None
    password_hash: str
    is_verified: bool = False

    # Registration OTP
    otp_hash: Optional[str] = None
    otp_expires_at: Optional[datetime] = None
    otp_resend_count: int = Field(default=0, ge=0)
    otp_last_sent_at: Optional[datetime] = None
    otp_verify_attempts: int = Field(default=0, ge=0)
    otp_last_attempt_at: Optional[datetime] = None

    # Password reset
    reset_token_hash: Optional[str] = None
    reset_expires_at: Optional[datetime] = None
    reset_request_count: int = Field(default=0, ge=0)
    reset_last_sent_at: Optional[datetime] = None

    # Login governor
    login_attempts: int = Field(default=0, ge=0)
    last_login_attempt_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    # Remember-me
    remember_token_hash: Optional[str] = None
    remember_expires_at: Optional[datetime] = None

    version: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(*_TIMESTAMP_FIELDS)
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def account_id(self) -> str:
        return str(self.id) if self.id is not None else ""

    @property
    def has_active_otp(self) -> bool:
        return self.otp_hash is not None and self.otp_expires_at is not None

    def with_changes(self, changes: dict) -> "CredentialDoc":
        """Copy of this record after a successful write of *changes*."""
        return self.model_copy(update={**changes, "version": self.version + 1})
