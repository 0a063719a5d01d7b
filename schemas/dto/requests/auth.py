"""
Request DTOs for credential operations.

Each operation receives one typed command value, validated before any
service sees it. The same models are the JSON bodies of the HTTP routes.

RegisterRequest               — POST /auth/register
VerifyOtpRequest              — POST /auth/verify-email
ResendOtpRequest              — POST /auth/resend-verification
LoginRequest                  — POST /auth/login
RequestPasswordResetRequest   — POST /auth/request-password-reset
ConsumeResetRequest           — POST /auth/reset-password/token
CompleteResetRequest          — POST /auth/reset-password  (after GET with token)
ChangePasswordRequest         — POST /auth/change-password  (signed in via remember-me)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.validators import (
    FULL_NAME_MIN_LENGTH,
    password_policy_violations,
    validate_email,
    validate_otp_code,
    validate_username,
)


def _check_password_policy(password: str) -> str:
    missing = password_policy_violations(password)
    if missing:
        raise ValueError("Password must include: " + ", ".join(missing))
    return password


class _NewPasswordMixin(BaseModel):
    new_password: str
    confirm_password: Optional[str] = None

    @field_validator("new_password")
    @classmethod
    def _policy(cls, value: str) -> str:
        return _check_password_policy(value)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("Passwords do not match.")
        return self


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    email: str
    full_name: str
    password: str
    confirm_password: str

    @field_validator("username")
    @classmethod
    def _username(cls, value: str) -> str:
        value = value.strip().lower()
        if not validate_username(value):
            raise ValueError(
                "Username must be 3-20 characters (letters, numbers, underscores only)."
            )
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip().lower()
        if not validate_email(value):
            raise ValueError("A valid email is required.")
        return value

    @field_validator("full_name")
    @classmethod
    def _full_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < FULL_NAME_MIN_LENGTH:
            raise ValueError(
                f"Full name must be at least {FULL_NAME_MIN_LENGTH} characters."
            )
        return value

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        return _check_password_policy(value)

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match.")
        return self


class VerifyOtpRequest(BaseModel):
    """Request body for POST /auth/verify-email.

    ``code`` must be exactly six ASCII digits; anything else is rejected here,
    before any attempt counter is touched.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    account_id: str
    code: str

    @field_validator("code")
    @classmethod
    def _code(cls, value: str) -> str:
        if value == "":
            raise ValueError("Please enter the code.")
        if not validate_otp_code(value):
            raise ValueError("The code must be exactly 6 digits.")
        return value


class ResendOtpRequest(BaseModel):
    """Request body for POST /auth/resend-verification."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    account_id: str


class LoginRequest(BaseModel):
    """Request body for POST /auth/login. ``identifier`` is a username or email."""

    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(alias="username_email", min_length=1)
    password: str = Field(min_length=1)
    remember_me: bool = False

    @field_validator("identifier")
    @classmethod
    def _normalise_identifier(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("Username or email is required.")
        return value


class RequestPasswordResetRequest(BaseModel):
    """Request body for POST /auth/request-password-reset."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.lower()
        if not validate_email(value):
            raise ValueError("Please enter a valid email.")
        return value


class ConsumeResetRequest(_NewPasswordMixin):
    """Single-step reset: the raw token from the emailed link plus the new password."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)


class CompleteResetRequest(_NewPasswordMixin):
    """Second page of the link flow; the grant id travels in the session cookie."""

    model_config = ConfigDict(populate_by_name=True)


class ChangePasswordRequest(_NewPasswordMixin):
    """Signed-in password change; the current password is re-checked first."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(min_length=1)
