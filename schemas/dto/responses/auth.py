"""
Response DTOs for credential endpoints.

RegisterResponse      — POST /auth/register  (201)
VerifyEmailResponse   — POST /auth/verify-email  (200)
ResendResponse        — POST /auth/resend-verification  (200)
LoginResponse         — POST /auth/login, POST /auth/resume  (200)
ResetAuthorizedResponse — GET /auth/reset-password  (200)
MessageResponse       — generic acknowledgement (reset request, logout, reset done)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class MessageResponse(BaseModel):
    """Generic success/message response returned by several endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: Optional[str] = None


class RegisterResponse(BaseModel):
    """Response body for POST /auth/register (201)."""

    model_config = ConfigDict(populate_by_name=True)

    account_id: str
    requires_verification: bool
    verification_sent: bool
    code_expires_at: datetime


class VerifyEmailResponse(BaseModel):
    """Response body for POST /auth/verify-email (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    email_verified: bool


class ResendResponse(BaseModel):
    """Response body for POST /auth/resend-verification (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    code_expires_at: datetime


class LoginResponse(BaseModel):
    """Response body for POST /auth/login (200).

    The remember-me cookie, when requested, is set on the response rather than
    returned in the body.
    """

    model_config = ConfigDict(populate_by_name=True)

    account_id: str
    username: str
    email: str
    email_verified: bool
    remember_me: bool = False


class ResetAuthorizedResponse(BaseModel):
    """Response body for GET /auth/reset-password?token=... (200)."""

    model_config = ConfigDict(populate_by_name=True)

    valid: bool
    expires_at: datetime
