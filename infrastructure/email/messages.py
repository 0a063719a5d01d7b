"""Plain-text bodies for the verification-code and reset-link emails."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode


def _greeting(full_name: Optional[str]) -> str:
    return f"Hi {full_name}," if full_name else "Hi,"


def _minutes(seconds: int) -> str:
    minutes = max(1, seconds // 60)
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def build_reset_link(app_url: str, token: str) -> str:
    return f"{app_url.rstrip('/')}/auth/reset-password?{urlencode({'token': token})}"


def verification_code_message(
    full_name: Optional[str], code: str, ttl_seconds: int, app_name: str
) -> tuple[str, str]:
    """Return ``(subject, body)`` for a registration code email."""
    subject = f"Your verification code - {app_name}"
    body = (
        f"{_greeting(full_name)}\n\n"
        f"Use the code below to verify your email:\n\n"
        f"    {code}\n\n"
        f"This code will expire in {_minutes(ttl_seconds)}.\n\n"
        f"If you didn't request this, you can ignore this email.\n\n"
        f"Best regards,\n{app_name}"
    )
    return subject, body


def password_reset_message(
    full_name: Optional[str], link: str, ttl_seconds: int, app_name: str
) -> tuple[str, str]:
    """Return ``(subject, body)`` for a password reset link email."""
    subject = f"Password reset request - {app_name}"
    body = (
        f"{_greeting(full_name)}\n\n"
        f"You requested a password reset. Open the link below to set a new one "
        f"(expires in {_minutes(ttl_seconds)}):\n\n"
        f"{link}\n\n"
        f"If you didn't request this, you can ignore it.\n\n"
        f"Thanks,\n{app_name}"
    )
    return subject, body
