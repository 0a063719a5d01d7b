"""
Input validators — framework-agnostic, pure functions.

Each validator returns a boolean or a list of unmet requirements; callers
(request DTOs, services) decide how to report the failure.
"""

from __future__ import annotations

import re
from typing import List

from email_validator import EmailNotValidError, validate_email as _validate_email

_USERNAME_RE = re.compile(r"^[a-z0-9_]{3,20}$")
_SPECIAL_RE = re.compile(r"[^A-Za-z0-9]")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
FULL_NAME_MIN_LENGTH = 3


def validate_otp_code(code: str, length: int = 6) -> bool:
    """Return True if *code* is exactly *length* ASCII digits.

    ``str.isdigit`` is not enough: it accepts superscripts and other
    Unicode digits.
    """
    return (
        isinstance(code, str)
        and len(code) == length
        and code.isascii()
        and code.isdigit()
    )


def validate_username(username: str) -> bool:
    """3–20 characters: lower-case letters, digits and underscores."""
    return bool(_USERNAME_RE.match(username))


def validate_email(email: str) -> bool:
    """Syntax-only email check (no DNS lookups)."""
    try:
        _validate_email(email, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def password_policy_violations(password: str) -> List[str]:
    """Return the password requirements *password* does not meet.

    An empty list means the password is acceptable.
    """
    if not password:
        return ["Password is required"]

    missing = []
    if len(password) < PASSWORD_MIN_LENGTH:
        missing.append(f"At least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        missing.append(f"Maximum {PASSWORD_MAX_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        missing.append("At least one uppercase letter")
    if not re.search(r"[a-z]", password):
        missing.append("At least one lowercase letter")
    if not re.search(r"[0-9]", password):
        missing.append("At least one number")
    if not _SPECIAL_RE.search(password):
        missing.append("At least one special character")
    return missing


def validate_password(password: str) -> bool:
    return not password_policy_violations(password)
