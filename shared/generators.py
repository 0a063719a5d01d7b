"""
Random code and token generators — pure, side-effect-free functions.

All generators use the ``secrets`` module.
"""

from __future__ import annotations

import secrets


def generate_otp_code(length: int = 6) -> str:
    """Generate a uniformly random numeric OTP.

    Leading zeros are preserved, so ``"004721"`` is as likely as ``"984721"``.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of exactly *length* decimal digits.
    """
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def generate_secure_token(nbytes: int = 32) -> str:
    """Generate a hex-encoded random token carrying ``nbytes * 8`` bits of entropy.

    Hex keeps the token safe to embed in links and cookies without escaping.
    """
    return secrets.token_hex(nbytes)


def generate_grant_id() -> str:
    """Opaque identifier for a server-held reset grant."""
    return secrets.token_urlsafe(24)
