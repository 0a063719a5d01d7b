"""
Secret hashing — one-way hash and verify for passwords, OTPs and tokens.

Two implementations share the SecretHasher protocol:

- Argon2SecretHasher: slow, salted argon2id (via argon2-cffi). Used for
  passwords and 6-digit OTPs, whose low entropy needs a costly hash.
- TokenDigestHasher: SHA-256 hex digest compared in constant time. Used for
  256-bit random tokens (reset links, remember-me), where a deterministic
  digest lets the store locate a record by the presented token.

verify() never raises: a malformed digest, a missing digest or any library
error is reported as ``False``.

argon2 is CPU-bound; async callers go through hash_off_loop() and
verify_off_loop(), which run the hasher in a worker thread.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
from typing import Optional, Protocol

from argon2 import PasswordHasher
from argon2.exceptions import Argon2Error, InvalidHashError

from shared.logging import get_logger

log = get_logger(__name__)


class SecretHasher(Protocol):
    def hash(self, secret: str) -> str: ...

    def verify(self, secret: str, digest: Optional[str]) -> bool: ...

    def needs_rehash(self, digest: str) -> bool: ...


class Argon2SecretHasher:
    """argon2id hashing with per-hash salt."""

    def __init__(self, password_hasher: Optional[PasswordHasher] = None) -> None:
        self._hasher = password_hasher or PasswordHasher()

    def hash(self, secret: str) -> str:
        return self._hasher.hash(secret)

    def verify(self, secret: str, digest: Optional[str]) -> bool:
        if not digest:
            return False
        try:
            return self._hasher.verify(digest, secret)
        except InvalidHashError:
            log.warning("secret_digest_malformed", hasher="argon2")
            return False
        except Argon2Error:
            # VerifyMismatchError and VerificationError both land here
            return False

    def needs_rehash(self, digest: str) -> bool:
        try:
            return self._hasher.check_needs_rehash(digest)
        except (InvalidHashError, Argon2Error):
            return True


class TokenDigestHasher:
    """SHA-256 digest for high-entropy random tokens."""

    def hash(self, secret: str) -> str:
        return hashlib.sha256(secret.encode("utf-8")).hexdigest()

    def verify(self, secret: str, digest: Optional[str]) -> bool:
        if not digest:
            return False
        return hmac.compare_digest(
            self.hash(secret).encode("ascii"), digest.encode("utf-8")
        )

    def needs_rehash(self, digest: str) -> bool:
        return False



async def hash_off_loop(hasher: SecretHasher, secret: str) -> str:
    return await asyncio.to_thread(hasher.hash, secret)


async def verify_off_loop(
    hasher: SecretHasher, secret: str, digest: Optional[str]
) -> bool:
    return await asyncio.to_thread(hasher.verify, secret, digest)
