"""
Registration OTP lifecycle: register, issue (resend) and verify.

States of a record's code:

    NoActiveCode ──issue──▶ ActiveCode ──verify ok──▶ Consumed (is_verified)
                               │  ├──ttl passes──▶ Expired
                               │  └──issue again─▶ Replaced (old code dead)

Throttles (all windows lazily rolled by shared.rate_window):
- resend: ``otp_max_resends_per_window`` per ``otp_window_seconds`` and
  ``otp_resend_cooldown_seconds`` between codes → ResendThrottled
- verify: ``otp_max_verify_attempts`` failures per window → AttemptsExhausted,
  checked before the hash is consulted

Missing and expired codes count as failed attempts, so probing never gets an
unlimited window.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from config import CredentialPolicySettings
from errors import (
    AccountUnavailable,
    AttemptsExhausted,
    Expired,
    Mismatch,
    NoActiveCode,
    OtpVerificationError,
    ResendThrottled,
    ValidationError,
)
from repositories.protocol import CredentialStore
from schemas.dto.requests.auth import RegisterRequest, ResendOtpRequest, VerifyOtpRequest
from schemas.models.credential import CredentialDoc
from services.record_updates import Decision, apply_update
from shared.crypto import Argon2SecretHasher, SecretHasher, hash_off_loop, verify_off_loop
from shared.datetime_utils import Clock, add_seconds, utcnow
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.rate_window import REASON_COOLDOWN, RateWindow
from shared.validators import validate_otp_code

log = get_logger(__name__)

_CLEARED_OTP_STATE = {
    "otp_hash": None,
    "otp_expires_at": None,
    "otp_resend_count": 0,
    "otp_last_sent_at": None,
    "otp_verify_attempts": 0,
    "otp_last_attempt_at": None,
}


@dataclass(frozen=True)
class IssuedOtp:
    """A freshly issued code. ``code`` is plaintext: deliver it once, never store it."""

    account_id: str
    email: str
    full_name: Optional[str]
    code: str
    expires_at: datetime


class OtpService:
    def __init__(
        self,
        store: CredentialStore,
        policy: CredentialPolicySettings,
        *,
        otp_hasher: Optional[SecretHasher] = None,
        password_hasher: Optional[SecretHasher] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._policy = policy
        self._otp_hasher = otp_hasher or Argon2SecretHasher()
        self._password_hasher = password_hasher or self._otp_hasher
        self._clock = clock
        self._resend_window = RateWindow(
            ceiling=policy.otp_max_resends_per_window,
            window_seconds=policy.otp_window_seconds,
            cooldown_seconds=policy.otp_resend_cooldown_seconds,
        )
        self._attempt_window = RateWindow(
            ceiling=policy.otp_max_verify_attempts,
            window_seconds=policy.otp_window_seconds,
        )

    async def _new_code(self, now: datetime) -> tuple[str, str, datetime]:
        code = generate_otp_code(self._policy.otp_length)
        code_hash = await hash_off_loop(self._otp_hasher, code)
        return code, code_hash, add_seconds(now, self._policy.otp_ttl_seconds)

    async def _load_unverified(self, account_id: str) -> CredentialDoc:
        doc = await self._store.get(account_id)
        if doc is None or doc.is_verified:
            raise AccountUnavailable()
        return doc

    async def register(self, request: RegisterRequest) -> IssuedOtp:
        """Create an unverified record with its first code already issued."""
        now = self._clock()
        code, code_hash, expires_at = await self._new_code(now)
        password_hash = await hash_off_loop(self._password_hasher, request.password)
        doc = CredentialDoc(
            email=request.email,
            username=request.username,
            full_name=request.full_name,
            password_hash=password_hash,
            otp_hash=code_hash,
            otp_expires_at=expires_at,
            otp_resend_count=1,
            otp_last_sent_at=now,
            created_at=now,
            updated_at=now,
        )
        created = await self._store.create(doc)
        log.info("account_registered", account_id=created.account_id)
        return IssuedOtp(
            account_id=created.account_id,
            email=created.email,
            full_name=created.full_name,
            code=code,
            expires_at=expires_at,
        )

    async def issue(self, request: ResendOtpRequest) -> IssuedOtp:
        """Issue a replacement code, subject to the resend cooldown and hourly ceiling."""
        now = self._clock()
        code, code_hash, expires_at = await self._new_code(now)

        def decide(doc: CredentialDoc) -> Decision[None]:
            check = self._resend_window.check(
                doc.otp_resend_count, doc.otp_last_sent_at, now
            )
            if not check.allowed:
                log.warning(
                    "otp_resend_throttled",
                    account_id=doc.account_id,
                    reason=check.reason,
                    sent_in_window=check.effective_count,
                )
                message = (
                    "Please wait a moment before requesting another code."
                    if check.reason == REASON_COOLDOWN
                    else "You have reached the hourly resend limit. Please try again later."
                )
                raise ResendThrottled(
                    message,
                    details={
                        "reason": check.reason,
                        "retry_after": check.retry_after_seconds,
                    },
                )
            return Decision(
                changes={
                    "otp_hash": code_hash,
                    "otp_expires_at": expires_at,
                    "otp_resend_count": check.next_count,
                    "otp_last_sent_at": now,
                }
            )

        doc, _ = await apply_update(
            self._store,
            lambda: self._load_unverified(request.account_id),
            decide,
            now=now,
            max_retries=self._policy.cas_max_retries,
        )
        log.info("otp_issued", account_id=doc.account_id, sent_in_window=doc.otp_resend_count)
        return IssuedOtp(
            account_id=doc.account_id,
            email=doc.email,
            full_name=doc.full_name,
            code=code,
            expires_at=expires_at,
        )

    async def verify(self, request: VerifyOtpRequest) -> CredentialDoc:
        """Check a presented code; on success the account becomes verified."""
        if not validate_otp_code(request.code, self._policy.otp_length):
            raise ValidationError(
                f"The code must be exactly {self._policy.otp_length} digits.",
                field="code",
            )
        now = self._clock()

        async def decide(doc: CredentialDoc) -> Decision[None]:
            check = self._attempt_window.check(
                doc.otp_verify_attempts, doc.otp_last_attempt_at, now
            )
            if not check.allowed:
                log.warning("otp_attempts_exhausted", account_id=doc.account_id)
                raise AttemptsExhausted(
                    details={"retry_after": check.retry_after_seconds}
                )

            failed_attempt = {
                "otp_verify_attempts": check.next_count,
                "otp_last_attempt_at": now,
            }
            if not doc.has_active_otp:
                return Decision(changes=failed_attempt, error=NoActiveCode())
            if doc.otp_expires_at < now:
                return Decision(changes=failed_attempt, error=Expired())
            if not await verify_off_loop(self._otp_hasher, request.code, doc.otp_hash):
                return Decision(changes=failed_attempt, error=Mismatch())

            return Decision(changes={"is_verified": True, **_CLEARED_OTP_STATE})

        try:
            doc, _ = await apply_update(
                self._store,
                lambda: self._load_unverified(request.account_id),
                decide,
                now=now,
                max_retries=self._policy.cas_max_retries,
            )
        except OtpVerificationError as e:
            log.warning(
                "otp_verify_failed", account_id=request.account_id, reason=e.error_code
            )
            raise

        log.info("otp_verified", account_id=doc.account_id)
        return doc
