"""
Password reset tokens: request, validate, consume.

States of a record's reset token:

    NoRequest ──request_reset──▶ TokenIssued ──consume──▶ Consumed
                                   │  ├──ttl passes──▶ Expired
                                   │  └──request again─▶ Replaced

The raw token (256-bit, hex) is returned exactly once for the emailed link;
only its SHA-256 digest is stored, and the record is located by that digest.

Every client-visible failure is the single InvalidOrExpired outcome: a wrong
token, an expired token and a token already used are indistinguishable.
Requests for unknown or unverified emails succeed without touching any state.

A successful reset also clears the remember-me token, forcing every other
session to re-authenticate.
"""

from __future__ import annotations

import hmac
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from config import CredentialPolicySettings
from errors import AccountUnavailable, InvalidOrExpired, ResendThrottled
from infrastructure.session.reset_grants import ResetGrant, ResetGrantStore
from repositories.protocol import CredentialStore
from schemas.dto.requests.auth import (
    CompleteResetRequest,
    ConsumeResetRequest,
    RequestPasswordResetRequest,
)
from schemas.models.credential import CredentialDoc
from services.record_updates import Decision, apply_update
from shared.crypto import (
    Argon2SecretHasher,
    SecretHasher,
    TokenDigestHasher,
    hash_off_loop,
)
from shared.datetime_utils import Clock, add_seconds, seconds_between, utcnow
from shared.generators import generate_grant_id, generate_secure_token
from shared.logging import get_logger
from shared.rate_window import RateWindow

log = get_logger(__name__)


@dataclass(frozen=True)
class ResetRequestResult:
    """Outcome of a reset request. ``token`` is None when nothing was issued."""

    email: str
    token: Optional[str] = None
    account_id: Optional[str] = None
    full_name: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def issued(self) -> bool:
        return self.token is not None


class PasswordResetService:
    def __init__(
        self,
        store: CredentialStore,
        grants: ResetGrantStore,
        policy: CredentialPolicySettings,
        *,
        token_hasher: Optional[SecretHasher] = None,
        password_hasher: Optional[SecretHasher] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._grants = grants
        self._policy = policy
        self._token_hasher = token_hasher or TokenDigestHasher()
        self._password_hasher = password_hasher or Argon2SecretHasher()
        self._clock = clock
        self._request_window = RateWindow(
            ceiling=policy.reset_max_requests_per_window,
            window_seconds=policy.reset_window_seconds,
            cooldown_seconds=policy.reset_cooldown_seconds,
        )

    async def _reload(self, account_id: str) -> CredentialDoc:
        doc = await self._store.get(account_id)
        if doc is None:
            raise InvalidOrExpired()
        return doc

    def _token_is_live(self, doc: CredentialDoc, token_hash: str, now: datetime) -> bool:
        return (
            doc.reset_token_hash is not None
            and hmac.compare_digest(doc.reset_token_hash, token_hash)
            and doc.reset_expires_at is not None
            and doc.reset_expires_at > now
        )

    def _reset_changes(self, new_password_hash: str) -> dict:
        return {
            "password_hash": new_password_hash,
            "reset_token_hash": None,
            "reset_expires_at": None,
            "reset_request_count": 0,
            "reset_last_sent_at": None,
            "remember_token_hash": None,
            "remember_expires_at": None,
        }

    async def request_reset(
        self, request: RequestPasswordResetRequest
    ) -> ResetRequestResult:
        """Issue a reset token for a verified account, within the hourly ceiling."""
        now = self._clock()
        doc = await self._store.get_by_email(request.email)
        if doc is None or not doc.is_verified:
            log.info("password_reset_not_issued", reason="unknown_or_unverified")
            return ResetRequestResult(email=request.email)

        token = generate_secure_token(self._policy.reset_token_bytes)
        token_hash = self._token_hasher.hash(token)
        expires_at = add_seconds(now, self._policy.reset_ttl_seconds)

        async def load() -> CredentialDoc:
            current = await self._store.get(doc.account_id)
            if current is None or not current.is_verified:
                raise AccountUnavailable()
            return current

        def decide(current: CredentialDoc) -> Decision[None]:
            check = self._request_window.check(
                current.reset_request_count, current.reset_last_sent_at, now
            )
            if not check.allowed:
                log.warning(
                    "password_reset_throttled",
                    account_id=current.account_id,
                    reason=check.reason,
                    sent_in_window=check.effective_count,
                )
                raise ResendThrottled(
                    "Too many password reset requests. Please try again later.",
                    details={
                        "reason": check.reason,
                        "retry_after": check.retry_after_seconds,
                    },
                )
            return Decision(
                changes={
                    "reset_token_hash": token_hash,
                    "reset_expires_at": expires_at,
                    "reset_request_count": check.next_count,
                    "reset_last_sent_at": now,
                }
            )

        try:
            updated, _ = await apply_update(
                self._store,
                load,
                decide,
                now=now,
                max_retries=self._policy.cas_max_retries,
                initial=doc,
            )
        except AccountUnavailable:
            return ResetRequestResult(email=request.email)

        log.info(
            "password_reset_issued",
            account_id=updated.account_id,
            sent_in_window=updated.reset_request_count,
        )
        return ResetRequestResult(
            email=updated.email,
            token=token,
            account_id=updated.account_id,
            full_name=updated.full_name,
            expires_at=expires_at,
        )

    async def _locate(self, raw_token: str, now: datetime) -> tuple[CredentialDoc, str]:
        token_hash = self._token_hasher.hash(raw_token)
        doc = await self._store.get_by_reset_token_hash(token_hash)
        if doc is None or not self._token_is_live(doc, token_hash, now):
            log.warning("password_reset_token_rejected")
            raise InvalidOrExpired()
        return doc, token_hash

    async def _apply_new_password(
        self,
        doc: CredentialDoc,
        token_hash: str,
        new_password: str,
        now: datetime,
    ) -> CredentialDoc:
        new_hash = await hash_off_loop(self._password_hasher, new_password)

        def decide(current: CredentialDoc) -> Decision[None]:
            # Re-checked on every attempt: a concurrent consume or a newer
            # request must win over this one.
            if not self._token_is_live(current, token_hash, now):
                raise InvalidOrExpired()
            return Decision(changes=self._reset_changes(new_hash))

        updated, _ = await apply_update(
            self._store,
            lambda: self._reload(doc.account_id),
            decide,
            now=now,
            max_retries=self._policy.cas_max_retries,
            initial=doc,
        )
        log.info("password_reset_completed", account_id=updated.account_id)
        return updated

    async def consume_reset(self, request: ConsumeResetRequest) -> CredentialDoc:
        """Single-step reset: validate the raw token and set the new password."""
        now = self._clock()
        doc, token_hash = await self._locate(request.token, now)
        return await self._apply_new_password(doc, token_hash, request.new_password, now)

    async def authorize_reset(self, raw_token: str) -> ResetGrant:
        """Validate a link's token without consuming it and open a server-held grant."""
        now = self._clock()
        doc, token_hash = await self._locate(raw_token, now)
        remaining = seconds_between(now, doc.reset_expires_at)
        ttl = max(1, min(self._policy.reset_grant_ttl_seconds, math.floor(remaining)))
        grant = ResetGrant(
            grant_id=generate_grant_id(),
            account_id=doc.account_id,
            token_hash=token_hash,
            expires_at=add_seconds(now, ttl),
        )
        await self._grants.put(grant, ttl)
        log.info("password_reset_authorized", account_id=doc.account_id, ttl=ttl)
        return grant

    async def complete_reset(
        self, grant_id: str, request: CompleteResetRequest
    ) -> CredentialDoc:
        """Second step of the link flow: set the password under a live grant."""
        now = self._clock()
        grant = await self._grants.get(grant_id) if grant_id else None
        if grant is None or grant.expires_at <= now:
            log.warning("password_reset_grant_rejected")
            raise InvalidOrExpired("Session expired. Please start again.")

        try:
            doc = await self._reload(grant.account_id)
            updated = await self._apply_new_password(
                doc, grant.token_hash, request.new_password, now
            )
        except InvalidOrExpired:
            await self._grants.discard(grant_id)
            raise
        await self._grants.discard(grant_id)
        return updated

    async def discard_grant(self, grant_id: str) -> None:
        """Drop a grant when its session ends without a reset."""
        if grant_id:
            await self._grants.discard(grant_id)
