"""
Login attempt governor: failed-login counting and temporary lockout.

Before the password is compared, a record with ``login_attempts`` at the
ceiling whose last failure is younger than the lockout window is rejected with
LockedOut; nothing is hashed and nothing is written. The lockout lifts on its
own once the window passes without new failures; there is no unlock job.

Unknown identifiers and wrong passwords produce the same InvalidCredentials
outcome, and unknown identifiers still pay for one argon2 verification.

A failure recorded after a lockout has lifted starts a fresh count, so the
lockout and the failure counter share one boundary.

change_password() is the signed-in counterpart of a reset: it is subject to
the same lockout, counts a wrong current password as a failed login, and
clears the remember-me token on success.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from config import CredentialPolicySettings
from errors import AccountUnavailable, EmailNotVerified, InvalidCredentials, LockedOut
from repositories.protocol import CredentialStore
from schemas.dto.requests.auth import ChangePasswordRequest, LoginRequest
from schemas.models.credential import CredentialDoc
from services.record_updates import Decision, apply_update
from services.remember_me_service import RememberMeService
from shared.crypto import Argon2SecretHasher, SecretHasher, hash_off_loop, verify_off_loop
from shared.datetime_utils import Clock, seconds_between, utcnow
from shared.generators import generate_secure_token
from shared.logging import get_logger
from shared.rate_window import effective_count

log = get_logger(__name__)


def lockout_remaining_seconds(
    doc: CredentialDoc, now: datetime, policy: CredentialPolicySettings
) -> float:
    """Seconds until the lockout lifts; 0 when the account is not locked."""
    if doc.login_attempts < policy.login_max_attempts or doc.last_login_attempt_at is None:
        return 0
    remaining = policy.login_lockout_seconds - seconds_between(doc.last_login_attempt_at, now)
    return max(0.0, remaining)


def is_locked_out(
    doc: CredentialDoc, now: datetime, policy: CredentialPolicySettings
) -> bool:
    """Derived flag, also read by the account pages."""
    return lockout_remaining_seconds(doc, now, policy) > 0


@dataclass(frozen=True)
class LoginResult:
    account: CredentialDoc
    remember_cookie: Optional[str] = None


class LoginService:
    def __init__(
        self,
        store: CredentialStore,
        policy: CredentialPolicySettings,
        remember_me: RememberMeService,
        *,
        password_hasher: Optional[SecretHasher] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._policy = policy
        self._remember_me = remember_me
        self._password_hasher = password_hasher or Argon2SecretHasher()
        self._clock = clock
        self._dummy_hash = self._password_hasher.hash(generate_secure_token(16))

    async def _reload(self, account_id: str) -> CredentialDoc:
        doc = await self._store.get(account_id)
        if doc is None:
            raise InvalidCredentials()
        return doc

    def _raise_if_locked(self, current: CredentialDoc, now: datetime) -> None:
        remaining = lockout_remaining_seconds(current, now, self._policy)
        if remaining > 0:
            log.warning(
                "login_locked_out",
                account_id=current.account_id,
                failures=current.login_attempts,
            )
            raise LockedOut(details={"retry_after": math.ceil(remaining)})

    def _failed_attempt(self, current: CredentialDoc, now: datetime) -> dict:
        # Only reached once any lockout has lifted; a full count is stale then.
        previous = current.login_attempts
        if previous >= self._policy.login_max_attempts:
            previous = 0
        failures = effective_count(
            previous,
            current.last_login_attempt_at,
            self._policy.login_lockout_seconds,
            now,
        ) + 1
        log.info("login_failed", account_id=current.account_id, failures=failures)
        return {"login_attempts": failures, "last_login_attempt_at": now}

    async def login(self, request: LoginRequest) -> LoginResult:
        now = self._clock()
        doc = await self._store.get_by_login(request.identifier)
        if doc is None:
            await verify_off_loop(self._password_hasher, request.password, self._dummy_hash)
            log.info("login_failed", reason="unknown_identifier")
            raise InvalidCredentials()

        async def decide(current: CredentialDoc) -> Decision[None]:
            self._raise_if_locked(current, now)

            if not await verify_off_loop(
                self._password_hasher, request.password, current.password_hash
            ):
                return Decision(
                    changes=self._failed_attempt(current, now),
                    error=InvalidCredentials(),
                )

            if not current.is_verified:
                log.info("login_unverified", account_id=current.account_id)
                raise EmailNotVerified()

            changes = {"login_attempts": 0, "last_login_at": now}
            if self._password_hasher.needs_rehash(current.password_hash):
                changes["password_hash"] = await hash_off_loop(
                    self._password_hasher, request.password
                )
            return Decision(changes=changes)

        account, _ = await apply_update(
            self._store,
            lambda: self._reload(doc.account_id),
            decide,
            now=now,
            max_retries=self._policy.cas_max_retries,
            initial=doc,
        )
        log.info("login_succeeded", account_id=account.account_id)

        remember_cookie = None
        if request.remember_me:
            remember_cookie = await self._remember_me.issue(account.account_id)
        return LoginResult(account=account, remember_cookie=remember_cookie)

    async def change_password(
        self, account_id: str, request: ChangePasswordRequest
    ) -> CredentialDoc:
        """Replace the password of a signed-in account after re-checking the current one."""
        now = self._clock()

        async def load() -> CredentialDoc:
            doc = await self._store.get(account_id)
            if doc is None:
                raise AccountUnavailable()
            return doc

        async def decide(current: CredentialDoc) -> Decision[None]:
            self._raise_if_locked(current, now)

            if not await verify_off_loop(
                self._password_hasher, request.current_password, current.password_hash
            ):
                return Decision(
                    changes=self._failed_attempt(current, now),
                    error=InvalidCredentials(
                        "Current password is incorrect.", field="current_password"
                    ),
                )

            new_hash = await hash_off_loop(self._password_hasher, request.new_password)
            return Decision(
                changes={
                    "password_hash": new_hash,
                    "login_attempts": 0,
                    "remember_token_hash": None,
                    "remember_expires_at": None,
                }
            )

        updated, _ = await apply_update(
            self._store,
            load,
            decide,
            now=now,
            max_retries=self._policy.cas_max_retries,
        )
        log.info("password_changed", account_id=updated.account_id)
        return updated
