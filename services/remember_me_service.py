"""Remember-me tokens: long-lived session resumption.

The cookie value is ``"<account_id>:<raw_token>"``. Only the SHA-256 digest of
the raw token is stored, one per account; issuing a new token overwrites the
previous one and a password reset clears it. Validation re-hashes the raw part
and never trusts the account id on its own.
"""

from __future__ import annotations

from typing import Optional

from config import CredentialPolicySettings
from errors import InvalidRememberToken
from repositories.protocol import CredentialStore
from schemas.models.credential import CredentialDoc
from services.record_updates import Decision, apply_update
from shared.crypto import SecretHasher, TokenDigestHasher
from shared.datetime_utils import Clock, add_seconds, utcnow
from shared.generators import generate_secure_token
from shared.logging import get_logger

log = get_logger(__name__)

COOKIE_SEPARATOR = ":"


def split_cookie(cookie_value: Optional[str]) -> tuple[str, str]:
    """Return ``(account_id, raw_token)``; raises InvalidRememberToken when malformed."""
    account_id, sep, raw_token = (cookie_value or "").partition(COOKIE_SEPARATOR)
    if not sep or not account_id or not raw_token:
        raise InvalidRememberToken()
    return account_id, raw_token


class RememberMeService:
    def __init__(
        self,
        store: CredentialStore,
        policy: CredentialPolicySettings,
        *,
        token_hasher: Optional[SecretHasher] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._policy = policy
        self._token_hasher = token_hasher or TokenDigestHasher()
        self._clock = clock

    async def _load(self, account_id: str) -> CredentialDoc:
        doc = await self._store.get(account_id)
        if doc is None:
            raise InvalidRememberToken()
        return doc

    async def issue(self, account_id: str) -> str:
        """Create a token for *account_id*, replacing any previous one."""
        now = self._clock()
        raw_token = generate_secure_token(self._policy.remember_token_bytes)
        changes = {
            "remember_token_hash": self._token_hasher.hash(raw_token),
            "remember_expires_at": add_seconds(now, self._policy.remember_ttl_seconds),
        }
        await apply_update(
            self._store,
            lambda: self._load(account_id),
            lambda doc: Decision(changes=changes),
            now=now,
            max_retries=self._policy.cas_max_retries,
        )
        log.info("remember_token_issued", account_id=account_id)
        return f"{account_id}{COOKIE_SEPARATOR}{raw_token}"

    async def validate(self, cookie_value: Optional[str]) -> CredentialDoc:
        now = self._clock()
        account_id, raw_token = split_cookie(cookie_value)
        doc = await self._store.get(account_id)
        if (
            doc is None
            or not self._token_hasher.verify(raw_token, doc.remember_token_hash)
            or doc.remember_expires_at is None
            or doc.remember_expires_at <= now
        ):
            log.warning("remember_token_rejected", account_id=account_id)
            raise InvalidRememberToken()
        return doc

    async def revoke(self, account_id: str) -> None:
        now = self._clock()

        def decide(doc: CredentialDoc) -> Decision[None]:
            if doc.remember_token_hash is None and doc.remember_expires_at is None:
                return Decision()
            return Decision(
                changes={"remember_token_hash": None, "remember_expires_at": None}
            )

        await apply_update(
            self._store,
            lambda: self._load(account_id),
            decide,
            now=now,
            max_retries=self._policy.cas_max_retries,
        )
        log.info("remember_token_revoked", account_id=account_id)
