"""Server-held "reset authorized" markers.

After a reset link's token has been validated, the password form is submitted
on a second request. The grant issued in between lives only on the server;
the client holds nothing but its opaque id (in an httponly cookie). A grant is
scoped to one account and to the token digest that was validated, so a newer
reset link or a completed reset invalidates it.

RedisResetGrantStore is used when Redis is configured; InMemoryResetGrantStore
serves single-process deployments and tests. A grant that cannot be stored is
reported as ServiceUnavailableError (503); lookups and discards that fail are
logged and treated as a missing grant.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from errors import ServiceUnavailableError
from shared.datetime_utils import Clock, parse_datetime, utcnow
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ResetGrant:
    grant_id: str
    account_id: str
    token_hash: str
    expires_at: datetime


class ResetGrantStore(Protocol):
    async def put(self, grant: ResetGrant, ttl_seconds: int) -> None: ...

    async def get(self, grant_id: str) -> Optional[ResetGrant]: ...

    async def discard(self, grant_id: str) -> None: ...


class RedisResetGrantStore:
    def __init__(self, redis_client: aioredis.Redis, prefix: str = "reset_grant") -> None:
        self._r = redis_client
        self._prefix = prefix

    def _key(self, grant_id: str) -> str:
        return f"{self._prefix}:{grant_id}"

    async def put(self, grant: ResetGrant, ttl_seconds: int) -> None:
        payload = json.dumps(
            {
                "account_id": grant.account_id,
                "token_hash": grant.token_hash,
                "expires_at": grant.expires_at.isoformat(),
            }
        )
        try:
            await self._r.setex(self._key(grant.grant_id), ttl_seconds, payload)
        except RedisError as e:
            log.error("reset_grant_put_failed", error=str(e), error_type=type(e).__name__)
            raise ServiceUnavailableError(
                "Password reset is temporarily unavailable. Please try again later."
            ) from e

    async def get(self, grant_id: str) -> Optional[ResetGrant]:
        try:
            raw = await self._r.get(self._key(grant_id))
        except RedisError as e:
            log.warning("reset_grant_get_failed", error=str(e), error_type=type(e).__name__)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            expires_at = parse_datetime(data["expires_at"])
            if expires_at is None:
                raise ValueError("unparseable expires_at")
            return ResetGrant(
                grant_id=grant_id,
                account_id=data["account_id"],
                token_hash=data["token_hash"],
                expires_at=expires_at,
            )
        except (ValueError, KeyError, TypeError) as e:
            log.warning("reset_grant_corrupt", error=str(e), error_type=type(e).__name__)
            return None

    async def discard(self, grant_id: str) -> None:
        try:
            await self._r.delete(self._key(grant_id))
        except RedisError as e:
            log.warning("reset_grant_discard_failed", error=str(e), error_type=type(e).__name__)


class InMemoryResetGrantStore:
    def __init__(self, clock: Clock = utcnow) -> None:
        self._grants: dict[str, ResetGrant] = {}
        self._clock = clock

    def _prune(self) -> None:
        now = self._clock()
        for grant_id in [g for g, grant in self._grants.items() if grant.expires_at <= now]:
            del self._grants[grant_id]

    async def put(self, grant: ResetGrant, ttl_seconds: int) -> None:
        self._prune()
        self._grants[grant.grant_id] = grant

    async def get(self, grant_id: str) -> Optional[ResetGrant]:
        self._prune()
        return self._grants.get(grant_id)

    async def discard(self, grant_id: str) -> None:
        self._grants.pop(grant_id, None)
