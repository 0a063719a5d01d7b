"""
Shared fixtures: a controllable clock, in-memory stores and cheap hashing.

The project .env file is never read during tests; config comes from the
fixtures below or from monkeypatch.setenv().
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from argon2 import PasswordHasher

from config import CredentialPolicySettings
from infrastructure.session.reset_grants import InMemoryResetGrantStore
from repositories.in_memory import InMemoryCredentialStore
from schemas.dto.requests.auth import RegisterRequest
from services.container import build_credential_services
from shared.crypto import Argon2SecretHasher

START = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
PASSWORD = "Str0ng!Pass"


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy():
    return CredentialPolicySettings(cookie_secure=False)


@pytest.fixture
def slow_hasher():
    # Minimum argon2 cost keeps the suite fast; production uses library defaults
    return Argon2SecretHasher(PasswordHasher(time_cost=1, memory_cost=8, parallelism=1))


class YieldingCredentialStore(InMemoryCredentialStore):
    """Suspends on every read so concurrent operations interleave."""

    async def get(self, account_id):
        await asyncio.sleep(0)
        return await super().get(account_id)

    async def get_by_login(self, identifier):
        await asyncio.sleep(0)
        return await super().get_by_login(identifier)


@pytest.fixture
def store():
    return InMemoryCredentialStore()


@pytest.fixture
def yielding_store():
    return YieldingCredentialStore()


@pytest.fixture
def grants(clock):
    return InMemoryResetGrantStore(clock=clock)


@pytest.fixture
def build_services(store, grants, slow_hasher, clock):
    """Factory: services over the shared store, with policy overrides."""

    def _build(**policy_overrides):
        policy_overrides.setdefault("cookie_secure", False)
        return build_credential_services(
            store,
            grants,
            CredentialPolicySettings(**policy_overrides),
            slow_hasher=slow_hasher,
            clock=clock,
        )

    return _build


@pytest.fixture
def services(build_services):
    return build_services()


@pytest.fixture
def register_request():
    def _make(username: str = "alice", **overrides) -> RegisterRequest:
        data = dict(
            username=username,
            email=f"{username}@example.com",
            full_name="Alice Example",
            password=PASSWORD,
            confirm_password=PASSWORD,
        )
        data.update(overrides)
        return RegisterRequest(**data)

    return _make


@pytest.fixture
def make_verified(services, store, register_request):
    """Factory: register an account and mark it verified directly in the store."""

    async def _make(username: str = "alice"):
        issued = await services.otp.register(register_request(username))
        doc = await store.get(issued.account_id)
        changes = {"is_verified": True, "otp_hash": None, "otp_expires_at": None}
        assert await store.compare_and_set(doc.account_id, doc.version, changes)
        return await store.get(issued.account_id)

    return _make


@pytest.fixture
def interleaved_services(yielding_store, grants, slow_hasher, clock):
    """Services over a store whose reads yield, for concurrency tests."""
    return build_credential_services(
        yielding_store,
        grants,
        CredentialPolicySettings(cookie_secure=False),
        slow_hasher=slow_hasher,
        clock=clock,
    )
