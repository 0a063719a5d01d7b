"""CredentialStore protocol — services depend on this, not on a concrete store.

Every mutation goes through compare_and_set(): the write only lands when the
stored ``version`` still equals the version the caller read, and the store
bumps ``version`` as part of the same atomic update.
"""

from typing import Optional, Protocol

from schemas.models.credential import CredentialDoc


class CredentialStore(Protocol):
    async def get(self, account_id: str) -> Optional[CredentialDoc]: ...

    async def get_by_email(self, email: str) -> Optional[CredentialDoc]: ...

    async def get_by_login(self, identifier: str) -> Optional[CredentialDoc]:
        """Look up by username or email."""
        ...

    async def get_by_reset_token_hash(
        self, token_hash: str
    ) -> Optional[CredentialDoc]: ...

    async def create(self, doc: CredentialDoc) -> CredentialDoc:
        """Insert a new record; raises AccountExists on a duplicate email/username."""
        ...

    async def compare_and_set(
        self, account_id: str, expected_version: int, changes: dict
    ) -> bool: ...
