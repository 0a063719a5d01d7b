"""In-process CredentialStore.

Keeps records as plain dicts keyed by ObjectId, copying on every read and
write so callers never share state with the store. compare_and_set checks and
writes without awaiting in between, which makes it atomic on a single event
loop. Used by the test suite and for local runs without MongoDB.
"""

from __future__ import annotations

import copy
from typing import Optional

from bson import ObjectId

from errors import AccountExists
from schemas.models.credential import CredentialDoc


class InMemoryCredentialStore:
    def __init__(self) -> None:
        self._records: dict[ObjectId, dict] = {}

    def _load(self, data: Optional[dict]) -> Optional[CredentialDoc]:
        if data is None:
            return None
        return CredentialDoc.from_mongo(copy.deepcopy(data))

    def _find(self, **criteria) -> Optional[dict]:
        for data in self._records.values():
            if any(data.get(field) == value for field, value in criteria.items()):
                return data
        return None

    async def get(self, account_id: str) -> Optional[CredentialDoc]:
        if not ObjectId.is_valid(account_id):
            return None
        return self._load(self._records.get(ObjectId(account_id)))

    async def get_by_email(self, email: str) -> Optional[CredentialDoc]:
        return self._load(self._find(email=email.lower()))

    async def get_by_login(self, identifier: str) -> Optional[CredentialDoc]:
        identifier = identifier.lower()
        return self._load(self._find(username=identifier, email=identifier))

    async def get_by_reset_token_hash(
        self, token_hash: str
    ) -> Optional[CredentialDoc]:
        return self._load(self._find(reset_token_hash=token_hash))

    async def create(self, doc: CredentialDoc) -> CredentialDoc:
        if self._find(email=doc.email) or self._find(username=doc.username):
            raise AccountExists()
        created = doc.model_copy(update={"id": doc.id or ObjectId()})
        data = created.to_mongo()
        self._records[data["_id"]] = copy.deepcopy(data)
        return created

    async def compare_and_set(
        self, account_id: str, expected_version: int, changes: dict
    ) -> bool:
        if not ObjectId.is_valid(account_id):
            return False
        data = self._records.get(ObjectId(account_id))
        if data is None or data.get("version", 0) != expected_version:
            return False
        data.update(copy.deepcopy(changes))
        data["version"] = expected_version + 1
        return True
