"""MongoDB implementation of CredentialStore (pymongo async API).

One document per account in the ``credentials`` collection. Conditional writes
use ``update_one`` filtered on ``{_id, version}`` with ``$inc: {version: 1}``,
which MongoDB applies atomically to the single document.
"""

from __future__ import annotations

from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError

from errors import AccountExists
from schemas.models.credential import CredentialDoc
from shared.logging import get_logger

log = get_logger(__name__)


def _object_id(account_id: str) -> Optional[ObjectId]:
    if isinstance(account_id, ObjectId):
        return account_id
    if isinstance(account_id, str) and ObjectId.is_valid(account_id):
        return ObjectId(account_id)
    return None


class MongoCredentialStore:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)
        await self._col.create_index([("username", ASCENDING)], unique=True)
        await self._col.create_index(
            [("reset_token_hash", ASCENDING)],
            partialFilterExpression={"reset_token_hash": {"$type": "string"}},
        )

    async def _find_one(self, query: dict) -> Optional[CredentialDoc]:
        return CredentialDoc.from_mongo(await self._col.find_one(query))

    async def get(self, account_id: str) -> Optional[CredentialDoc]:
        oid = _object_id(account_id)
        if oid is None:
            return None
        return await self._find_one({"_id": oid})

    async def get_by_email(self, email: str) -> Optional[CredentialDoc]:
        return await self._find_one({"email": email.lower()})

    async def get_by_login(self, identifier: str) -> Optional[CredentialDoc]:
        identifier = identifier.lower()
        return await self._find_one(
            {"$or": [{"username": identifier}, {"email": identifier}]}
        )

    async def get_by_reset_token_hash(
        self, token_hash: str
    ) -> Optional[CredentialDoc]:
        return await self._find_one({"reset_token_hash": token_hash})

    async def create(self, doc: CredentialDoc) -> CredentialDoc:
        try:
            result = await self._col.insert_one(doc.to_mongo())
        except DuplicateKeyError:
            log.info("credential_create_duplicate", username=doc.username)
            raise AccountExists()
        return doc.model_copy(update={"id": result.inserted_id})

    async def compare_and_set(
        self, account_id: str, expected_version: int, changes: dict
    ) -> bool:
        oid = _object_id(account_id)
        if oid is None:
            return False
        result = await self._col.update_one(
            {"_id": oid, "version": expected_version},
            {"$set": changes, "$inc": {"version": 1}},
        )
        return result.matched_count == 1
