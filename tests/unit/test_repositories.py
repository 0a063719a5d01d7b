"""Unit tests for the credential stores (MongoDB via AsyncMock, in-memory)."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from errors import AccountExists
from repositories.credential_repository import MongoCredentialStore
from repositories.in_memory import InMemoryCredentialStore
from schemas.models.credential import CredentialDoc

OID = ObjectId("507f1f77bcf86cd799439011")


def _doc(**overrides) -> CredentialDoc:
    data = dict(email="alice@example.com", username="alice", password_hash="$argon2id$x")
    data.update(overrides)
    return CredentialDoc(**data)


def _raw(**overrides) -> dict:
    data = {"_id": OID, "email": "alice@example.com", "username": "alice",
            "password_hash": "$argon2id$x", "version": 3}
    data.update(overrides)
    return data


@pytest.fixture
def collection():
    col = MagicMock()
    col.find_one = AsyncMock(return_value=None)
    col.insert_one = AsyncMock()
    col.update_one = AsyncMock()
    col.create_index = AsyncMock()
    return col


# ── MongoCredentialStore ──────────────────────────────────────────────────────


class TestMongoCredentialStore:
    async def test_get_by_id(self, collection):
        collection.find_one.return_value = _raw()
        doc = await MongoCredentialStore(collection).get(str(OID))

        collection.find_one.assert_awaited_once_with({"_id": OID})
        assert doc.account_id == str(OID)
        assert doc.version == 3

    async def test_get_invalid_id_skips_query(self, collection):
        assert await MongoCredentialStore(collection).get("not-an-id") is None
        collection.find_one.assert_not_awaited()

    async def test_get_missing(self, collection):
        assert await MongoCredentialStore(collection).get(str(OID)) is None

    async def test_naive_datetimes_come_back_as_utc(self, collection):
        collection.find_one.return_value = _raw(otp_expires_at=datetime(2025, 1, 1, 12))
        doc = await MongoCredentialStore(collection).get(str(OID))
        assert doc.otp_expires_at.tzinfo == timezone.utc

    async def test_get_by_email_lowercases(self, collection):
        await MongoCredentialStore(collection).get_by_email("Alice@Example.com")
        collection.find_one.assert_awaited_once_with({"email": "alice@example.com"})

    async def test_get_by_login_matches_username_or_email(self, collection):
        await MongoCredentialStore(collection).get_by_login("ALICE")
        collection.find_one.assert_awaited_once_with(
            {"$or": [{"username": "alice"}, {"email": "alice"}]}
        )

    async def test_get_by_reset_token_hash(self, collection):
        await MongoCredentialStore(collection).get_by_reset_token_hash("abc")
        collection.find_one.assert_awaited_once_with({"reset_token_hash": "abc"})

    async def test_create_returns_doc_with_id(self, collection):
        collection.insert_one.return_value = MagicMock(inserted_id=OID)
        created = await MongoCredentialStore(collection).create(_doc())

        inserted = collection.insert_one.await_args.args[0]
        assert "_id" not in inserted
        assert inserted["email"] == "alice@example.com"
        assert created.account_id == str(OID)

    async def test_create_duplicate(self, collection):
        collection.insert_one.side_effect = DuplicateKeyError("dup")
        with pytest.raises(AccountExists):
            await MongoCredentialStore(collection).create(_doc())

    async def test_compare_and_set_filters_on_version(self, collection):
        collection.update_one.return_value = MagicMock(matched_count=1)
        ok = await MongoCredentialStore(collection).compare_and_set(
            str(OID), 3, {"login_attempts": 1}
        )

        assert ok is True
        collection.update_one.assert_awaited_once_with(
            {"_id": OID, "version": 3},
            {"$set": {"login_attempts": 1}, "$inc": {"version": 1}},
        )

    async def test_compare_and_set_lost_race(self, collection):
        collection.update_one.return_value = MagicMock(matched_count=0)
        ok = await MongoCredentialStore(collection).compare_and_set(str(OID), 3, {"x": 1})
        assert ok is False

    async def test_compare_and_set_invalid_id(self, collection):
        assert await MongoCredentialStore(collection).compare_and_set("bad", 0, {}) is False
        collection.update_one.assert_not_awaited()

    async def test_ensure_indexes(self, collection):
        await MongoCredentialStore(collection).ensure_indexes()

        calls = collection.create_index.await_args_list
        assert len(calls) == 3
        assert calls[0].kwargs == {"unique": True}
        assert calls[1].kwargs == {"unique": True}
        assert calls[2].kwargs["partialFilterExpression"] == {
            "reset_token_hash": {"$type": "string"}
        }


# ── InMemoryCredentialStore ───────────────────────────────────────────────────


class TestInMemoryCredentialStore:
    async def test_create_and_lookups(self):
        store = InMemoryCredentialStore()
        created = await store.create(_doc(reset_token_hash="digest"))

        assert (await store.get(created.account_id)).email == "alice@example.com"
        assert (await store.get_by_email("ALICE@example.com")).account_id == created.account_id
        assert (await store.get_by_login("alice")).account_id == created.account_id
        assert (await store.get_by_login("alice@example.com")).account_id == created.account_id
        assert (await store.get_by_reset_token_hash("digest")).account_id == created.account_id
        assert await store.get_by_reset_token_hash("other") is None
        assert await store.get("not-an-id") is None

    async def test_duplicates_rejected(self):
        store = InMemoryCredentialStore()
        await store.create(_doc())
        with pytest.raises(AccountExists):
            await store.create(_doc(username="bob"))
        with pytest.raises(AccountExists):
            await store.create(_doc(email="bob@example.com"))

    async def test_reads_are_copies(self):
        store = InMemoryCredentialStore()
        created = await store.create(_doc())
        first = await store.get(created.account_id)
        first.login_attempts = 99
        assert (await store.get(created.account_id)).login_attempts == 0

    async def test_compare_and_set(self):
        store = InMemoryCredentialStore()
        created = await store.create(_doc())

        assert await store.compare_and_set(created.account_id, 0, {"login_attempts": 2})
        assert not await store.compare_and_set(created.account_id, 0, {"login_attempts": 5})

        stored = await store.get(created.account_id)
        assert stored.login_attempts == 2
        assert stored.version == 1

    async def test_compare_and_set_unknown(self):
        store = InMemoryCredentialStore()
        assert not await store.compare_and_set(str(OID), 0, {"login_attempts": 1})
        assert not await store.compare_and_set("bad", 0, {"login_attempts": 1})
