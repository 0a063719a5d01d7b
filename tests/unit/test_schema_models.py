"""Unit tests for the MongoDB document models."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from schemas.models.base import MongoBaseModel, PyObjectId
from schemas.models.credential import CredentialDoc

OID = ObjectId("507f1f77bcf86cd799439011")


def _doc(**overrides) -> CredentialDoc:
    data = dict(email="alice@example.com", username="alice", password_hash="$argon2id$x")
    data.update(overrides)
    return CredentialDoc(**data)


class TestPyObjectId:
    class _Model(MongoBaseModel):
        pass

    def test_accepts_objectid_and_string(self):
        assert self._Model(_id=OID).id == OID
        assert self._Model(_id=str(OID)).id == OID

    def test_rejects_garbage(self):
        with pytest.raises(ValidationError):
            self._Model(_id="nope")

    def test_json_serialises_as_string(self):
        assert self._Model(_id=OID).model_dump(mode="json", by_alias=True)["_id"] == str(OID)

    def test_is_objectid_subclass(self):
        assert issubclass(PyObjectId, ObjectId)


class TestCredentialDoc:
    def test_defaults(self):
        doc = _doc()
        assert doc.is_verified is False
        assert doc.version == 0
        assert doc.otp_resend_count == 0
        assert doc.login_attempts == 0
        assert doc.has_active_otp is False
        assert doc.account_id == ""

    def test_negative_counters_rejected(self):
        with pytest.raises(ValidationError):
            _doc(login_attempts=-1)

    def test_naive_timestamps_become_utc(self):
        doc = _doc(otp_expires_at=datetime(2025, 1, 1, 12))
        assert doc.otp_expires_at == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)

    def test_offset_timestamps_converted(self):
        doc = _doc(created_at=datetime(2025, 1, 1, 14, tzinfo=timezone(timedelta(hours=2))))
        assert doc.created_at.hour == 12

    def test_has_active_otp(self):
        assert _doc(otp_hash="h", otp_expires_at=datetime.now(timezone.utc)).has_active_otp

    def test_to_mongo_omits_missing_id(self):
        data = _doc().to_mongo()
        assert "_id" not in data
        assert "id" not in data
        assert data["version"] == 0
        assert data["otp_hash"] is None

    def test_from_mongo_roundtrip(self):
        data = {"_id": OID, "email": "alice@example.com", "username": "alice",
                "password_hash": "x", "version": 4}
        doc = CredentialDoc.from_mongo(data)
        assert doc.account_id == str(OID)
        assert doc.to_mongo()["_id"] == OID

    def test_from_mongo_none(self):
        assert CredentialDoc.from_mongo(None) is None

    def test_with_changes_bumps_version(self):
        doc = _doc(version=2)
        updated = doc.with_changes({"login_attempts": 3})
        assert updated.login_attempts == 3
        assert updated.version == 3
        assert doc.login_attempts == 0
