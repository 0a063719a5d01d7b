"""Unit tests for AppError hierarchy and the credential error taxonomy."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from errors import (
    AccountExists,
    AppError,
    AttemptsExhausted,
    AuthenticationError,
    ConflictError,
    DeliveryError,
    Expired,
    ForbiddenError,
    InvalidCredentials,
    InvalidOrExpired,
    LockedOut,
    Mismatch,
    NoActiveCode,
    NotFoundError,
    RateLimitError,
    ResendThrottled,
    ServiceUnavailableError,
    ValidationError,
    register_error_handlers,
)


class TestAppErrorSubclasses:
    def test_validation_error(self):
        e = ValidationError("bad input")
        assert e.status_code == 400
        assert e.error_code == "validation_error"
        assert e.message == "bad input"

    def test_authentication_error(self):
        e = AuthenticationError("not authenticated")
        assert e.status_code == 401
        assert e.error_code == "authentication_error"

    def test_forbidden_error(self):
        assert ForbiddenError("not allowed").status_code == 403

    def test_not_found_error(self):
        e = NotFoundError("resource missing")
        assert e.status_code == 404
        assert e.error_code == "not_found"

    def test_conflict_error(self):
        e = ConflictError("already exists")
        assert e.status_code == 409
        assert e.error_code == "conflict"

    def test_rate_limit_error(self):
        e = RateLimitError("slow down")
        assert e.status_code == 429
        assert e.error_code == "rate_limit_exceeded"

    def test_service_unavailable(self):
        e = ServiceUnavailableError()
        assert e.status_code == 503
        assert e.to_dict()["code"] == "service_unavailable"

    def test_delivery_error_is_not_a_throttle(self):
        e = DeliveryError()
        assert e.status_code == 502
        assert not isinstance(e, RateLimitError)

    def test_default_message(self):
        assert AppError().message == "An internal server error occurred."


class TestCredentialTaxonomy:
    @pytest.mark.parametrize("cls", [NoActiveCode, Expired, Mismatch])
    def test_otp_failures_are_publicly_identical(self, cls):
        assert cls().to_dict() == {
            "error": "Invalid or expired verification code.",
            "code": "invalid_code",
        }

    def test_otp_failures_distinct_internally(self):
        codes = {NoActiveCode.error_code, Expired.error_code, Mismatch.error_code}
        assert len(codes) == 3

    @pytest.mark.parametrize(
        "cls, status",
        [
            (ResendThrottled, 429),
            (AttemptsExhausted, 429),
            (LockedOut, 429),
            (InvalidOrExpired, 401),
            (InvalidCredentials, 401),
            (AccountExists, 409),
        ],
    )
    def test_status_codes(self, cls, status):
        assert cls().status_code == status

    def test_locked_out_public_code(self):
        assert LockedOut().to_dict()["code"] == "account_locked"


class TestAppErrorToDict:
    def test_basic(self):
        e = NotFoundError("account not found")
        assert e.to_dict() == {"error": "account not found", "code": "not_found"}

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "code"}, "field", "code"),
            ({"details": {"retry_after": 30}}, "details", {"retry_after": 30}),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_key_present(self, kwargs, key, value):
        e = ValidationError("invalid", **kwargs)
        assert e.to_dict()[key] == value

    def test_no_optional_keys_when_absent(self):
        d = NotFoundError("missing").to_dict()
        assert "field" not in d
        assert "details" not in d


class _Body(BaseModel):
    code: str


def _app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/throttled")
    async def throttled():
        raise ResendThrottled(details={"reason": "cooldown", "retry_after": 42})

    @app.get("/mismatch")
    async def mismatch():
        raise Mismatch()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("unexpected")

    @app.post("/body")
    async def body(payload: _Body):
        return {}

    return app


class TestErrorHandlers:
    def test_rate_limit_sets_retry_after(self):
        with TestClient(_app()) as client:
            resp = client.get("/throttled")
        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "42"
        assert resp.json()["code"] == "resend_throttled"

    def test_auth_failure_has_no_retry_after(self):
        with TestClient(_app()) as client:
            resp = client.get("/mismatch")
        assert resp.status_code == 401
        assert "Retry-After" not in resp.headers
        assert resp.json()["code"] == "invalid_code"

    def test_request_validation_is_400(self):
        with TestClient(_app()) as client:
            resp = client.post("/body", json={})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["field"] == "code"

    def test_unhandled_is_500(self):
        with TestClient(_app(), raise_server_exceptions=False) as client:
            resp = client.get("/boom")
        assert resp.status_code == 500
        assert resp.json()["code"] == "internal_error"
