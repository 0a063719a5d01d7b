"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Credential failures keep a distinct ``error_code`` for logging and tests, but
authentication-relevant ones share a ``public_code`` and a deliberately vague
default message so clients cannot tell "expired" from "wrong" from "missing".

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"
    public_code: Optional[str] = None
    default_message: str = "An internal server error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {
            "error": self.message,
            "code": self.public_code or self.error_code,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"
    default_message = "Invalid input."


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"
    default_message = "Authentication failed."


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"
    default_message = "Not allowed."


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"
    default_message = "Not found."


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"
    default_message = "Conflicting request."


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"
    default_message = "Too many requests. Please try again later."


class DeliveryError(AppError):
    status_code = 502
    error_code = "delivery_failed"
    default_message = "We could not send the email. Please try again later."


class ServiceUnavailableError(AppError):
    status_code = 503
    error_code = "service_unavailable"
    default_message = "The service is temporarily unavailable. Please try again later."


# ── Credential taxonomy ──────────────────────────────────────────────────────


class ResendThrottled(RateLimitError):
    error_code = "resend_throttled"
    default_message = "Please wait before requesting another code."


class AttemptsExhausted(RateLimitError):
    error_code = "attempts_exhausted"
    default_message = (
        "Too many attempts. Please wait and try again later or request a new code."
    )


class OtpVerificationError(AuthenticationError):
    """Any failed OTP check. Subclasses differ internally, never publicly."""

    error_code = "otp_verification_failed"
    public_code = "invalid_code"
    default_message = "Invalid or expired verification code."


class NoActiveCode(OtpVerificationError):
    error_code = "no_active_code"


class Expired(OtpVerificationError):
    error_code = "otp_expired"


class Mismatch(OtpVerificationError):
    error_code = "otp_mismatch"


class InvalidOrExpired(AuthenticationError):
    error_code = "invalid_or_expired"
    default_message = "Invalid or expired reset link. Please request a new one."


class InvalidCredentials(AuthenticationError):
    error_code = "invalid_credentials"
    default_message = "Invalid username/email or password."


class LockedOut(RateLimitError):
    error_code = "locked_out"
    public_code = "account_locked"
    default_message = (
        "Account temporarily locked due to too many failed attempts. "
        "Please try again later."
    )


class EmailNotVerified(ForbiddenError):
    error_code = "email_not_verified"
    default_message = "Please verify your email before logging in."


class InvalidRememberToken(AuthenticationError):
    error_code = "invalid_remember_token"
    default_message = "Session expired. Please log in again."


class AccountUnavailable(NotFoundError):
    error_code = "account_unavailable"
    default_message = "Account not found or already verified."


class AccountExists(ConflictError):
    error_code = "account_exists"
    default_message = "Username or email already exists."


class ConcurrentUpdateError(ConflictError):
    error_code = "concurrent_update"
    default_message = "The request conflicted with another one. Please retry."


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitError) and isinstance(exc.details, dict):
            retry_after = exc.details.get("retry_after")
            if retry_after is not None:
                headers = {"Retry-After": str(int(retry_after))}
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_dict(), headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        message = str(first.get("msg", "Invalid input.")).removeprefix("Value error, ")
        error = ValidationError(message, field=".".join(loc) or None)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
