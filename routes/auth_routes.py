"""
Authentication endpoints backed by the credential services.

POST /auth/register                 create account, email first code
POST /auth/verify-email             submit code
POST /auth/resend-verification      email a replacement code
POST /auth/login                    password login, optional remember-me cookie
POST /auth/resume                   resume a session from the remember-me cookie
POST /auth/logout                   revoke remember-me token, clear cookies
POST /auth/request-password-reset   email a reset link (always the same answer)
GET  /auth/reset-password           validate link token, open a reset session
POST /auth/reset-password           set new password inside the reset session
POST /auth/reset-password/token     single-step reset with the raw token
POST /auth/change-password          change password of the remember-me session

Delivery failures surface as DeliveryError (502), never as a throttle error.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Query, Response, status

from config import AppSettings
from dependencies import get_notifier, get_services, get_settings
from errors import DeliveryError, InvalidRememberToken, ResendThrottled
from infrastructure.email.messages import (
    build_reset_link,
    password_reset_message,
    verification_code_message,
)
from infrastructure.email.protocol import Notifier
from schemas.dto.requests.auth import (
    ChangePasswordRequest,
    CompleteResetRequest,
    ConsumeResetRequest,
    LoginRequest,
    RegisterRequest,
    RequestPasswordResetRequest,
    ResendOtpRequest,
    VerifyOtpRequest,
)
from schemas.dto.responses.auth import (
    LoginResponse,
    MessageResponse,
    RegisterResponse,
    ResendResponse,
    ResetAuthorizedResponse,
    VerifyEmailResponse,
)
from schemas.models.credential import CredentialDoc
from services.container import CredentialServices
from services.otp_service import IssuedOtp
from shared.datetime_utils import seconds_between
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

REMEMBER_COOKIE = "remember_token"
RESET_SESSION_COOKIE = "reset_session"

RESET_REQUESTED_MESSAGE = "If that email exists, a reset link has been sent."
RESET_DONE_MESSAGE = "Password reset successfully! You can log in."
PASSWORD_CHANGED_MESSAGE = "Password changed successfully. Please log in again."


def _login_response(doc: CredentialDoc, remember_me: bool = False) -> LoginResponse:
    return LoginResponse(
        account_id=doc.account_id,
        username=doc.username,
        email=doc.email,
        email_verified=doc.is_verified,
        remember_me=remember_me,
    )


async def _send_code(
    notifier: Notifier, settings: AppSettings, issued: IssuedOtp
) -> bool:
    subject, body = verification_code_message(
        issued.full_name, issued.code, settings.policy.otp_ttl_seconds, settings.app_name
    )
    return await notifier.send(issued.email, subject, body)


def _clear_credential_cookies(response: Response) -> None:
    response.delete_cookie(REMEMBER_COOKIE, path="/")
    response.delete_cookie(RESET_SESSION_COOKIE, path="/auth")


@router.post(
    "/register", status_code=status.HTTP_201_CREATED, response_model=RegisterResponse
)
async def register(
    body: RegisterRequest,
    services: CredentialServices = Depends(get_services),
    notifier: Notifier = Depends(get_notifier),
    settings: AppSettings = Depends(get_settings),
) -> RegisterResponse:
    issued = await services.otp.register(body)
    sent = await _send_code(notifier, settings, issued)
    if not sent:
        log.error("verification_email_failed", account_id=issued.account_id)
    return RegisterResponse(
        account_id=issued.account_id,
        requires_verification=True,
        verification_sent=sent,
        code_expires_at=issued.expires_at,
    )


@router.post("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    body: VerifyOtpRequest,
    services: CredentialServices = Depends(get_services),
) -> VerifyEmailResponse:
    await services.otp.verify(body)
    return VerifyEmailResponse(
        success=True,
        message="Email verified successfully! You can now log in.",
        email_verified=True,
    )


@router.post("/resend-verification", response_model=ResendResponse)
async def resend_verification(
    body: ResendOtpRequest,
    services: CredentialServices = Depends(get_services),
    notifier: Notifier = Depends(get_notifier),
    settings: AppSettings = Depends(get_settings),
) -> ResendResponse:
    issued = await services.otp.issue(body)
    if not await _send_code(notifier, settings, issued):
        raise DeliveryError("Failed to send the verification code. Please try again later.")
    return ResendResponse(
        success=True,
        message="A new verification code has been sent to your email.",
        code_expires_at=issued.expires_at,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    services: CredentialServices = Depends(get_services),
) -> LoginResponse:
    result = await services.login.login(body)
    if result.remember_cookie:
        response.set_cookie(
            REMEMBER_COOKIE,
            result.remember_cookie,
            max_age=services.policy.remember_ttl_seconds,
            path="/",
            secure=services.policy.cookie_secure,
            httponly=True,
            samesite="lax",
        )
    return _login_response(result.account, remember_me=result.remember_cookie is not None)


@router.post("/resume", response_model=LoginResponse)
async def resume(
    remember_token: Optional[str] = Cookie(default=None),
    services: CredentialServices = Depends(get_services),
) -> LoginResponse:
    doc = await services.remember_me.validate(remember_token)
    return _login_response(doc, remember_me=True)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    remember_token: Optional[str] = Cookie(default=None),
    reset_session: Optional[str] = Cookie(default=None),
    services: CredentialServices = Depends(get_services),
) -> MessageResponse:
    if remember_token:
        try:
            doc = await services.remember_me.validate(remember_token)
            await services.remember_me.revoke(doc.account_id)
        except InvalidRememberToken:
            log.info("logout_with_stale_remember_cookie")
    if reset_session:
        await services.password_reset.discard_grant(reset_session)
    _clear_credential_cookies(response)
    return MessageResponse(success=True, message="You have been successfully logged out.")


@router.post(
    "/request-password-reset",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=MessageResponse,
)
async def request_password_reset(
    body: RequestPasswordResetRequest,
    services: CredentialServices = Depends(get_services),
    notifier: Notifier = Depends(get_notifier),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    # Throttled, unknown and unverified requests all get the same answer.
    try:
        result = await services.password_reset.request_reset(body)
    except ResendThrottled as e:
        log.info("password_reset_request_suppressed", reason=e.error_code)
        return MessageResponse(success=True, message=RESET_REQUESTED_MESSAGE)

    if result.issued:
        link = build_reset_link(settings.app_url, result.token)
        subject, text = password_reset_message(
            result.full_name, link, settings.policy.reset_ttl_seconds, settings.app_name
        )
        if not await notifier.send(result.email, subject, text):
            log.error("password_reset_email_failed", account_id=result.account_id)
    return MessageResponse(success=True, message=RESET_REQUESTED_MESSAGE)


@router.get("/reset-password", response_model=ResetAuthorizedResponse)
async def open_reset_session(
    response: Response,
    token: str = Query(min_length=1),
    services: CredentialServices = Depends(get_services),
) -> ResetAuthorizedResponse:
    grant = await services.password_reset.authorize_reset(token)
    # The grant may be shorter than reset_grant_ttl_seconds near token expiry
    max_age = max(1, int(seconds_between(services.clock(), grant.expires_at)))
    response.set_cookie(
        RESET_SESSION_COOKIE,
        grant.grant_id,
        max_age=max_age,
        path="/auth",
        secure=services.policy.cookie_secure,
        httponly=True,
        samesite="strict",
    )
    return ResetAuthorizedResponse(valid=True, expires_at=grant.expires_at)


@router.post("/reset-password", response_model=MessageResponse)
async def complete_reset(
    body: CompleteResetRequest,
    response: Response,
    reset_session: Optional[str] = Cookie(default=None),
    services: CredentialServices = Depends(get_services),
) -> MessageResponse:
    await services.password_reset.complete_reset(reset_session or "", body)
    _clear_credential_cookies(response)
    return MessageResponse(success=True, message=RESET_DONE_MESSAGE)


@router.post("/reset-password/token", response_model=MessageResponse)
async def consume_reset_token(
    body: ConsumeResetRequest,
    response: Response,
    services: CredentialServices = Depends(get_services),
) -> MessageResponse:
    await services.password_reset.consume_reset(body)
    _clear_credential_cookies(response)
    return MessageResponse(success=True, message=RESET_DONE_MESSAGE)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    response: Response,
    remember_token: Optional[str] = Cookie(default=None),
    services: CredentialServices = Depends(get_services),
) -> MessageResponse:
    doc = await services.remember_me.validate(remember_token)
    await services.login.change_password(doc.account_id, body)
    # The remember-me token was revoked with the old password
    _clear_credential_cookies(response)
    return MessageResponse(success=True, message=PASSWORD_CHANGED_MESSAGE)
