"""Wiring for the credential services.

All services share one store, one clock and one pair of hashers, so a single
request sees consistent state and a single notion of "now" per operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from config import CredentialPolicySettings
from infrastructure.session.reset_grants import ResetGrantStore
from repositories.protocol import CredentialStore
from services.login_service import LoginService
from services.otp_service import OtpService
from services.password_reset_service import PasswordResetService
from services.remember_me_service import RememberMeService
from shared.crypto import Argon2SecretHasher, SecretHasher, TokenDigestHasher
from shared.datetime_utils import Clock, utcnow


@dataclass(frozen=True)
class CredentialServices:
    policy: CredentialPolicySettings
    otp: OtpService
    password_reset: PasswordResetService
    login: LoginService
    remember_me: RememberMeService
    clock: Clock = utcnow


def build_credential_services(
    store: CredentialStore,
    grants: ResetGrantStore,
    policy: CredentialPolicySettings,
    *,
    slow_hasher: Optional[SecretHasher] = None,
    token_hasher: Optional[SecretHasher] = None,
    clock: Clock = utcnow,
) -> CredentialServices:
    slow_hasher = slow_hasher or Argon2SecretHasher()
    token_hasher = token_hasher or TokenDigestHasher()

    remember_me = RememberMeService(store, policy, token_hasher=token_hasher, clock=clock)
    return CredentialServices(
        policy=policy,
        otp=OtpService(
            store,
            policy,
            otp_hasher=slow_hasher,
            password_hasher=slow_hasher,
            clock=clock,
        ),
        password_reset=PasswordResetService(
            store,
            grants,
            policy,
            token_hasher=token_hasher,
            password_hasher=slow_hasher,
            clock=clock,
        ),
        login=LoginService(
            store, policy, remember_me, password_hasher=slow_hasher, clock=clock
        ),
        remember_me=remember_me,
        clock=clock,
    )
