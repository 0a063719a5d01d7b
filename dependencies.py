"""
FastAPI dependency providers.

All injectable dependencies are plain functions used with FastAPI's
Depends() system; each reads an object placed on app.state at startup.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from infrastructure.email.protocol import Notifier
from services.container import CredentialServices


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_services(request: Request) -> CredentialServices:
    """Return the credential services wired at startup."""
    return request.app.state.services


def get_notifier(request: Request) -> Notifier:
    """Return the outbound email notifier."""
    return request.app.state.notifier
