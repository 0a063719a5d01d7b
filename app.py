"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.zeptomail import ZeptoMailNotifier
from infrastructure.http_client import HttpClient
from infrastructure.redis_client import create_redis_client
from infrastructure.session.reset_grants import (
    InMemoryResetGrantStore,
    RedisResetGrantStore,
    ResetGrantStore,
)
from repositories.credential_repository import MongoCredentialStore
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.container import build_credential_services
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging.log_level, settings.logging.log_format)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        db = mongo_client[settings.db.db_name]
        store = MongoCredentialStore(db[settings.db.credentials_collection])
        await store.ensure_indexes()

        # Redis is optional; grants fall back to process memory without it
        redis_client = None
        if settings.redis.redis_uri:
            redis_client = await create_redis_client(settings.redis.redis_uri)

        grants: ResetGrantStore
        if redis_client is not None:
            grants = RedisResetGrantStore(redis_client)
            app.state.grant_backend = "redis"
        else:
            grants = InMemoryResetGrantStore()
            app.state.grant_backend = "memory"

        http_client = HttpClient(
            timeout=settings.email.email_timeout_seconds, user_agent=settings.app_name
        )

        app.state.settings = settings
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.redis = redis_client
        app.state.http_client = http_client
        app.state.notifier = ZeptoMailNotifier(settings.email, http_client)
        app.state.services = build_credential_services(store, grants, settings.policy)

        log.info(
            "app_started",
            env=settings.env,
            grant_backend=app.state.grant_backend,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
