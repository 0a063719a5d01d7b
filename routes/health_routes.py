"""
Health check endpoint.

GET /health reports the credential store and the reset-grant backend.
- Credential store (MongoDB) down → "unhealthy" (503); no login, registration
  or reset can be decided without it.
- Redis down or absent → "degraded" (200); reset grants are then held in
  process memory and do not survive a restart or span workers.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


async def _probe(ping: Callable[[], Awaitable[Any]]) -> str:
    try:
        await ping()
        return "ok"
    except Exception:
        return "error"


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    state = request.app.state
    checks = {
        "mongodb": await _probe(lambda: state.db.client.admin.command("ping")),
        "redis": "not_configured",
        "reset_grants": state.grant_backend,
    }
    if state.redis is not None:
        checks["redis"] = await _probe(state.redis.ping)

    if checks["mongodb"] != "ok":
        overall, status_code = "unhealthy", 503
    elif checks["redis"] != "ok":
        overall, status_code = "degraded", 200
    else:
        overall, status_code = "healthy", 200

    return JSONResponse(
        status_code=status_code,
        content={"status": overall, "checks": checks},
    )
