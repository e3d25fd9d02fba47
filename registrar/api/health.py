"""Health and readiness endpoints.

  /health (liveness):  200 whenever the process can answer.  The body
    reports per-dependency status; ``degraded`` means alive but impaired.

  /ready (readiness):  503 when a configured database cannot be reached,
    so the load balancer stops routing here until it recovers.

Neither probe calls the Catalog, Identity or Ledger services.  A peer
outage shows up as 503s on the endpoints that need that peer, not as
this instance being taken out of rotation.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from registrar.core.config import SETTINGS
from registrar.db import engine as db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        async with db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    """Liveness probe plus dependency status.  Always 200."""
    checks = {"database": await _database_status()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {
        "status": overall,
        "service": SETTINGS.service_name,
        "checks": checks,
    }


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
