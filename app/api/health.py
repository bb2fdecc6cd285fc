"""Health and readiness endpoints.

  /health (liveness):  the process can answer.  Always 200; the body says
                       whether the database is reachable.
  /ready (readiness):  503 while a configured database is unreachable, so
                       the load balancer stops routing progress writes to
                       an instance that would fail every one of them.

Without DATABASE_URL the service runs on in-memory repositories and the
database check reports "not_configured".
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.db import engine as db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        async with db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database health check failed: %s", e.__class__.__name__)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    database = await _database_status()
    return {
        "status": "ok" if database != "degraded" else "degraded",
        "checks": {"database": database},
    }


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
