from __future__ import annotations

from datetime import UTC, datetime

import structlog
from compliance_lms.api.deps import get_db_session
from compliance_lms.core.config import get_settings
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["Observability"])
logger = structlog.get_logger()


async def check_database(session: AsyncSession) -> dict:
    """Run a trivial query against the configured database."""
    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        return {"status": "error", "message": str(e)[:100]}
    return {"status": "ok"}


@router.get("/health", summary="Service health probe")
async def health_check(session: AsyncSession = Depends(get_db_session)) -> dict:
    """Return basic service and datastore status information."""
    settings = get_settings()
    database_status = await check_database(session)

    payload = {
        "service": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "status": "ok" if database_status.get("status") == "ok" else "degraded",
        "timestamp": datetime.now(UTC).isoformat(),
        "datastores": {"database": database_status},
    }
    logger.info("health_probe", **payload)
    return payload
