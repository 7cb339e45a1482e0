"""
Public health check.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.v1.deps import get_db
from portal.core.config import settings
from portal.schemas.common import HealthResponse

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Service status plus database connectivity."""
    database = True
    try:
        await db.execute(select(1))
    except (SQLAlchemyError, OSError) as e:
        logger.error("Health check DB failure: %s", e)
        database = False

    return HealthResponse(
        status="ok" if database else "degraded",
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=database,
    )
