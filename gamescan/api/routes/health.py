"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from gamescan.api.deps import get_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(db: AsyncSession = Depends(get_database)):
    """Health check including a database probe."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "checks": {"database": "error"}},
        )
    return {"status": "healthy", "checks": {"database": "ok"}}


@router.get("/ready")
async def ready():
    return {"ready": True}


@router.get("/live")
async def live():
    return {"live": True}
