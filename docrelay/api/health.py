"""
Health check endpoints.
/health always returns 200 so platform healthchecks pass; /health/ready reflects the database.
"""

from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from docrelay.config import settings
from docrelay.models.database import async_session_factory

router = APIRouter(tags=["health"])


async def _database_ok() -> tuple[bool, Optional[str]]:
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar() == 1, None
    except Exception as e:
        return False, str(e)[:200]


@router.get("/health")
async def health_check():
    """Liveness plus a DB probe. ALWAYS returns 200."""
    db_ok, db_error = await _database_ok()

    response = {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.APP_VERSION,
        "database": "connected" if db_ok else "unreachable",
    }
    if db_error:
        response["database_error"] = db_error

    return response


@router.get("/health/ready")
async def readiness_check():
    """Readiness probe: 503 until the ledger database is reachable."""
    db_ok, _ = await _database_ok()
    return JSONResponse({"ready": db_ok}, status_code=200 if db_ok else 503)
