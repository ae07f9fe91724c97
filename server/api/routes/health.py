"""Health check routes"""
from asyncio import to_thread
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from database.client import get_supabase
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "ok", "service": "resource-finder-api"}


@router.get("/ready")
async def readiness_check():
    """Check that the resource directory and transcript tables answer"""
    try:
        supabase = get_supabase()
    except Exception as e:
        logger.error(f"Readiness check: database client unavailable: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "database": {"connected": False}},
        )

    tables = {}

    for table in ("categories", "resources", "conversations"):
        try:
            await to_thread(
                lambda: supabase.table(table).select("id").limit(1).execute()
            )
            tables[table] = True
        except Exception as e:
            tables[table] = False
            logger.error(f"Readiness check: table '{table}' unavailable: {e}")

    ready = all(tables.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ok" if ready else "unavailable",
            "database": {"tables": tables},
        },
    )
