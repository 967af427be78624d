"""
Health Check Endpoints

- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database round-trip)
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Dict, Any
import time

from academia.core.config import settings
from academia.core.logging_config import logger


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity and that the schema exists"""
    start = time.time()
    try:
        from academia.core.database import get_session_local
        from sqlalchemy import text

        session_factory = get_session_local()
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))

            try:
                await session.execute(text("SELECT COUNT(*) FROM users"))
                tables_ok = True
            except Exception:
                tables_ok = False

            latency = (time.time() - start) * 1000
            return {
                "status": "healthy" if tables_ok else "unhealthy",
                "latency_ms": round(latency, 2),
                "connection": "ok",
                "tables_ready": tables_ok,
            }
    except Exception as e:
        latency = (time.time() - start) * 1000
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round(latency, 2),
            "connection": "failed",
            "tables_ready": False,
            "error": str(e),
        }


@router.get("/live")
async def liveness():
    """The process is up"""
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@router.get("/ready")
async def readiness():
    """503 until the database answers"""
    database = await check_database()
    healthy = database["status"] == "healthy"

    body = {
        "status": "ready" if healthy else "not_ready",
        "service": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {"database": database},
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body,
    )
