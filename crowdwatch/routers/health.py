# crowdwatch/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + real-time channel.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from crowdwatch.config import settings
from crowdwatch.database import get_db
from crowdwatch.dependencies import get_broadcaster
from crowdwatch.services.broadcaster import Broadcaster
from datetime import datetime
import time

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db), broadcaster: Broadcaster = Depends(get_broadcaster)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Database round-trip time
    - Number of connected real-time subscribers
    - Rapid-inflow rule in effect
    """
    result = {
        "status": "ok",
        "service": "CrowdWatch API",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "subscribers": broadcaster.subscriber_count,
        "rapid_inflow": {"count": settings.RAPID_INFLOW_COUNT, "seconds": settings.RAPID_INFLOW_SECONDS},
    }

    try:
        started = time.perf_counter()
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
        result["database_latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
