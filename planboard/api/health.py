from datetime import datetime, UTC
from time import time
from typing import Dict, Any

import psutil
from fastapi import APIRouter

from planboard.core.config import settings, startup_time
from planboard.db.client import check_database_connection

router = APIRouter(prefix="/health", tags=["Health"])


def calculate_uptime() -> Dict[str, Any]:
    """
    Calculate the uptime of the application since startup.
    """
    uptime_seconds = time() - startup_time
    hours = int(uptime_seconds // 3600)
    minutes = int((uptime_seconds % 3600) // 60)
    seconds = int(uptime_seconds % 60)

    return {
        "uptime_seconds": round(uptime_seconds, 2),
        "uptime_formatted": f"{hours}h {minutes}m {seconds}s",
    }


@router.get("")
async def health_check():
    """
    Health check endpoint
    """
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.ENVIRONMENT,
        **calculate_uptime(),
    }


@router.get("/details")
async def health_check_details():
    """
    Health check including datastore reachability and process memory
    """
    database_ok = await check_database_connection()
    memory_info = psutil.virtual_memory()

    return {
        "status": "healthy" if database_ok else "degraded",
        "version": settings.VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.ENVIRONMENT,
        "database": "ok" if database_ok else "unavailable",
        "memory_percent": memory_info.percent,
        **calculate_uptime(),
    }
