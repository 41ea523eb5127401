import os
import time
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import psutil
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import APP_VERSION
from ..core.database import get_db
from ..core.logging_utils import memory_log_handler
from ..core.security import verify_admin
from ..models.db_models import AccessLog
from ..services.usage_store import recent_usage, usage_summary

logger = logging.getLogger("Gawin.Routers.Admin")
router = APIRouter(dependencies=[Depends(verify_admin)])

START_TIME = time.time()


@router.get("/logs")
async def get_logs(
    limit: int = Query(100, ge=1, le=1000),
    level: Optional[str] = Query(None, description="Minimum level, e.g. WARNING"),
):
    """Recent records from the in-memory log buffer."""
    return memory_log_handler.get_logs(limit, level)


@router.get("/stats")
async def get_stats(db: AsyncSession = Depends(get_db)):
    process = psutil.Process(os.getpid())
    uptime_seconds = time.time() - START_TIME

    today_start = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    today_requests = (await db.execute(
        select(func.count()).select_from(AccessLog).where(AccessLog.timestamp >= today_start)
    )).scalar() or 0
    today_chat_errors = (await db.execute(
        select(func.count())
        .select_from(AccessLog)
        .where(AccessLog.timestamp >= today_start)
        .where(AccessLog.status_code >= 400)
    )).scalar() or 0

    return {
        "app_version": APP_VERSION,
        "uptime": str(timedelta(seconds=int(uptime_seconds))),
        "cpu_percent": psutil.cpu_percent(),
        "memory_percent": psutil.virtual_memory().percent,
        "process_memory_mb": round(process.memory_info().rss / 1024 / 1024, 2),
        "today_requests": today_requests,
        "today_error_responses": today_chat_errors,
        **(await usage_summary(db)),
    }


@router.get("/usage")
async def get_usage(limit: int = Query(50, ge=1, le=500), db: AsyncSession = Depends(get_db)):
    """Most recent chat usage records, newest first."""
    return await recent_usage(db, limit)
