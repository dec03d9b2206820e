from fastapi import APIRouter
from loguru import logger
from tradejournal.db import db
from tradejournal.services.scheduler import scheduler_service

router = APIRouter(prefix="/status", tags=["Status"])

@router.get("/")
async def get_status():
    try:
        db_status = "connected" if await db.ping() else "unexpected ping result"
    except Exception as e:
        logger.warning(f"Status check: database unavailable: {e}")
        db_status = f"error: {e}"

    return {
        "database": db_status,
        "scheduler": "running" if scheduler_service.is_running else "stopped",
        "broker_auto_sync_minutes": scheduler_service.auto_sync_minutes,
        "jobs": scheduler_service.get_job_info(),
    }
