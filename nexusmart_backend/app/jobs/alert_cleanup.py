"""
Stock Alert Cleanup Job

Deletes notified stock alerts past the retention window. Runs as a
background task from the application lifespan; the heartbeat is reported on
/health.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from app.core.config import settings
from app.core.database import get_db_session
from app.services.stock_alert_service import cleanup_notified_alerts

logger = logging.getLogger(__name__)

cleanup_heartbeat: dict = {
    "last_run": None,
    "last_success": None,
    "records_processed": 0,
    "errors": 0,
}


async def run_alert_cleanup(days_old: Optional[int] = None, session_factory=None) -> int:
    """Run one cleanup pass in its own session and record it on the heartbeat."""
    retention = days_old if days_old is not None else settings.ALERT_RETENTION_DAYS
    cleanup_heartbeat["last_run"] = datetime.now(timezone.utc).isoformat()

    try:
        async with get_db_session(session_factory) as db:
            deleted = await cleanup_notified_alerts(db, days_old=retention)
    except Exception as e:
        cleanup_heartbeat["errors"] += 1
        logger.error(f"Stock alert cleanup failed: {e}")
        return 0

    cleanup_heartbeat["last_success"] = datetime.now(timezone.utc).isoformat()
    cleanup_heartbeat["records_processed"] += deleted
    return deleted


async def alert_cleanup_scheduler():
    """Run cleanup every ALERT_CLEANUP_INTERVAL_MINUTES until cancelled."""
    interval_seconds = settings.ALERT_CLEANUP_INTERVAL_MINUTES * 60
    logger.info(
        f"Stock alert cleanup scheduler started (interval: {settings.ALERT_CLEANUP_INTERVAL_MINUTES} minutes, "
        f"retention: {settings.ALERT_RETENTION_DAYS} days)"
    )

    while True:
        await run_alert_cleanup()
        await asyncio.sleep(interval_seconds)
