"""
Jobs Package

Background jobs started from the application lifespan.
"""
from app.jobs.alert_cleanup import (
    alert_cleanup_scheduler,
    cleanup_heartbeat,
    run_alert_cleanup,
)

__all__ = [
    "alert_cleanup_scheduler",
    "cleanup_heartbeat",
    "run_alert_cleanup",
]
