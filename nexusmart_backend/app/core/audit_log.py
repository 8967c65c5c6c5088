"""
Audit logging for admin actions

Track administrative actions (catalog edits, alert notifications, cleanups)
for security and compliance. Records who did what and when to the
structured "audit" logger.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Any

from app.core.config import settings

# Structured audit logger
audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

# Action categories
ACTION_PRODUCT_CREATE = "product.create"
ACTION_PRODUCT_UPDATE = "product.update"
ACTION_PRODUCT_DELETE = "product.delete"
ACTION_CATALOG_CURATE = "catalog.curate_featured"
ACTION_ALERTS_NOTIFY = "stock_alert.notify"
ACTION_ALERTS_CLEANUP = "stock_alert.cleanup"

_REDACTED_KEYS = ("password", "secret", "token", "key", "credential", "email", "phone")


def log_admin_action(
    action: str,
    user_id: Optional[int],
    user_email: str,
    resource_type: str,
    resource_id: Optional[Any] = None,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
    success: bool = True,
):
    """
    Log an administrative action.

    Args:
        action: Action identifier (e.g., "product.create")
        user_id: ID of the admin performing the action
        user_email: Email of the admin
        resource_type: Type of resource affected (e.g., "product", "stock_alert")
        resource_id: ID of the affected resource (if applicable)
        details: Additional context about the action
        ip_address: IP address of the request
        success: Whether the action succeeded
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "admin_id": user_id,
        "admin_email": user_email,
        "resource_type": resource_type,
        "resource_id": str(resource_id) if resource_id is not None else None,
        "success": success,
        "ip_address": ip_address,
        "environment": settings.ENVIRONMENT,
    }

    if details:
        # Subscriber contact data never goes into audit records
        safe_details = {
            k: v for k, v in details.items()
            if not any(bad in k.lower() for bad in _REDACTED_KEYS)
        }
        log_entry["details"] = safe_details

    if success:
        audit_logger.info(
            f"AUDIT: {action} by {user_email} on {resource_type}/{resource_id}",
            extra={"audit": log_entry}
        )
    else:
        audit_logger.warning(
            f"AUDIT FAILED: {action} by {user_email} on {resource_type}/{resource_id}",
            extra={"audit": log_entry}
        )
