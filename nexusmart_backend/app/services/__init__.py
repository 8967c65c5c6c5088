# Services layer for business logic
from app.services import stock_alert_service, catalog_service
from app.services.notification_sender import (
    NotificationSender,
    LoggingNotificationSender,
    SendGridNotificationSender,
    get_notification_sender,
)

__all__ = [
    "catalog_service",
    "stock_alert_service",
    "NotificationSender",
    "LoggingNotificationSender",
    "SendGridNotificationSender",
    "get_notification_sender",
]
