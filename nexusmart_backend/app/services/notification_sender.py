"""
Restock Notification Senders

The stock-alert registry marks alerts notified and hands the resulting
notices to a sender. Delivery is best effort: senders report what they sent,
failed, or skipped, and never touch alert state.

Providers:
- "log": writes each notice to the application log (default)
- "sendgrid": emails restock notices through the SendGrid v3 API
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import NotificationError
from app.core.utils import email_log_id
from app.models.stock_alert import NotifyChannel

logger = logging.getLogger(__name__)


@dataclass
class RestockNotice:
    alert_id: int
    email: str
    product_id: int
    product_name: str
    channels: List[str] = field(default_factory=lambda: [NotifyChannel.EMAIL.value])
    phone: Optional[str] = None
    user_name: str = "Customer"

    @classmethod
    def from_alert(cls, alert, product, user_name: Optional[str] = None) -> "RestockNotice":
        return cls(
            alert_id=alert.id,
            email=alert.email,
            product_id=product.id,
            product_name=product.name,
            channels=list(alert.notify_via or [NotifyChannel.EMAIL.value]),
            phone=alert.phone,
            user_name=user_name or "Customer",
        )


@dataclass
class SendResult:
    success: bool
    sent_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    error: Optional[str] = None


class NotificationSender:
    """Base class for restock notification providers."""

    name = "base"

    async def send_restock_notices(self, notices: List[RestockNotice]) -> SendResult:
        raise NotImplementedError

    async def close(self):
        """Release provider resources."""


class LoggingNotificationSender(NotificationSender):
    """Writes notices to the log. Used until a real provider is configured."""

    name = "log"

    async def send_restock_notices(self, notices: List[RestockNotice]) -> SendResult:
        for notice in notices:
            logger.info(
                f"Restock notice for alert {notice.alert_id}: product {notice.product_id} "
                f"({notice.product_name}) -> {email_log_id(notice.email)} via {','.join(notice.channels)}"
            )
        return SendResult(success=True, sent_count=len(notices))


class SendGridNotificationSender(NotificationSender):
    """Emails restock notices through SendGrid. SMS and push are not handled here."""

    name = "sendgrid"
    BASE_URL = "https://api.sendgrid.com/v3"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.api_key = settings.SENDGRID_API_KEY
        self.from_email = settings.SENDGRID_FROM_EMAIL
        self.from_name = settings.SENDGRID_FROM_NAME
        self.template_id = settings.SENDGRID_RESTOCK_TEMPLATE_ID
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=30.0,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._http_client

    async def close(self):
        """Explicit cleanup method."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    def _build_payload(self, notice: RestockNotice) -> dict:
        product_url = f"{settings.APP_URL}/products/{notice.product_id}"
        payload = {
            "personalizations": [{
                "to": [{"email": notice.email, "name": notice.user_name}],
                "dynamic_template_data": {
                    "user_name": notice.user_name,
                    "product_name": notice.product_name,
                    "product_url": product_url,
                },
            }],
            "from": {"email": self.from_email, "name": self.from_name},
            "categories": ["stock_alert"],
        }
        if self.template_id:
            payload["template_id"] = self.template_id
        else:
            payload["subject"] = f"{notice.product_name} is back in stock"
            payload["content"] = [{
                "type": "text/plain",
                "value": (
                    f"Hi {notice.user_name},\n\n"
                    f"Good news: {notice.product_name} is available again.\n"
                    f"{product_url}\n"
                ),
            }]
        return payload

    async def _send_one(self, http: httpx.AsyncClient, notice: RestockNotice) -> None:
        try:
            resp = await http.post(f"{self.BASE_URL}/mail/send", json=self._build_payload(notice))
        except httpx.HTTPError as e:
            raise NotificationError(f"SendGrid request failed: {e}", provider=self.name) from e
        if resp.status_code not in (200, 202):
            raise NotificationError(
                f"SendGrid rejected restock email: {resp.status_code}",
                provider=self.name,
                details={"body": resp.text[:200]},
            )

    async def send_restock_notices(self, notices: List[RestockNotice]) -> SendResult:
        if not self.api_key:
            logger.warning("SendGrid API key not configured, restock emails not sent")
            return SendResult(success=False, failed_count=len(notices), error="Email not configured")

        result = SendResult(success=True)
        if not notices:
            return result

        http = await self._get_http_client()
        for notice in notices:
            if NotifyChannel.EMAIL.value not in notice.channels:
                result.skipped_count += 1
                continue
            try:
                await self._send_one(http, notice)
                result.sent_count += 1
            except NotificationError as e:
                result.failed_count += 1
                result.error = e.message
                logger.error(f"Restock email for alert {notice.alert_id} failed: {e.message}")

        result.success = result.failed_count == 0
        return result


def get_notification_sender() -> NotificationSender:
    """Build the sender selected by NOTIFICATION_PROVIDER."""
    if settings.NOTIFICATION_PROVIDER == "sendgrid":
        return SendGridNotificationSender()
    return LoggingNotificationSender()
