"""
Stock Alert Routes

Back-in-stock subscriptions for the storefront, plus admin reporting,
manual restock notification and cleanup.

Subscribing is idempotent: a repeat request for an active alert returns the
existing alert with 200 instead of an error.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_current_admin, get_optional_user
from app.core.audit_log import log_admin_action, ACTION_ALERTS_NOTIFY, ACTION_ALERTS_CLEANUP
from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter, get_client_ip
from app.models.user import User
from app.schemas.stock_alert import (
    StockAlertSubscribe,
    StockAlertResponse,
    AdminStockAlertResponse,
    StockAlertEnvelope,
    StockAlertList,
    SubscriptionCheck,
    MessageResponse,
    StockAlertPage,
    PopularProduct,
    PopularOutOfStock,
    ProductSummary,
    NotifiedRecipient,
    NotifyRestockResponse,
    CleanupResponse,
)
from app.services import stock_alert_service
from app.services.stock_alert_service import SubscriptionOutcome

logger = logging.getLogger(__name__)

router = APIRouter()

SUBSCRIBE_MESSAGES = {
    SubscriptionOutcome.CREATED: "You will be notified when this product is back in stock",
    SubscriptionOutcome.RESUBSCRIBED: "Your stock alert has been re-activated",
    SubscriptionOutcome.ALREADY_SUBSCRIBED: "You are already subscribed to this product",
    SubscriptionOutcome.UPDATED: "Your stock alert has been updated",
}


@router.post("", response_model=StockAlertEnvelope, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_SUBSCRIBE)
async def subscribe_to_stock_alert(
    request: Request,
    response: Response,
    payload: StockAlertSubscribe,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """
    Subscribe to a back-in-stock alert.

    201 when a new alert is created or a notified one is re-armed,
    200 with the existing alert when already subscribed.
    """
    result = await stock_alert_service.subscribe(
        db,
        product_id=payload.product_id,
        email=payload.email,
        phone=payload.phone,
        notify_via=payload.notify_via,
        user=user,
    )
    if not result.is_new_subscription:
        response.status_code = status.HTTP_200_OK

    return StockAlertEnvelope(
        message=SUBSCRIBE_MESSAGES[result.outcome],
        alert=StockAlertResponse.model_validate(result.alert),
    )


@router.put("", response_model=StockAlertEnvelope)
@limiter.limit(settings.RATE_LIMIT_SUBSCRIBE)
async def update_stock_alert(
    request: Request,
    payload: StockAlertSubscribe,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """Create or refresh an alert, re-arming it even if it was already notified."""
    result = await stock_alert_service.update_subscription(
        db,
        product_id=payload.product_id,
        email=payload.email,
        phone=payload.phone,
        notify_via=payload.notify_via,
        user=user,
    )
    return StockAlertEnvelope(
        message=SUBSCRIBE_MESSAGES[result.outcome],
        alert=StockAlertResponse.model_validate(result.alert),
    )


@router.get("/my-alerts", response_model=StockAlertList)
async def get_my_alerts(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """All stock alerts owned by the current user."""
    alerts = await stock_alert_service.list_user_alerts(db, user.id)
    return StockAlertList(
        count=len(alerts),
        alerts=[StockAlertResponse.model_validate(a) for a in alerts],
    )


@router.get("/check/{product_id}", response_model=SubscriptionCheck)
async def check_subscription(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    alert = await stock_alert_service.check_subscription(db, product_id, user.id)
    return SubscriptionCheck(
        is_subscribed=alert is not None,
        alert=StockAlertResponse.model_validate(alert) if alert else None,
    )


# ============== ADMIN ==============

@router.get("/admin/all", response_model=StockAlertPage)
async def list_all_alerts(
    notified: Optional[bool] = None,
    product_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """All stock alerts, optionally filtered by status or product (admin only)."""
    result = await stock_alert_service.list_all_alerts(
        db, notified=notified, product_id=product_id, page=page, limit=limit
    )
    return StockAlertPage(
        count=len(result.alerts),
        total=result.total,
        pages=result.pages,
        page=result.page,
        alerts=[AdminStockAlertResponse.model_validate(a) for a in result.alerts],
    )


@router.get("/admin/popular", response_model=PopularOutOfStock)
async def popular_out_of_stock(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Products with the most pending stock alerts (admin only)."""
    rows = await stock_alert_service.popular_out_of_stock(db, limit=limit)
    return PopularOutOfStock(
        products=[
            PopularProduct(
                product_id=product.id,
                alert_count=count,
                product=ProductSummary.model_validate(product),
            )
            for product, count in rows
        ]
    )


@router.post("/admin/notify/{product_id}", response_model=NotifyRestockResponse)
async def notify_restocked(
    request: Request,
    product_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Mark pending alerts for an in-stock product notified and send notices (admin only)."""
    notification = await stock_alert_service.notify_restocked(db, product_id)
    send_result = notification.send_result

    log_admin_action(
        action=ACTION_ALERTS_NOTIFY,
        user_id=admin.id,
        user_email=admin.email,
        resource_type="product",
        resource_id=product_id,
        details={
            "notified_count": notification.notified_count,
            "sent_count": send_result.sent_count,
            "failed_count": send_result.failed_count,
        },
        ip_address=get_client_ip(request),
        success=send_result.success,
    )

    return NotifyRestockResponse(
        message=f"Notified {notification.notified_count} subscribers",
        notified_count=notification.notified_count,
        notified=[
            NotifiedRecipient(email=n.email, user_name=n.user_name, channels=n.channels)
            for n in notification.notices
        ],
        sent_count=send_result.sent_count,
        failed_count=send_result.failed_count,
        skipped_count=send_result.skipped_count,
    )


@router.delete("/admin/cleanup", response_model=CleanupResponse)
async def cleanup_notified_alerts(
    request: Request,
    days_old: int = Query(30, ge=0),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Delete notified alerts older than days_old (admin only)."""
    deleted = await stock_alert_service.cleanup_notified_alerts(db, days_old=days_old)

    log_admin_action(
        action=ACTION_ALERTS_CLEANUP,
        user_id=admin.id,
        user_email=admin.email,
        resource_type="stock_alert",
        details={"days_old": days_old, "deleted_count": deleted},
        ip_address=get_client_ip(request),
    )

    return CleanupResponse(
        message=f"Deleted {deleted} old notified alerts",
        deleted_count=deleted,
    )


@router.delete("/{alert_id}", response_model=MessageResponse)
async def unsubscribe(
    alert_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Delete one of the current user's alerts."""
    await stock_alert_service.unsubscribe(db, alert_id, user.id)
    return MessageResponse(message="Unsubscribed from stock alert")
