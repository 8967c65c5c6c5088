"""
Stock Alert Registry

Tracks who wants to hear about a product coming back in stock.

Consistency rules:
- One row per (product, email), enforced by a unique constraint.
- Subscribing is a single conditional upsert: new rows are inserted,
  notified rows are re-armed, active rows are left untouched. There is no
  read-then-write window in which two requests can both create a row.
- Restock notification is a single UPDATE ... RETURNING over the product's
  active alerts, so a concurrent subscribe either lands before the update
  (and is marked) or after it (and stays active).

The registry's contract ends at "selected and marked". Delivery goes through
a NotificationSender and its failures are reported, never rolled back.
"""
import enum
import logging
import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Sequence

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.core.exceptions import (
    InvalidSubscriptionError,
    NotificationError,
    ProductNotFoundError,
    ProductOutOfStockError,
    StockAlertForbiddenError,
    StockAlertNotFoundError,
)
from app.core.utils import utcnow, normalize_email, email_log_id
from app.models.product import Product
from app.models.stock_alert import StockAlert, NotifyChannel
from app.models.user import User
from app.services.notification_sender import (
    NotificationSender,
    RestockNotice,
    SendResult,
    get_notification_sender,
)

logger = logging.getLogger(__name__)


class SubscriptionOutcome(str, enum.Enum):
    CREATED = "created"
    ALREADY_SUBSCRIBED = "already_subscribed"
    RESUBSCRIBED = "resubscribed"
    UPDATED = "updated"


@dataclass
class SubscriptionResult:
    alert: StockAlert
    outcome: SubscriptionOutcome

    @property
    def is_new_subscription(self) -> bool:
        return self.outcome in (SubscriptionOutcome.CREATED, SubscriptionOutcome.RESUBSCRIBED)


@dataclass
class RestockNotification:
    product: Product
    alerts: List[StockAlert] = field(default_factory=list)
    notices: List[RestockNotice] = field(default_factory=list)
    send_result: SendResult = field(default_factory=lambda: SendResult(success=True))

    @property
    def notified_count(self) -> int:
        return len(self.alerts)


@dataclass
class AlertPage:
    alerts: List[StockAlert]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _dialect_insert(db: AsyncSession):
    """INSERT construct with ON CONFLICT support for the bound dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    else:
        raise NotImplementedError(f"Stock alert upserts are not supported on {dialect}")
    return dialect_insert


def _normalize_channels(notify_via: Optional[Sequence]) -> List[str]:
    channels = []
    for channel in notify_via or [NotifyChannel.EMAIL]:
        value = NotifyChannel(channel).value
        if value not in channels:
            channels.append(value)
    return channels


async def _load_product(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def _resolve_email(email: Optional[str], user: Optional[User]) -> str:
    contact = normalize_email(email)
    if contact is None and user is not None:
        contact = normalize_email(user.email)
    if contact is None:
        raise InvalidSubscriptionError("An email address is required to subscribe to stock alerts")
    return contact


async def _upsert_alert(
    db: AsyncSession,
    product: Product,
    email: str,
    phone: Optional[str],
    channels: List[str],
    user: Optional[User],
    only_if_notified: bool,
) -> Optional[StockAlert]:
    """
    Insert or re-arm the (product, email) alert in one statement.

    With only_if_notified the conflict branch is limited to notified rows, so
    an active alert is left as-is and nothing is returned.
    """
    now = utcnow()
    insert = _dialect_insert(db)
    stmt = insert(StockAlert).values(
        product_id=product.id,
        user_id=user.id if user is not None else None,
        email=email,
        phone=phone,
        notify_via=channels,
        is_notified=False,
        notified_at=None,
        created_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["product_id", "email"],
        set_={
            "phone": stmt.excluded.phone,
            "notify_via": stmt.excluded.notify_via,
            "user_id": func.coalesce(stmt.excluded.user_id, StockAlert.user_id),
            "is_notified": False,
            "notified_at": None,
            "resubscribed_at": now,
        },
        where=StockAlert.is_notified.is_(True) if only_if_notified else None,
    ).returning(StockAlert)

    result = await db.execute(stmt, execution_options={"populate_existing": True})
    alert = result.scalars().first()
    if alert is not None:
        set_committed_value(alert, "product", product)
    return alert


async def _find_alert(db: AsyncSession, product_id: int, email: str) -> Optional[StockAlert]:
    result = await db.execute(
        select(StockAlert)
        .options(selectinload(StockAlert.product))
        .where(StockAlert.product_id == product_id, StockAlert.email == email)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def subscribe(
    db: AsyncSession,
    product_id: int,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    notify_via: Optional[Sequence] = None,
    user: Optional[User] = None,
) -> SubscriptionResult:
    """
    Subscribe an email to a product's restock.

    Idempotent while the alert is active: a repeat request returns the
    existing alert unchanged. A notified alert is re-armed in place.
    """
    product = await _load_product(db, product_id)
    contact = _resolve_email(email, user)
    channels = _normalize_channels(notify_via)

    # Two passes cover an active alert being deleted between the upsert and the read
    for _ in range(2):
        alert = await _upsert_alert(db, product, contact, phone, channels, user, only_if_notified=True)
        if alert is not None:
            outcome = (
                SubscriptionOutcome.RESUBSCRIBED
                if alert.resubscribed_at is not None
                else SubscriptionOutcome.CREATED
            )
            await db.commit()
            logger.info(
                f"Stock alert {outcome.value}: alert {alert.id} product {product.id} "
                f"subscriber {email_log_id(contact)}"
            )
            return SubscriptionResult(alert=alert, outcome=outcome)

        existing = await _find_alert(db, product.id, contact)
        if existing is not None:
            logger.debug(f"Stock alert {existing.id} already active for product {product.id}")
            return SubscriptionResult(alert=existing, outcome=SubscriptionOutcome.ALREADY_SUBSCRIBED)

    raise RuntimeError(f"Stock alert upsert for product {product.id} returned no row")


async def update_subscription(
    db: AsyncSession,
    product_id: int,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    notify_via: Optional[Sequence] = None,
    user: Optional[User] = None,
) -> SubscriptionResult:
    """
    Create or refresh the (product, email) alert regardless of its state.

    Contact details and channels are replaced and the alert is re-armed.
    """
    product = await _load_product(db, product_id)
    contact = _resolve_email(email, user)
    channels = _normalize_channels(notify_via)

    alert = await _upsert_alert(db, product, contact, phone, channels, user, only_if_notified=False)
    outcome = (
        SubscriptionOutcome.UPDATED
        if alert.resubscribed_at is not None
        else SubscriptionOutcome.CREATED
    )
    await db.commit()
    logger.info(f"Stock alert {outcome.value}: alert {alert.id} product {product.id}")
    return SubscriptionResult(alert=alert, outcome=outcome)


async def list_user_alerts(db: AsyncSession, user_id: int) -> List[StockAlert]:
    """All alerts owned by a user, newest first, with product attached."""
    result = await db.execute(
        select(StockAlert)
        .options(selectinload(StockAlert.product))
        .where(StockAlert.user_id == user_id)
        .order_by(StockAlert.created_at.desc(), StockAlert.id.desc())
    )
    return list(result.scalars().all())


async def unsubscribe(db: AsyncSession, alert_id: int, user_id: int) -> None:
    """Delete an alert owned by the user."""
    alert = await db.get(StockAlert, alert_id)
    if alert is None:
        raise StockAlertNotFoundError(alert_id)
    if alert.user_id != user_id:
        logger.warning(f"User {user_id} attempted to delete stock alert {alert_id} owned by another account")
        raise StockAlertForbiddenError(alert_id)

    await db.delete(alert)
    await db.commit()
    logger.info(f"Stock alert {alert_id} deleted by user {user_id}")


async def check_subscription(db: AsyncSession, product_id: int, user_id: int) -> Optional[StockAlert]:
    """The user's active alert for the product, if any."""
    result = await db.execute(
        select(StockAlert)
        .options(selectinload(StockAlert.product))
        .where(
            StockAlert.product_id == product_id,
            StockAlert.user_id == user_id,
            StockAlert.is_notified.is_(False),
        )
        .order_by(StockAlert.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def mark_alerts_notified(db: AsyncSession, product: Product) -> List[StockAlert]:
    """Mark every active alert of the product notified; returns exactly the rows marked."""
    stmt = (
        update(StockAlert)
        .where(
            StockAlert.product_id == product.id,
            StockAlert.is_notified.is_(False),
        )
        .values(is_notified=True, notified_at=utcnow())
        .returning(StockAlert)
    )
    result = await db.execute(stmt, execution_options={"populate_existing": True})
    alerts = list(result.scalars().all())
    for alert in alerts:
        set_committed_value(alert, "product", product)
    return alerts


async def _user_names(db: AsyncSession, alerts: List[StockAlert]) -> dict:
    user_ids = {alert.user_id for alert in alerts if alert.user_id is not None}
    if not user_ids:
        return {}
    result = await db.execute(select(User.id, User.name).where(User.id.in_(user_ids)))
    return {row.id: row.name for row in result}


async def notify_restocked(
    db: AsyncSession,
    product_id: int,
    sender: Optional[NotificationSender] = None,
    require_in_stock: bool = True,
) -> RestockNotification:
    """
    Mark a restocked product's active alerts notified and dispatch notices.

    Called by whatever updates stock once it goes from zero to positive.
    Marking is committed before the sender runs.
    """
    product = await _load_product(db, product_id)
    if require_in_stock and (product.stock or 0) <= 0:
        raise ProductOutOfStockError(product.id, stock=product.stock)

    alerts = await mark_alerts_notified(db, product)
    await db.commit()

    notification = RestockNotification(product=product, alerts=alerts)
    if not alerts:
        logger.info(f"No pending stock alerts for product {product.id}")
        return notification

    names = await _user_names(db, alerts)
    notification.notices = [
        RestockNotice.from_alert(alert, product, user_name=names.get(alert.user_id))
        for alert in alerts
    ]
    logger.info(f"Marked {len(alerts)} stock alerts notified for product {product.id}")

    owns_sender = sender is None
    sender = sender or get_notification_sender()
    try:
        notification.send_result = await sender.send_restock_notices(notification.notices)
    except NotificationError as e:
        logger.error(f"Restock notification dispatch failed for product {product.id}: {e.message}")
        notification.send_result = SendResult(
            success=False,
            failed_count=len(notification.notices),
            error=e.message,
        )
    finally:
        if owns_sender:
            await sender.close()

    if not notification.send_result.success:
        logger.warning(
            f"Restock notices for product {product.id}: {notification.send_result.sent_count} sent, "
            f"{notification.send_result.failed_count} failed"
        )
    return notification


async def list_all_alerts(
    db: AsyncSession,
    notified: Optional[bool] = None,
    product_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> AlertPage:
    """Admin listing with optional status/product filters, product and subscriber attached."""
    query = select(StockAlert)
    if notified is not None:
        query = query.where(StockAlert.is_notified.is_(notified))
    if product_id is not None:
        query = query.where(StockAlert.product_id == product_id)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    result = await db.execute(
        query.options(selectinload(StockAlert.product), selectinload(StockAlert.user))
        .order_by(StockAlert.created_at.desc(), StockAlert.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return AlertPage(alerts=list(result.scalars().all()), total=total or 0, page=page, limit=limit)


async def popular_out_of_stock(db: AsyncSession, limit: int = 20) -> List[tuple]:
    """Products with the most active alerts, as (product, alert_count) pairs."""
    alert_count = func.count(StockAlert.id).label("alert_count")
    result = await db.execute(
        select(Product, alert_count)
        .join(StockAlert, StockAlert.product_id == Product.id)
        .where(StockAlert.is_notified.is_(False))
        .group_by(Product.id)
        .order_by(alert_count.desc(), Product.id)
        .limit(limit)
    )
    return [(row.Product, row.alert_count) for row in result]


async def cleanup_notified_alerts(db: AsyncSession, days_old: int = 30) -> int:
    """Delete notified alerts whose notification is older than days_old."""
    cutoff = utcnow() - timedelta(days=days_old)
    result = await db.execute(
        delete(StockAlert)
        .where(
            StockAlert.is_notified.is_(True),
            StockAlert.notified_at < cutoff,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    deleted = result.rowcount or 0
    if deleted:
        logger.info(f"Deleted {deleted} notified stock alerts older than {days_old} days")
    return deleted
