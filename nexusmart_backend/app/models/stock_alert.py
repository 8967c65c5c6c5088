"""
Stock Alert model

A stored intent to be told when a product comes back in stock. An alert is
"active" until a restock batch marks it notified. At most one row exists per
(product, email); re-subscribing re-arms that row instead of adding another.
"""
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base


class NotifyChannel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


def default_notify_via():
    """Callable factory for JSON list default."""
    return [NotifyChannel.EMAIL.value]


class StockAlert(Base):
    __tablename__ = "stock_alerts"

    id = Column(Integer, primary_key=True, index=True)

    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Anonymous subscriptions have no user, only an email
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Contact (email stored trimmed + lower-cased)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(32), nullable=True)
    notify_via = Column(JSON, nullable=False, default=default_notify_via)

    # Status
    is_notified = Column(Boolean, nullable=False, default=False)
    notified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    resubscribed_at = Column(DateTime(timezone=True), nullable=True)

    product = relationship("Product", back_populates="stock_alerts")
    user = relationship("User", back_populates="stock_alerts")

    __table_args__ = (
        UniqueConstraint("product_id", "email", name="uq_stock_alerts_product_email"),
        Index("ix_stock_alerts_product_pending", "product_id", "is_notified"),
        Index("ix_stock_alerts_notified_at", "is_notified", "notified_at"),
    )

    @property
    def is_active(self) -> bool:
        return not self.is_notified

    def __repr__(self):
        return f"<StockAlert {self.id}: product {self.product_id} notified={self.is_notified}>"
