"""
Product model

Catalog read model shared by the storefront and the stock-alert registry.
Stock drives status: a product with no stock is "out_of_stock" until it is
restocked, which is also the moment pending stock alerts fire.
"""
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text, JSON, Index, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class ProductStatus(str, enum.Enum):
    ACTIVE = "active"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String, unique=True, index=True, nullable=False)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text)
    category = Column(String, nullable=False, index=True)

    # Pricing
    price = Column(Numeric(12, 2), nullable=False)
    original_price = Column(Numeric(12, 2))

    # Inventory
    stock = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, default=10)
    status = Column(String(20), nullable=False, default=ProductStatus.ACTIVE.value, index=True)

    # Media
    image_url = Column(String)
    images = Column(JSON, default=list)

    # Merchandising
    tags = Column(JSON, default=list)
    featured = Column(Boolean, nullable=False, default=False)
    trending_score = Column(Float, nullable=False, default=0.0)
    purchases = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )

    stock_alerts = relationship("StockAlert", back_populates="product", passive_deletes=True)

    __table_args__ = (
        Index("ix_products_trending", trending_score.desc(), purchases.desc()),
        CheckConstraint('stock >= 0', name='check_stock_non_negative'),
        CheckConstraint('price > 0', name='check_price_positive'),
    )

    @property
    def in_stock(self) -> bool:
        return (self.stock or 0) > 0

    @property
    def is_low_stock(self) -> bool:
        """Low on stock but not out of it."""
        return 0 < (self.stock or 0) <= (self.low_stock_threshold or 0)

    def __repr__(self):
        return f"<Product(id={self.id}, sku='{self.sku}', stock={self.stock})>"
