"""
Catalog Service

Product reads, admin stock updates and featured-product curation.

A stock update that takes a product from zero to a positive quantity is a
restock: pending stock alerts for the product are marked notified and handed
to the notification sender.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ProductNotFoundError
from app.models.product import Product, ProductStatus
from app.services import stock_alert_service
from app.services.notification_sender import NotificationSender

logger = logging.getLogger(__name__)


@dataclass
class ProductUpdateResult:
    product: Product
    restock: Optional[stock_alert_service.RestockNotification] = None

    @property
    def restocked(self) -> bool:
        return self.restock is not None


@dataclass
class CurationResult:
    featured_ids: List[int]
    flags_set: int
    flags_cleared: int


async def get_product(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def apply_stock_status(product: Product) -> None:
    """Keep status in line with stock. Discontinued products are left alone."""
    if product.status == ProductStatus.DISCONTINUED.value:
        return
    if (product.stock or 0) <= 0:
        product.status = ProductStatus.OUT_OF_STOCK.value
    elif product.status == ProductStatus.OUT_OF_STOCK.value:
        product.status = ProductStatus.ACTIVE.value


async def create_product(db: AsyncSession, data: Dict[str, Any]) -> Product:
    product = Product(**data)
    apply_stock_status(product)
    db.add(product)
    await db.commit()
    await db.refresh(product)
    logger.info(f"Created product {product.id} ({product.sku})")
    return product


async def update_product(
    db: AsyncSession,
    product_id: int,
    changes: Dict[str, Any],
    sender: Optional[NotificationSender] = None,
) -> ProductUpdateResult:
    """
    Apply field changes to a product.

    When stock goes from 0 to a positive quantity the product's pending
    stock alerts are notified after the update is committed.
    """
    product = await get_product(db, product_id)
    previous_stock = product.stock or 0

    for field_name, value in changes.items():
        if isinstance(value, ProductStatus):
            value = value.value
        setattr(product, field_name, value)

    # An explicit status change wins over the stock rule
    if "stock" in changes and "status" not in changes:
        apply_stock_status(product)

    await db.commit()
    await db.refresh(product)

    result = ProductUpdateResult(product=product)
    if previous_stock <= 0 and (product.stock or 0) > 0:
        logger.info(f"Product {product.id} restocked ({previous_stock} -> {product.stock})")
        result.restock = await stock_alert_service.notify_restocked(db, product.id, sender=sender)
    return result


async def delete_product(db: AsyncSession, product_id: int) -> Product:
    product = await get_product(db, product_id)
    await db.delete(product)
    await db.commit()
    logger.info(f"Deleted product {product_id}")
    return product


def select_featured(products: Iterable[Product], limit: int) -> List[int]:
    """
    Ids of the products that should carry the featured flag.

    Active, in-stock products ranked by trending score, then purchases, then
    lowest id. The ranking depends only on product data, so the same catalog
    always yields the same selection.
    """
    eligible = [
        p for p in products
        if p.status == ProductStatus.ACTIVE.value and (p.stock or 0) > 0
    ]
    eligible.sort(key=lambda p: (-(p.trending_score or 0.0), -(p.purchases or 0), p.id))
    return [p.id for p in eligible[:max(limit, 0)]]


async def curate_featured(db: AsyncSession, limit: int) -> CurationResult:
    """Recompute featured flags across the catalog. Safe to re-run."""
    result = await db.execute(select(Product))
    products = list(result.scalars().all())
    selected = set(select_featured(products, limit))

    flags_set = 0
    flags_cleared = 0
    for product in products:
        should_feature = product.id in selected
        if bool(product.featured) == should_feature:
            continue
        product.featured = should_feature
        if should_feature:
            flags_set += 1
        else:
            flags_cleared += 1

    if flags_set or flags_cleared:
        await db.commit()
    logger.info(
        f"Featured curation: {len(selected)} featured, {flags_set} set, {flags_cleared} cleared"
    )
    return CurationResult(
        featured_ids=sorted(selected),
        flags_set=flags_set,
        flags_cleared=flags_cleared,
    )


async def trending_products(db: AsyncSession, limit: int = 12) -> List[Product]:
    result = await db.execute(
        select(Product)
        .where(Product.status == ProductStatus.ACTIVE.value)
        .order_by(Product.trending_score.desc(), Product.purchases.desc(), Product.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_products(
    db: AsyncSession,
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    in_stock: Optional[bool] = None,
    sort: str = "featured",
    page: int = 1,
    per_page: int = 20,
) -> tuple:
    """Filtered, sorted page of products as (products, total)."""
    query = select(Product)

    if category:
        query = query.where(Product.category == category)
    if featured is not None:
        query = query.where(Product.featured.is_(featured))
    if min_price is not None:
        query = query.where(Product.price >= min_price)
    if max_price is not None:
        query = query.where(Product.price <= max_price)
    if in_stock:
        query = query.where(Product.stock > 0)
    if search:
        search_term = f"%{search}%"
        query = query.where(
            Product.name.ilike(search_term) |
            Product.description.ilike(search_term)
        )

    if sort == "price_asc":
        query = query.order_by(Product.price.asc(), Product.id)
    elif sort == "price_desc":
        query = query.order_by(Product.price.desc(), Product.id)
    elif sort == "trending":
        query = query.order_by(Product.trending_score.desc(), Product.purchases.desc(), Product.id)
    elif sort == "newest":
        query = query.order_by(Product.created_at.desc(), Product.id.desc())
    else:  # featured
        query = query.order_by(Product.featured.desc(), Product.created_at.desc(), Product.id.desc())

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    result = await db.execute(query.offset((page - 1) * per_page).limit(per_page))
    return list(result.scalars().all()), total or 0
