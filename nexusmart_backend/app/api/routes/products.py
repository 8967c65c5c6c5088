"""
Product routes

Admin actions are audit logged. A stock update from zero to a positive
quantity notifies the product's pending stock alerts.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import get_client_ip
from app.core.audit_log import (
    log_admin_action,
    ACTION_PRODUCT_CREATE,
    ACTION_PRODUCT_UPDATE,
    ACTION_PRODUCT_DELETE,
    ACTION_CATALOG_CURATE,
)
from app.models.product import Product
from app.models.user import User
from app.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductList,
    TrendingProducts,
    CurateFeaturedResponse,
)
from app.api.deps import get_current_admin
from app.services import catalog_service

router = APIRouter()


@router.get("", response_model=ProductList)
async def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    in_stock: Optional[bool] = None,
    sort: str = Query("featured", pattern="^(featured|price_asc|price_desc|trending|newest)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """List products with filtering, sorting, and pagination"""
    products, total = await catalog_service.list_products(
        db,
        category=category,
        search=search,
        featured=featured,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        sort=sort,
        page=page,
        per_page=per_page,
    )
    return ProductList(
        products=products,
        total=total,
        page=page,
        per_page=per_page
    )


@router.get("/trending", response_model=TrendingProducts)
async def get_trending_products(
    limit: int = Query(12, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    products = await catalog_service.trending_products(db, limit=limit)
    return TrendingProducts(count=len(products), products=products)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    """Get single product by ID"""
    return await catalog_service.get_product(db, product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    request: Request,
    product_data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Create new product (admin only)"""
    # Check SKU uniqueness
    result = await db.execute(select(Product).where(Product.sku == product_data.sku))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="SKU already exists"
        )

    product = await catalog_service.create_product(db, product_data.model_dump())

    log_admin_action(
        action=ACTION_PRODUCT_CREATE,
        user_id=admin.id,
        user_email=admin.email,
        resource_type="product",
        resource_id=product.id,
        details={"sku": product.sku, "name": product.name},
        ip_address=get_client_ip(request),
    )

    return product


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    request: Request,
    product_id: int,
    update_data: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Update product (admin only). Restocking notifies pending alerts."""
    update_dict = update_data.model_dump(exclude_unset=True)
    result = await catalog_service.update_product(db, product_id, update_dict)

    details = {"fields_updated": list(update_dict.keys())}
    if result.restocked:
        details["alerts_notified"] = result.restock.notified_count

    log_admin_action(
        action=ACTION_PRODUCT_UPDATE,
        user_id=admin.id,
        user_email=admin.email,
        resource_type="product",
        resource_id=product_id,
        details=details,
        ip_address=get_client_ip(request),
    )

    return result.product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    request: Request,
    product_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Delete product (admin only). Its stock alerts go with it."""
    product = await catalog_service.delete_product(db, product_id)

    log_admin_action(
        action=ACTION_PRODUCT_DELETE,
        user_id=admin.id,
        user_email=admin.email,
        resource_type="product",
        resource_id=product_id,
        details={"sku": product.sku, "name": product.name},
        ip_address=get_client_ip(request),
    )


@router.post("/admin/curate-featured", response_model=CurateFeaturedResponse)
async def curate_featured(
    request: Request,
    limit: Optional[int] = Query(None, ge=0, le=100),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    """Recompute featured flags from trending score and purchases (admin only)."""
    result = await catalog_service.curate_featured(
        db, limit if limit is not None else settings.FEATURED_PRODUCT_LIMIT
    )

    log_admin_action(
        action=ACTION_CATALOG_CURATE,
        user_id=admin.id,
        user_email=admin.email,
        resource_type="product",
        details={
            "featured_count": len(result.featured_ids),
            "flags_set": result.flags_set,
            "flags_cleared": result.flags_cleared,
        },
        ip_address=get_client_ip(request),
    )

    return CurateFeaturedResponse(
        featured_count=len(result.featured_ids),
        flags_set=result.flags_set,
        flags_cleared=result.flags_cleared,
    )
