"""
Product schemas
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.product import ProductStatus


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=4000)
    category: str
    price: float = Field(..., gt=0)
    original_price: Optional[float] = Field(None, ge=0)


class ProductCreate(ProductBase):
    sku: str = Field(..., min_length=1)
    stock: int = Field(0, ge=0)
    low_stock_threshold: int = Field(10, ge=0)
    image_url: Optional[str] = None
    images: List[str] = []
    tags: List[str] = []
    featured: bool = False
    trending_score: float = 0.0


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=4000)
    category: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    original_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    status: Optional[ProductStatus] = None
    image_url: Optional[str] = None
    images: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    featured: Optional[bool] = None
    trending_score: Optional[float] = None

    # Omit a field to leave it unchanged; these columns cannot be cleared
    @field_validator(
        'name', 'category', 'price', 'stock', 'status', 'featured', 'trending_score',
        mode='before',
    )
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: str
    stock: int = 0
    low_stock_threshold: int = 10
    status: str = ProductStatus.ACTIVE.value
    is_low_stock: bool = False
    image_url: Optional[str] = None
    images: List[str] = []
    tags: List[str] = []
    featured: bool = False
    trending_score: float = 0.0
    purchases: int = 0
    created_at: Optional[datetime] = None

    # Handle NULL values from database
    @field_validator('stock', 'purchases', 'low_stock_threshold', mode='before')
    @classmethod
    def default_int(cls, v):
        return v if v is not None else 0

    @field_validator('trending_score', mode='before')
    @classmethod
    def default_float(cls, v):
        return v if v is not None else 0.0

    @field_validator('images', 'tags', mode='before')
    @classmethod
    def default_list(cls, v):
        return v if v is not None else []

    @field_validator('featured', 'is_low_stock', mode='before')
    @classmethod
    def default_bool(cls, v):
        return v if v is not None else False


class ProductList(BaseModel):
    products: List[ProductResponse]
    total: int
    page: int
    per_page: int


class TrendingProducts(BaseModel):
    success: bool = True
    count: int
    products: List[ProductResponse]


class CurateFeaturedResponse(BaseModel):
    success: bool = True
    featured_count: int
    flags_set: int
    flags_cleared: int
