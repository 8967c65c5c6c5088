"""
Stock alert schemas

The storefront speaks camelCase (productId, notifyVia, isSubscribed);
snake_case field names are accepted on input as well.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.stock_alert import NotifyChannel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class StockAlertSubscribe(CamelModel):
    product_id: int = Field(..., gt=0)
    # Optional when the caller is signed in; the account email is used instead
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    notify_via: List[NotifyChannel] = Field(
        default_factory=lambda: [NotifyChannel.EMAIL],
        min_length=1,
    )

    @field_validator("phone", mode="before")
    @classmethod
    def blank_phone_is_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("notify_via")
    @classmethod
    def dedupe_channels(cls, v):
        seen = []
        for channel in v:
            if channel not in seen:
                seen.append(channel)
        return seen


class ProductSummary(CamelModel):
    id: int
    name: str
    price: float
    stock: int = 0
    image_url: Optional[str] = None
    images: List[str] = []

    @field_validator("images", mode="before")
    @classmethod
    def default_list(cls, v):
        return v if v is not None else []


class StockAlertResponse(CamelModel):
    id: int
    product_id: int
    user_id: Optional[int] = None
    email: str
    phone: Optional[str] = None
    notify_via: List[str] = []
    is_notified: bool = False
    notified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    resubscribed_at: Optional[datetime] = None
    product: Optional[ProductSummary] = None


class AlertOwner(CamelModel):
    id: int
    name: str
    email: str


class AdminStockAlertResponse(StockAlertResponse):
    """Admin view: the subscribing account, when there is one."""
    user: Optional[AlertOwner] = None


class StockAlertEnvelope(CamelModel):
    success: bool = True
    message: str
    alert: StockAlertResponse


class StockAlertList(CamelModel):
    success: bool = True
    count: int
    alerts: List[StockAlertResponse]


class SubscriptionCheck(CamelModel):
    success: bool = True
    is_subscribed: bool
    alert: Optional[StockAlertResponse] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class StockAlertPage(CamelModel):
    success: bool = True
    count: int
    total: int
    pages: int
    page: int
    alerts: List[AdminStockAlertResponse]


class PopularProduct(CamelModel):
    product_id: int
    alert_count: int
    product: ProductSummary


class PopularOutOfStock(CamelModel):
    success: bool = True
    products: List[PopularProduct]


class NotifiedRecipient(CamelModel):
    email: str
    user_name: str
    channels: List[str]


class NotifyRestockResponse(CamelModel):
    success: bool = True
    message: str
    notified_count: int
    notified: List[NotifiedRecipient] = []
    sent_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0


class CleanupResponse(CamelModel):
    success: bool = True
    message: str
    deleted_count: int
