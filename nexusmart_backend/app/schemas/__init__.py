from app.schemas.product import ProductCreate, ProductUpdate, ProductResponse, ProductList
from app.schemas.stock_alert import (
    StockAlertSubscribe,
    StockAlertResponse,
    StockAlertEnvelope,
    StockAlertList,
    SubscriptionCheck,
)
