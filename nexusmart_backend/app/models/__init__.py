from app.models.user import User
from app.models.product import Product, ProductStatus
from app.models.stock_alert import StockAlert, NotifyChannel
