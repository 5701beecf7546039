from storefront.models.database import Base, get_db
from storefront.models.user import User
from storefront.models.product import Product
from storefront.models.order import Order, OrderItem
from storefront.models.notification import NotificationQueueItem

__all__ = ["Base", "get_db", "User", "Product", "Order", "OrderItem", "NotificationQueueItem"]
