from canteen_portal.models.user import User, Role, UserStatus
from canteen_portal.models.menu import MenuItem, Category
from canteen_portal.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from canteen_portal.models.payment import Payment, PaymentRecordStatus

__all__ = [
    "User",
    "Role",
    "UserStatus",
    "MenuItem",
    "Category",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "Payment",
    "PaymentRecordStatus",
]
