from .base import OrderManagementBase, TimestampedModel
from .order import Counter, Order, OrderStatus
from .user import Role, User

__all__ = [
    "OrderManagementBase",
    "TimestampedModel",
    "Counter",
    "Order",
    "OrderStatus",
    "Role",
    "User",
]
