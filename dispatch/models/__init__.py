"""Data models for the dispatch service."""

from dispatch.models.order import (
    ACTIVE_STATUSES,
    STATUS_FLOW,
    CustomerInfo,
    Order,
    OrderItem,
    OrderStatus,
    StatusChange,
    generate_order_id,
)
from dispatch.models.user import ROLE_ROOMS, Role, User

__all__ = [
    # Order
    "ACTIVE_STATUSES",
    "STATUS_FLOW",
    "CustomerInfo",
    "Order",
    "OrderItem",
    "OrderStatus",
    "StatusChange",
    "generate_order_id",
    # User
    "ROLE_ROOMS",
    "Role",
    "User",
]
