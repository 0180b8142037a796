"""Order-related data models."""

import secrets
import time
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from dispatch.utils.clock import utcnow


class OrderStatus(str, Enum):
    """Order status progression, in order."""

    PREP = "PREP"
    PICKED = "PICKED"
    ON_ROUTE = "ON_ROUTE"
    DELIVERED = "DELIVERED"


STATUS_FLOW: list[OrderStatus] = list(OrderStatus)
ACTIVE_STATUSES = frozenset({OrderStatus.PREP, OrderStatus.PICKED, OrderStatus.ON_ROUTE})

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class OrderItem(BaseModel):
    """Individual item in an order."""

    name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


class CustomerInfo(BaseModel):
    """Who the order goes to."""

    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: str = Field(min_length=1)


class StatusChange(BaseModel):
    """One entry of an order's status history."""

    status: OrderStatus
    timestamp: datetime = Field(default_factory=utcnow)
    updated_by: UUID | None = None


class Order(BaseModel):
    """Complete order details as stored."""

    id: UUID = Field(default_factory=uuid4)
    order_id: str
    items: list[OrderItem] = Field(min_length=1)
    prep_time: int = Field(ge=1)
    status: OrderStatus = OrderStatus.PREP

    # Assignment
    delivery_partner: UUID | None = None
    dispatch_time: int | None = None

    customer_info: CustomerInfo
    total_amount: float = Field(default=0.0, ge=0)
    status_history: list[StatusChange] = Field(default_factory=list)

    created_by: UUID
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status == OrderStatus.DELIVERED

    def changed_at(self, status: OrderStatus) -> datetime | None:
        """Timestamp of the most recent move into ``status``."""
        for entry in reversed(self.status_history):
            if entry.status == status:
                return entry.timestamp
        return None

    def touch(self) -> None:
        self.updated_at = utcnow()
        self.version += 1


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_order_id() -> str:
    """Human-readable order code, e.g. ``ORD-LZ3K9W1A-X7Q2F``."""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"ORD-{stamp}-{suffix}".upper()
