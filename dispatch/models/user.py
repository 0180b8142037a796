"""User and role models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr, Field

from dispatch.utils.clock import utcnow


class Role(str, Enum):
    """User roles. Fixed at creation."""

    MANAGER = "manager"
    DELIVERY_PARTNER = "delivery_partner"


ROLE_ROOMS: dict[Role, str] = {
    Role.MANAGER: "managers",
    Role.DELIVERY_PARTNER: "delivery_partners",
}


class User(BaseModel):
    """Stored user profile, credential included."""

    id: UUID = Field(default_factory=uuid4)
    username: str = Field(min_length=3)
    email: EmailStr
    password_hash: str
    role: Role

    # Delivery partner fields
    estimated_delivery_time: int = Field(default=30, ge=1)
    is_available: bool = True
    current_order: UUID | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 0

    @property
    def is_partner(self) -> bool:
        return self.role == Role.DELIVERY_PARTNER

    @property
    def can_accept_order(self) -> bool:
        """Check if partner is free for a new assignment."""
        return self.is_partner and self.is_available and self.current_order is None

    def bind(self, order_id: UUID) -> None:
        self.is_available = False
        self.current_order = order_id
        self.touch()

    def release(self) -> None:
        self.is_available = True
        self.current_order = None
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()
        self.version += 1
