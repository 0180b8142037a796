"""Request and response bodies for the HTTP surface."""

from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from dispatch.models.order import CustomerInfo, OrderItem
from dispatch.models.user import Role
from dispatch.serialization import OrderView, UserView


class Body(BaseModel):
    """Accepts camelCase keys from clients, snake_case from Python callers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Auth


class RegisterRequest(Body):
    username: str = Field(min_length=3)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role
    estimated_delivery_time: int | None = Field(default=None, ge=1)


class LoginRequest(Body):
    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdate(Body):
    username: str | None = Field(default=None, min_length=3)
    estimated_delivery_time: int | None = Field(default=None, ge=1)


class PartnerCreate(Body):
    username: str = Field(min_length=3)
    email: EmailStr
    password: str = Field(min_length=6)
    estimated_delivery_time: int | None = Field(default=None, ge=1)


class PartnerUpdate(Body):
    username: str | None = Field(default=None, min_length=3)
    estimated_delivery_time: int | None = Field(default=None, ge=1)
    is_available: bool | None = None


# Orders


class OrderCreate(Body):
    items: list[OrderItem] = Field(min_length=1)
    prep_time: int = Field(ge=1)
    customer_info: CustomerInfo
    # Display-only; the stored total is always recomputed from items
    total_amount: float | None = Field(default=None, ge=0)


class OrderUpdate(Body):
    items: list[OrderItem] | None = Field(default=None, min_length=1)
    prep_time: int | None = Field(default=None, ge=1)
    customer_info: CustomerInfo | None = None


class AssignRequest(Body):
    delivery_partner_id: str = Field(min_length=1)


class StatusUpdate(Body):
    status: str = Field(min_length=1)


# Delivery


class AvailabilityUpdate(Body):
    is_available: bool


class EtaUpdate(Body):
    estimated_delivery_time: int = Field(ge=1)


# Responses


class Pagination(Body):
    current: int
    pages: int
    total: int


class AuthResponse(Body):
    message: str
    token: str
    user: UserView


class UserResponse(Body):
    message: str | None = None
    user: UserView


class PartnerResponse(Body):
    message: str | None = None
    delivery_partner: UserView


class PartnerListResponse(Body):
    delivery_partners: list[UserView]


class AvailablePartnersResponse(Body):
    partners: list[UserView]


class OrderResponse(Body):
    message: str | None = None
    order: OrderView | None


class OrderListResponse(Body):
    orders: list[OrderView]
    pagination: Pagination


class MessageResponse(Body):
    message: str


class TokenResponse(Body):
    message: str
    token: str


class DeliveryStats(Body):
    total_deliveries: int
    completed_today: int
    in_progress: int
    week_deliveries: int
    avg_delivery_minutes: int
    is_available: bool
    estimated_delivery_time: int


class StatsResponse(Body):
    stats: DeliveryStats


class WorkloadEntry(Body):
    partner_id: str
    username: str
    email: str
    is_available: bool
    estimated_delivery_time: int
    current_order: dict[str, Any] | None = None
    active_orders: int
    today_completed: int


class WorkloadResponse(Body):
    workload: list[WorkloadEntry]
