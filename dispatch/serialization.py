"""
Outbound representations and the status vocabulary mapping.

Storage speaks the internal status names (PREP, PICKED, ON_ROUTE,
DELIVERED). Everything that leaves the process, HTTP bodies and push
payloads alike, speaks the external names and is built here.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from dispatch.errors import InputValidationError
from dispatch.models.order import CustomerInfo, Order, OrderItem, OrderStatus
from dispatch.models.user import Role, User

STATUS_TO_EXTERNAL: dict[OrderStatus, str] = {
    OrderStatus.PREP: "PREPARING",
    OrderStatus.PICKED: "READY",
    OrderStatus.ON_ROUTE: "OUT_FOR_DELIVERY",
    OrderStatus.DELIVERED: "DELIVERED",
}
STATUS_TO_INTERNAL: dict[str, OrderStatus] = {v: k for k, v in STATUS_TO_EXTERNAL.items()}

EXTERNAL_STATUSES = list(STATUS_TO_INTERNAL)


def to_external(status: OrderStatus) -> str:
    return STATUS_TO_EXTERNAL[status]


def to_internal(value: str) -> OrderStatus:
    """
    Translate an inbound status name.

    External names are mapped; names already in internal form pass
    through. Anything else is rejected.
    """
    if value in STATUS_TO_INTERNAL:
        return STATUS_TO_INTERNAL[value]
    try:
        return OrderStatus(value)
    except ValueError:
        raise InputValidationError(
            "Invalid status",
            fields={"status": f"Must be one of {EXTERNAL_STATUSES}"},
        ) from None


class View(BaseModel):
    """Base for outbound models: camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class UserSummary(View):
    id: UUID
    username: str
    email: str


class PartnerSummary(UserSummary):
    estimated_delivery_time: int


class UserView(View):
    id: UUID
    username: str
    email: str
    role: Role
    estimated_delivery_time: int | None = None
    is_available: bool | None = None
    current_order: UUID | None = None
    created_at: datetime


class StatusChangeView(View):
    status: str
    timestamp: datetime
    updated_by: UUID | None = None


class OrderView(View):
    id: UUID
    order_id: str
    items: list[OrderItem]
    prep_time: int
    status: str
    delivery_partner: PartnerSummary | None = None
    dispatch_time: int | None = None
    customer_info: CustomerInfo
    total_amount: float
    status_history: list[StatusChangeView]
    created_by: UserSummary | None = None
    created_at: datetime
    updated_at: datetime
    version: int = 0


def present_user(user: User) -> UserView:
    """Public profile; partner-only fields are left out for managers."""
    view = UserView(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        created_at=user.created_at,
    )
    if user.is_partner:
        view.estimated_delivery_time = user.estimated_delivery_time
        view.is_available = user.is_available
        view.current_order = user.current_order
    return view


def present_order(
    order: Order,
    partner: User | None = None,
    creator: User | None = None,
) -> OrderView:
    """Externalize an order, its history and the summaries of related users."""
    partner_summary = None
    if partner is not None:
        partner_summary = PartnerSummary(
            id=partner.id,
            username=partner.username,
            email=partner.email,
            estimated_delivery_time=partner.estimated_delivery_time,
        )
    creator_summary = None
    if creator is not None:
        creator_summary = UserSummary(id=creator.id, username=creator.username, email=creator.email)

    return OrderView(
        id=order.id,
        order_id=order.order_id,
        items=order.items,
        prep_time=order.prep_time,
        status=to_external(order.status),
        delivery_partner=partner_summary,
        dispatch_time=order.dispatch_time,
        customer_info=order.customer_info,
        total_amount=order.total_amount,
        status_history=[
            StatusChangeView(
                status=to_external(entry.status),
                timestamp=entry.timestamp,
                updated_by=entry.updated_by,
            )
            for entry in order.status_history
        ],
        created_by=creator_summary,
        created_at=order.created_at,
        updated_at=order.updated_at,
        version=order.version,
    )


def availability_payload(user: User) -> dict[str, Any]:
    return {"partnerId": str(user.id), "isAvailable": user.is_available}
