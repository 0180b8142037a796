"""Delivery desk: partner self-service views and manager overviews."""

from datetime import datetime, timedelta

from dispatch.models.order import Order, OrderStatus
from dispatch.models.user import Role, User
from dispatch.schemas import DeliveryStats, Pagination, WorkloadEntry
from dispatch.serialization import to_external, to_internal
from dispatch.services.identity import IdentityService
from dispatch.state.orders import OrderStore
from dispatch.state.users import UserStore
from dispatch.utils.clock import utcnow
from dispatch.utils.pagination import paginate


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(moment: datetime) -> datetime:
    """Weeks start on Sunday."""
    day = start_of_day(moment)
    return day - timedelta(days=(day.weekday() + 1) % 7)


def delivered_at(order: Order) -> datetime | None:
    if order.status != OrderStatus.DELIVERED:
        return None
    return order.changed_at(OrderStatus.DELIVERED) or order.updated_at


def delivery_minutes(order: Order) -> float | None:
    """Minutes from pickup to delivery, if both are on record."""
    picked = order.changed_at(OrderStatus.PICKED)
    delivered = order.changed_at(OrderStatus.DELIVERED)
    if picked is None or delivered is None:
        return None
    return (delivered - picked).total_seconds() / 60


class DeliveryService:
    """Read models over a partner's orders, plus the partner-facing toggles."""

    def __init__(self, users: UserStore, orders: OrderStore, identity: IdentityService):
        self.users = users
        self.orders = orders
        self.identity = identity

    async def current_order(self, partner: User) -> Order | None:
        """The partner's bound, still-active order."""
        for order in await self.orders.list_for_partner(partner.id):
            if order.delivery_partner == partner.id and order.is_active:
                return order
        return None

    async def order_history(
        self,
        partner: User,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
    ) -> tuple[list[Order], Pagination]:
        orders = [
            order
            for order in await self.orders.list_for_partner(partner.id)
            if order.delivery_partner == partner.id
        ]
        if status:
            wanted = to_internal(status)
            orders = [order for order in orders if order.status == wanted]
        return paginate(orders, page, limit)

    async def set_availability(self, partner: User, is_available: bool) -> User:
        return await self.identity.set_availability(partner, is_available)

    async def update_eta(self, partner: User, minutes: int) -> User:
        user, _ = await self.identity.update_eta(partner, minutes)
        return user

    async def stats(self, partner: User, now: datetime | None = None) -> DeliveryStats:
        now = now or utcnow()
        today = start_of_day(now)
        week = start_of_week(now)

        # Re-read so availability and ETA reflect the stored profile
        profile = await self.users.get(partner.id) or partner
        orders = [
            order
            for order in await self.orders.list_for_partner(partner.id)
            if order.delivery_partner == partner.id
        ]

        delivered = [order for order in orders if order.status == OrderStatus.DELIVERED]
        completed = [delivered_at(order) for order in delivered]
        durations = [m for m in (delivery_minutes(order) for order in delivered) if m is not None]

        return DeliveryStats(
            total_deliveries=len(delivered),
            completed_today=sum(1 for at in completed if at and at >= today),
            in_progress=sum(1 for order in orders if order.is_active),
            week_deliveries=sum(1 for at in completed if at and at >= week),
            avg_delivery_minutes=round(sum(durations) / len(durations)) if durations else 0,
            is_available=profile.is_available,
            estimated_delivery_time=profile.estimated_delivery_time,
        )

    async def workload(self, now: datetime | None = None) -> list[WorkloadEntry]:
        """Per-partner summary for the manager dashboard."""
        today = start_of_day(now or utcnow())
        entries = []

        for partner in await self.users.list_by_role(Role.DELIVERY_PARTNER):
            orders = [
                order
                for order in await self.orders.list_for_partner(partner.id)
                if order.delivery_partner == partner.id
            ]

            current = None
            if partner.current_order is not None:
                bound = next((o for o in orders if o.id == partner.current_order), None)
                if bound is not None:
                    current = {
                        "id": str(bound.id),
                        "orderId": bound.order_id,
                        "status": to_external(bound.status),
                    }

            entries.append(
                WorkloadEntry(
                    partner_id=str(partner.id),
                    username=partner.username,
                    email=partner.email,
                    is_available=partner.is_available,
                    estimated_delivery_time=partner.estimated_delivery_time,
                    current_order=current,
                    active_orders=sum(1 for order in orders if order.is_active),
                    today_completed=sum(
                        1 for at in map(delivered_at, orders) if at and at >= today
                    ),
                )
            )
        return entries
