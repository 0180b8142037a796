"""Resolve user references and externalize orders."""

from uuid import UUID

from dispatch.models.order import Order
from dispatch.serialization import OrderView, present_order
from dispatch.state.users import UserStore


class OrderPresenter:
    """Loads partner and creator summaries, then hands off to serialization."""

    def __init__(self, users: UserStore):
        self.users = users

    async def present(self, order: Order) -> OrderView:
        views = await self.present_many([order])
        return views[0]

    async def present_many(self, orders: list[Order]) -> list[OrderView]:
        refs: list[UUID] = []
        for order in orders:
            refs.append(order.created_by)
            if order.delivery_partner:
                refs.append(order.delivery_partner)
        users = await self.users.get_many(refs)

        return [
            present_order(
                order,
                partner=users.get(order.delivery_partner) if order.delivery_partner else None,
                creator=users.get(order.created_by),
            )
            for order in orders
        ]
