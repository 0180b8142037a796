"""Order service: creation, listing, status transitions, edits and deletion."""

from uuid import UUID

from dispatch.errors import ConflictError, ForbiddenError, NotFoundError
from dispatch.models.order import Order, OrderStatus, generate_order_id
from dispatch.models.user import Role, User
from dispatch.notifications.port import Audience, EventType, NotificationPort, publish_safely
from dispatch.schemas import OrderCreate, OrderUpdate, Pagination
from dispatch.serialization import availability_payload, to_internal
from dispatch.services.lifecycle import (
    advance,
    append_history,
    compute_dispatch_time,
    compute_total,
    ensure_editable,
)
from dispatch.services.presenter import OrderPresenter
from dispatch.state.manager import StateManager, Transaction
from dispatch.state.orders import OrderStore
from dispatch.state.users import UserStore
from dispatch.utils.logging import get_logger
from dispatch.utils.pagination import paginate

logger = get_logger(__name__)

# Attempts at drawing an unused order code before giving up
ORDER_CODE_ATTEMPTS = 5


class OrderService:
    """
    Mutations and queries over orders.

    Derived fields (total, dispatch time, history) are computed here by
    explicit calls into ``lifecycle`` before every write; nothing is
    recomputed implicitly on save.
    """

    def __init__(
        self,
        state_manager: StateManager,
        users: UserStore,
        orders: OrderStore,
        presenter: OrderPresenter,
        notifier: NotificationPort,
    ):
        self.state = state_manager
        self.users = users
        self.orders = orders
        self.presenter = presenter
        self.notifier = notifier

    async def create(self, request: OrderCreate, actor: User) -> Order:
        """Create an order in PREP with its initial history entry."""

        async def insert(tx: Transaction) -> Order:
            order_id = None
            for _ in range(ORDER_CODE_ATTEMPTS):
                candidate = generate_order_id()
                if not await tx.exists(self.orders.code_key(candidate)):
                    order_id = candidate
                    break
            if order_id is None:
                raise ConflictError("Could not allocate an order id, please retry")

            order = Order(
                order_id=order_id,
                items=request.items,
                prep_time=request.prep_time,
                customer_info=request.customer_info,
                total_amount=compute_total(request.items),
                created_by=actor.id,
            )
            append_history(order, OrderStatus.PREP, actor.id, now=order.created_at)
            self.orders.stage_insert(tx, order)
            return order

        order = await self.state.transaction("create_order", insert)
        logger.info(
            "order_created",
            order_id=order.order_id,
            total_amount=order.total_amount,
            created_by=str(actor.id),
        )

        view = await self.presenter.present(order)
        await publish_safely(self.notifier, EventType.ORDER_CREATED, view.payload())
        return order

    async def list_orders(
        self,
        actor: User,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
        delivery_partner: UUID | None = None,
    ) -> tuple[list[Order], Pagination]:
        """
        Page through orders, newest first.

        Partners only ever see orders bound to them; the partner filter is
        a manager-side convenience and is ignored for partners.
        """
        if actor.is_partner:
            orders = await self.orders.list_for_partner(actor.id)
            orders = [order for order in orders if order.delivery_partner == actor.id]
        elif delivery_partner is not None:
            orders = await self.orders.list_for_partner(delivery_partner)
            orders = [order for order in orders if order.delivery_partner == delivery_partner]
        else:
            orders = await self.orders.list_all()

        if status:
            wanted = to_internal(status)
            orders = [order for order in orders if order.status == wanted]

        return paginate(orders, page, limit)

    async def get(self, order_id: UUID, actor: User) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if actor.is_partner and order.delivery_partner != actor.id:
            raise ForbiddenError("Access denied. Order is not assigned to you")
        return order

    async def update_status(self, order_id: UUID, status: str, actor: User) -> Order:
        """
        Advance an order one step along the status flow.

        Reaching DELIVERED frees the bound partner in the same transaction.
        """
        requested = to_internal(status)

        async def transition(tx: Transaction) -> tuple[Order, User | None]:
            order = await self.orders.load(tx, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            if actor.is_partner and order.delivery_partner != actor.id:
                raise ForbiddenError("Access denied. Order is not assigned to you")

            advance(order, requested, actor.id)
            self.orders.stage(tx, order)

            released = None
            if order.is_terminal and order.delivery_partner:
                partner = await self.users.load(tx, order.delivery_partner)
                if partner is not None and partner.current_order == order.id:
                    partner.release()
                    self.users.stage(tx, partner)
                    released = partner
            return order, released

        order, released = await self.state.transaction("update_status", transition)
        logger.info(
            "order_status_updated",
            order_id=order.order_id,
            status=order.status.value,
            updated_by=str(actor.id),
        )

        audiences = [Audience.role(Role.MANAGER)]
        if order.delivery_partner:
            audiences.append(Audience.user(order.delivery_partner))
        audiences.append(Audience.everyone())

        view = await self.presenter.present(order)
        await publish_safely(
            self.notifier, EventType.ORDER_STATUS_UPDATED, view.payload(), *audiences
        )
        if released is not None:
            logger.info("partner_released", partner_id=str(released.id), order_id=order.order_id)
            await publish_safely(
                self.notifier,
                EventType.PARTNER_AVAILABILITY_CHANGED,
                availability_payload(released),
            )
        return order

    async def update(self, order_id: UUID, request: OrderUpdate, actor: User) -> Order:
        """Edit items, prep time or customer details while still in PREP."""
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        async def edit(tx: Transaction) -> Order:
            order = await self.orders.load(tx, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            ensure_editable(order)

            if request.items is not None:
                order.items = request.items
                order.total_amount = compute_total(order.items)
            if request.customer_info is not None:
                order.customer_info = request.customer_info
            if request.prep_time is not None:
                order.prep_time = request.prep_time
                if order.delivery_partner:
                    partner = await self.users.load(tx, order.delivery_partner)
                    if partner is not None:
                        order.dispatch_time = compute_dispatch_time(
                            order.prep_time, partner.estimated_delivery_time
                        )

            order.touch()
            self.orders.stage(tx, order)
            return order

        order = await self.state.transaction("update_order", edit)
        logger.info(
            "order_updated",
            order_id=order.order_id,
            fields=sorted(changes),
            updated_by=str(actor.id),
        )

        view = await self.presenter.present(order)
        await publish_safely(self.notifier, EventType.ORDER_UPDATED, view.payload())
        return order

    async def delete(self, order_id: UUID, actor: User) -> None:
        """Delete an order still in PREP, releasing any bound partner."""

        async def remove(tx: Transaction) -> tuple[Order, User | None]:
            order = await self.orders.load(tx, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            ensure_editable(order, action="delete")

            released = None
            if order.delivery_partner:
                partner = await self.users.load(tx, order.delivery_partner)
                if partner is not None and partner.current_order == order.id:
                    partner.release()
                    self.users.stage(tx, partner)
                    released = partner

            self.orders.stage_delete(tx, order)
            return order, released

        order, released = await self.state.transaction("delete_order", remove)
        logger.info("order_deleted", order_id=order.order_id, deleted_by=str(actor.id))

        await publish_safely(self.notifier, EventType.ORDER_DELETED, {"id": str(order.id)})
        if released is not None:
            await publish_safely(
                self.notifier,
                EventType.PARTNER_AVAILABILITY_CHANGED,
                availability_payload(released),
            )
