"""Assignment coordinator: binds delivery partners to orders."""

from uuid import UUID

from dispatch.errors import ConflictError, NotFoundError
from dispatch.models.order import Order, OrderStatus
from dispatch.models.user import Role, User
from dispatch.notifications.port import EventType, NotificationPort, publish_safely
from dispatch.serialization import availability_payload
from dispatch.services.lifecycle import compute_dispatch_time
from dispatch.services.presenter import OrderPresenter
from dispatch.state.manager import StateManager, Transaction
from dispatch.state.orders import OrderStore
from dispatch.state.users import UserStore
from dispatch.utils.logging import get_logger

logger = get_logger(__name__)

# Past pickup the estimate no longer moves
RETIMEABLE_STATUSES = frozenset({OrderStatus.PREP, OrderStatus.PICKED})


async def stage_eta_change(
    tx: Transaction,
    orders: OrderStore,
    partner: User,
    minutes: int,
) -> Order | None:
    """
    Set a partner's delivery estimate inside ``tx``.

    If the partner's bound order has not left yet, its dispatch time is
    recomputed and staged too. Returns that order, or None.
    """
    partner.estimated_delivery_time = minutes
    if partner.current_order is None:
        return None

    order = await orders.load(tx, partner.current_order)
    if order is None or order.delivery_partner != partner.id:
        return None
    if order.status not in RETIMEABLE_STATUSES:
        return None

    order.dispatch_time = compute_dispatch_time(order.prep_time, minutes)
    order.touch()
    orders.stage(tx, order)
    return order


class AssignmentCoordinator:
    """
    Owns the order <-> partner binding.

    Both sides of a binding are written in the same storage transaction,
    so a partner is never marked busy for an order that does not point
    back at them, and vice versa.
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

    async def assign(self, order_id: UUID, partner_id: UUID | str, actor: User) -> Order:
        """
        Bind a partner to an order.

        Checks run in order and the first failure wins: order exists,
        order unbound, partner exists with the partner role, partner free.
        """

        async def bind(tx: Transaction) -> tuple[Order, User]:
            order = await self.orders.load(tx, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            if order.delivery_partner is not None:
                raise ConflictError("Order already has a delivery partner assigned")

            partner = await self._load_partner(tx, partner_id)
            if partner is None:
                raise NotFoundError("Delivery partner not found")
            if not (partner.is_available and partner.current_order is None):
                raise ConflictError("Delivery partner is not available")

            order.delivery_partner = partner.id
            order.dispatch_time = compute_dispatch_time(
                order.prep_time, partner.estimated_delivery_time
            )
            order.touch()
            partner.bind(order.id)

            self.orders.stage(tx, order)
            self.orders.stage_partner_index(tx, order, partner.id)
            self.users.stage(tx, partner)
            return order, partner

        order, partner = await self.state.transaction("assign_partner", bind)

        logger.info(
            "partner_assigned",
            order_id=order.order_id,
            partner_id=str(partner.id),
            dispatch_time=order.dispatch_time,
            assigned_by=str(actor.id),
        )

        view = await self.presenter.present(order)
        await publish_safely(self.notifier, EventType.ORDER_ASSIGNED, view.payload())
        await publish_safely(
            self.notifier,
            EventType.PARTNER_AVAILABILITY_CHANGED,
            availability_payload(partner),
        )
        return order

    async def available_partners(self) -> list[User]:
        """Partners that would pass the assignment availability check right now."""
        partners = await self.users.list_by_role(Role.DELIVERY_PARTNER)
        return [partner for partner in partners if partner.can_accept_order]

    async def _load_partner(self, tx: Transaction, partner_id: UUID | str) -> User | None:
        try:
            partner_uuid = UUID(str(partner_id))
        except ValueError:
            return None
        partner = await self.users.load(tx, partner_uuid)
        if partner is None or partner.role != Role.DELIVERY_PARTNER:
            return None
        return partner
