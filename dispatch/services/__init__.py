"""Service layer wiring."""

from dataclasses import dataclass

from dispatch.auth import TokenService
from dispatch.config import Settings
from dispatch.notifications.port import NotificationPort
from dispatch.services.assignment import AssignmentCoordinator
from dispatch.services.delivery import DeliveryService
from dispatch.services.identity import IdentityService
from dispatch.services.orders import OrderService
from dispatch.services.presenter import OrderPresenter
from dispatch.state.manager import StateManager
from dispatch.state.orders import OrderStore
from dispatch.state.users import UserStore


@dataclass
class Services:
    """Everything a request handler needs, built once per application."""

    state: StateManager
    users: UserStore
    orders: OrderStore
    presenter: OrderPresenter
    tokens: TokenService
    identity: IdentityService
    order_service: OrderService
    assignment: AssignmentCoordinator
    delivery: DeliveryService
    notifier: NotificationPort


def build_services(
    state_manager: StateManager,
    notifier: NotificationPort,
    settings: Settings,
) -> Services:
    users = UserStore(state_manager)
    orders = OrderStore(state_manager)
    presenter = OrderPresenter(users)
    tokens = TokenService(settings)
    identity = IdentityService(state_manager, users, orders, presenter, tokens, notifier, settings)

    return Services(
        state=state_manager,
        users=users,
        orders=orders,
        presenter=presenter,
        tokens=tokens,
        identity=identity,
        order_service=OrderService(state_manager, users, orders, presenter, notifier),
        assignment=AssignmentCoordinator(state_manager, users, orders, presenter, notifier),
        delivery=DeliveryService(users, orders, identity),
        notifier=notifier,
    )


__all__ = [
    "AssignmentCoordinator",
    "DeliveryService",
    "IdentityService",
    "OrderPresenter",
    "OrderService",
    "Services",
    "build_services",
]
