"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("LOG_FORMAT", "text")

from typing import Any, AsyncGenerator, Awaitable, Callable

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from dispatch.config import get_settings
from dispatch.main import create_app
from dispatch.models.order import CustomerInfo, Order, OrderItem
from dispatch.models.user import Role, User
from dispatch.notifications.hub import ConnectionHub
from dispatch.notifications.port import Audience, EventType, NotificationPort
from dispatch.schemas import OrderCreate, RegisterRequest
from dispatch.services import Services, build_services
from dispatch.state.manager import StateManager


class RecordingNotifier(NotificationPort):
    """Keeps every published event for later assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[EventType, Audience, dict[str, Any]]] = []

    async def publish(
        self,
        event: EventType,
        audience: Audience,
        payload: dict[str, Any],
    ) -> None:
        self.events.append((event, audience, payload))

    def names(self) -> list[str]:
        return [event.value for event, _, _ in self.events]

    def of(self, event: EventType) -> list[tuple[Audience, dict[str, Any]]]:
        return [(audience, payload) for name, audience, payload in self.events if name == event]

    def clear(self) -> None:
        self.events.clear()


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """A private in-memory Redis per test."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def state_manager(redis_client: fakeredis.FakeAsyncRedis) -> StateManager:
    """Create a test state manager."""
    return StateManager(redis_client)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def services(state_manager: StateManager, notifier: RecordingNotifier) -> Services:
    return build_services(state_manager, notifier, get_settings())


@pytest.fixture
def make_user(services: Services) -> Callable[..., Awaitable[User]]:
    """Factory registering a user named ``username`` (password ``secret123``)."""

    async def register(
        username: str,
        role: Role = Role.DELIVERY_PARTNER,
        eta: int | None = None,
    ) -> User:
        user, _ = await services.identity.register(
            RegisterRequest(
                username=username,
                email=f"{username}@example.com",
                password="secret123",
                role=role,
                estimated_delivery_time=eta,
            )
        )
        return user

    return register


@pytest_asyncio.fixture
async def manager(make_user) -> User:
    return await make_user("manager", Role.MANAGER)


@pytest_asyncio.fixture
async def partner(make_user) -> User:
    """An available delivery partner with a 20 minute estimate."""
    return await make_user("partner_a", eta=20)


@pytest_asyncio.fixture
async def other_partner(make_user) -> User:
    return await make_user("partner_b", eta=30)


# Sample data fixtures


@pytest.fixture
def order_request() -> OrderCreate:
    """Two pizzas and a soda, 15 minutes of prep."""
    return OrderCreate(
        items=[
            OrderItem(name="Pizza", quantity=2, price=10),
            OrderItem(name="Soda", quantity=1, price=3),
        ],
        prep_time=15,
        customer_info=CustomerInfo(
            name="Test Customer",
            phone="+1234567890",
            address="123 Test St, Test City",
        ),
    )


@pytest_asyncio.fixture
async def order(services: Services, manager: User, order_request: OrderCreate) -> Order:
    return await services.order_service.create(order_request, manager)


@pytest_asyncio.fixture
async def assigned_order(
    services: Services,
    manager: User,
    partner: User,
    order: Order,
) -> Order:
    return await services.assignment.assign(order.id, partner.id, manager)


# HTTP fixtures


@pytest.fixture
def hub() -> ConnectionHub:
    return ConnectionHub(send_timeout=1.0)


@pytest.fixture
def app(state_manager: StateManager, hub: ConnectionHub):
    return create_app(state_manager=state_manager, hub=hub)


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers(services: Services) -> Callable[[User], dict[str, str]]:
    """Bearer header for a user."""

    def headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {services.identity.issue_token(user)}"}

    return headers
