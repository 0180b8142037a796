"""Tests for the Redis state manager."""

import fakeredis
import pytest

from dispatch.models.order import Order
from dispatch.models.user import User
from dispatch.services import Services
from dispatch.state import KEY_PATTERNS, StateManager


@pytest.mark.asyncio
async def test_purge_removes_only_service_keys(
    redis_client: fakeredis.FakeAsyncRedis,
    state_manager: StateManager,
    services: Services,
    assigned_order: Order,
    partner: User,
) -> None:
    await redis_client.set("session:other-app", "keep")

    deleted = await state_manager.purge(*KEY_PATTERNS)

    assert deleted > 0
    assert await redis_client.get("session:other-app") == "keep"
    assert await redis_client.keys("*") == ["session:other-app"]
    assert await services.users.get(partner.id) is None
    assert await services.orders.get(assigned_order.id) is None


@pytest.mark.asyncio
async def test_purge_with_nothing_to_delete(state_manager: StateManager) -> None:
    assert await state_manager.purge(*KEY_PATTERNS) == 0
