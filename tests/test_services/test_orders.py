"""Tests for the order service."""

import asyncio
from uuid import uuid4

import pytest

from dispatch.errors import ConflictError, ForbiddenError, InvalidTransitionError, NotFoundError
from dispatch.models.order import CustomerInfo, Order, OrderItem, OrderStatus
from dispatch.models.user import Role, User
from dispatch.notifications.port import Audience, EventType
from dispatch.schemas import OrderCreate, OrderUpdate
from dispatch.services import Services


@pytest.mark.asyncio
async def test_create_order(services: Services, notifier, manager: User, order_request) -> None:
    """New orders start in PREP with a computed total and one history entry."""
    order = await services.order_service.create(order_request, manager)

    assert order.total_amount == 23
    assert order.status == OrderStatus.PREP
    assert len(order.status_history) == 1
    assert order.status_history[0].updated_by == manager.id
    assert order.order_id.startswith("ORD-")
    assert order.order_id == order.order_id.upper()
    assert order.delivery_partner is None
    assert order.dispatch_time is None

    stored = await services.orders.get(order.id)
    assert stored.model_dump() == order.model_dump()

    [(audience, payload)] = notifier.of(EventType.ORDER_CREATED)
    assert audience == Audience.everyone()
    assert payload["status"] == "PREPARING"
    assert payload["totalAmount"] == 23
    assert payload["createdBy"]["username"] == "manager"


@pytest.mark.asyncio
async def test_client_total_is_ignored(services: Services, manager: User, order_request) -> None:
    order_request.total_amount = 999
    order = await services.order_service.create(order_request, manager)
    assert order.total_amount == 23


@pytest.mark.asyncio
async def test_order_ids_are_unique(services: Services, manager: User, order_request) -> None:
    orders = [await services.order_service.create(order_request, manager) for _ in range(5)]
    assert len({order.order_id for order in orders}) == 5


@pytest.mark.asyncio
async def test_list_orders_newest_first(services: Services, manager: User, order_request) -> None:
    first = await services.order_service.create(order_request, manager)
    second = await services.order_service.create(order_request, manager)

    orders, pagination = await services.order_service.list_orders(manager)

    assert [o.id for o in orders] == [second.id, first.id]
    assert pagination.total == 2
    assert pagination.pages == 1
    assert pagination.current == 1


@pytest.mark.asyncio
async def test_list_orders_pagination(services: Services, manager: User, order_request) -> None:
    for _ in range(5):
        await services.order_service.create(order_request, manager)

    orders, pagination = await services.order_service.list_orders(manager, page=3, limit=2)

    assert len(orders) == 1
    assert pagination.pages == 3
    assert pagination.total == 5


@pytest.mark.asyncio
async def test_partner_only_lists_own_orders(
    services: Services,
    manager: User,
    partner: User,
    other_partner: User,
    order_request,
    assigned_order: Order,
) -> None:
    await services.order_service.create(order_request, manager)

    orders, pagination = await services.order_service.list_orders(partner)
    assert [o.id for o in orders] == [assigned_order.id]

    # Partner filter is ignored for partners
    orders, _ = await services.order_service.list_orders(
        other_partner, delivery_partner=partner.id
    )
    assert orders == []


@pytest.mark.asyncio
async def test_list_orders_filters(
    services: Services,
    manager: User,
    partner: User,
    order_request,
    assigned_order: Order,
) -> None:
    await services.order_service.create(order_request, manager)
    await services.order_service.update_status(assigned_order.id, "READY", partner)

    ready, _ = await services.order_service.list_orders(manager, status="READY")
    assert [o.id for o in ready] == [assigned_order.id]

    preparing, _ = await services.order_service.list_orders(manager, status="PREPARING")
    assert len(preparing) == 1

    mine, _ = await services.order_service.list_orders(manager, delivery_partner=partner.id)
    assert [o.id for o in mine] == [assigned_order.id]


@pytest.mark.asyncio
async def test_get_order(
    services: Services,
    manager: User,
    partner: User,
    other_partner: User,
    assigned_order: Order,
) -> None:
    assert (await services.order_service.get(assigned_order.id, manager)).id == assigned_order.id
    assert (await services.order_service.get(assigned_order.id, partner)).id == assigned_order.id

    with pytest.raises(ForbiddenError):
        await services.order_service.get(assigned_order.id, other_partner)

    with pytest.raises(NotFoundError):
        await services.order_service.get(uuid4(), manager)


@pytest.mark.asyncio
async def test_full_progression_releases_partner(
    services: Services,
    notifier,
    partner: User,
    assigned_order: Order,
) -> None:
    """PREPARING -> READY -> OUT_FOR_DELIVERY -> DELIVERED, then the partner is free."""
    for status in ("READY", "OUT_FOR_DELIVERY"):
        order = await services.order_service.update_status(assigned_order.id, status, partner)
        stored = await services.users.get(partner.id)
        assert stored.is_available is False
        assert stored.current_order == assigned_order.id

    notifier.clear()
    order = await services.order_service.update_status(assigned_order.id, "DELIVERED", partner)

    assert order.status == OrderStatus.DELIVERED
    assert len(order.status_history) == 4
    assert [h.status for h in order.status_history] == list(OrderStatus)

    released = await services.users.get(partner.id)
    assert released.is_available is True
    assert released.current_order is None

    assert notifier.names().count("order-status-updated") == 3
    [(_, payload)] = notifier.of(EventType.PARTNER_AVAILABILITY_CHANGED)
    assert payload == {"partnerId": str(partner.id), "isAvailable": True}


@pytest.mark.asyncio
async def test_status_update_audiences(
    services: Services,
    notifier,
    partner: User,
    assigned_order: Order,
) -> None:
    notifier.clear()
    await services.order_service.update_status(assigned_order.id, "READY", partner)

    audiences = [audience for audience, _ in notifier.of(EventType.ORDER_STATUS_UPDATED)]
    assert audiences == [
        Audience.role(Role.MANAGER),
        Audience.user(partner.id),
        Audience.everyone(),
    ]
    _, payload = notifier.of(EventType.ORDER_STATUS_UPDATED)[0]
    assert payload["status"] == "READY"
    assert [h["status"] for h in payload["statusHistory"]] == ["PREPARING", "READY"]


@pytest.mark.asyncio
async def test_skip_is_rejected_and_state_unchanged(
    services: Services,
    partner: User,
    assigned_order: Order,
) -> None:
    with pytest.raises(InvalidTransitionError):
        await services.order_service.update_status(assigned_order.id, "OUT_FOR_DELIVERY", partner)

    stored = await services.orders.get(assigned_order.id)
    assert stored.status == OrderStatus.PREP
    assert len(stored.status_history) == 1
    assert stored.version == assigned_order.version


@pytest.mark.asyncio
async def test_foreign_partner_cannot_update_status(
    services: Services,
    other_partner: User,
    assigned_order: Order,
) -> None:
    with pytest.raises(ForbiddenError):
        await services.order_service.update_status(assigned_order.id, "READY", other_partner)


@pytest.mark.asyncio
async def test_manager_can_update_unassigned_order(
    services: Services, manager: User, order: Order
) -> None:
    updated = await services.order_service.update_status(order.id, "PICKED", manager)
    assert updated.status == OrderStatus.PICKED
    assert updated.status_history[-1].updated_by == manager.id


@pytest.mark.asyncio
async def test_concurrent_status_updates_advance_once(
    services: Services,
    partner: User,
    manager: User,
    assigned_order: Order,
) -> None:
    results = await asyncio.gather(
        services.order_service.update_status(assigned_order.id, "READY", partner),
        services.order_service.update_status(assigned_order.id, "READY", manager),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, Order)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], ConflictError)

    stored = await services.orders.get(assigned_order.id)
    assert stored.status == OrderStatus.PICKED
    assert len(stored.status_history) == 2


@pytest.mark.asyncio
async def test_update_order_recomputes_total(
    services: Services, notifier, manager: User, order: Order
) -> None:
    notifier.clear()
    updated = await services.order_service.update(
        order.id,
        OrderUpdate(items=[OrderItem(name="Salad", quantity=3, price=7.5)]),
        manager,
    )

    assert updated.total_amount == 22.5
    assert updated.version > order.version
    assert notifier.names() == ["order-updated"]


@pytest.mark.asyncio
async def test_update_prep_time_recomputes_dispatch(
    services: Services, manager: User, assigned_order: Order
) -> None:
    assert assigned_order.dispatch_time == 35

    updated = await services.order_service.update(
        assigned_order.id, OrderUpdate(prep_time=25), manager
    )
    assert updated.dispatch_time == 45


@pytest.mark.asyncio
async def test_update_customer_info(services: Services, manager: User, order: Order) -> None:
    info = CustomerInfo(name="New Name", phone="555", address="1 New Road")
    updated = await services.order_service.update(order.id, OrderUpdate(customer_info=info), manager)
    assert updated.customer_info == info
    assert updated.total_amount == order.total_amount


@pytest.mark.asyncio
async def test_cannot_edit_after_pickup(
    services: Services, manager: User, partner: User, assigned_order: Order
) -> None:
    await services.order_service.update_status(assigned_order.id, "READY", partner)

    with pytest.raises(ConflictError, match="after it has been picked up"):
        await services.order_service.update(assigned_order.id, OrderUpdate(prep_time=5), manager)

    with pytest.raises(ConflictError):
        await services.order_service.delete(assigned_order.id, manager)


@pytest.mark.asyncio
async def test_delete_order_releases_partner(
    services: Services,
    notifier,
    manager: User,
    partner: User,
    assigned_order: Order,
) -> None:
    notifier.clear()
    await services.order_service.delete(assigned_order.id, manager)

    assert await services.orders.get(assigned_order.id) is None
    assert await services.orders.list_all() == []
    assert await services.orders.list_for_partner(partner.id) == []

    released = await services.users.get(partner.id)
    assert released.is_available is True
    assert released.current_order is None

    assert notifier.names() == ["order-deleted", "partner-availability-changed"]
    assert notifier.of(EventType.ORDER_DELETED)[0][1] == {"id": str(assigned_order.id)}


@pytest.mark.asyncio
async def test_delete_missing_order(services: Services, manager: User) -> None:
    with pytest.raises(NotFoundError):
        await services.order_service.delete(uuid4(), manager)


def test_create_rejects_empty_items() -> None:
    with pytest.raises(ValueError):
        OrderCreate(
            items=[],
            prep_time=10,
            customer_info=CustomerInfo(name="A", phone="1", address="B"),
        )
