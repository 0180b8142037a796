"""Order routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from dispatch.api.deps import get_services, page_params, require
from dispatch.models.user import User
from dispatch.schemas import (
    AssignRequest,
    MessageResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderUpdate,
    StatusUpdate,
)
from dispatch.services import Services

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreate,
    user: User = Depends(require("orders", "create")),
    services: Services = Depends(get_services),
) -> OrderResponse:
    """Create an order in PREP. The total is computed from the items."""
    order = await services.order_service.create(request, user)
    return OrderResponse(
        message="Order created successfully",
        order=await services.presenter.present(order),
    )


@router.get("", response_model=OrderListResponse)
async def list_orders(
    status: str | None = Query(default=None),
    delivery_partner: UUID | None = Query(default=None, alias="deliveryPartner"),
    user: User = Depends(require("orders", "read")),
    services: Services = Depends(get_services),
    paging: tuple[int, int] = Depends(page_params),
) -> OrderListResponse:
    """
    List orders, newest first.

    Managers see every order and may filter by partner; partners only see
    orders bound to them. ``status`` takes the external status names.
    """
    page, limit = paging
    orders, pagination = await services.order_service.list_orders(
        user,
        page=page,
        limit=limit,
        status=status,
        delivery_partner=delivery_partner,
    )
    return OrderListResponse(
        orders=await services.presenter.present_many(orders),
        pagination=pagination,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    user: User = Depends(require("orders", "read")),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = await services.order_service.get(order_id, user)
    return OrderResponse(order=await services.presenter.present(order))


@router.post("/{order_id}/assign", response_model=OrderResponse)
async def assign_partner(
    order_id: UUID,
    request: AssignRequest,
    user: User = Depends(require("orders", "assign")),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = await services.assignment.assign(order_id, request.delivery_partner_id, user)
    return OrderResponse(
        message="Delivery partner assigned successfully",
        order=await services.presenter.present(order),
    )


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    request: StatusUpdate,
    user: User = Depends(require("orders", "update_status")),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = await services.order_service.update_status(order_id, request.status, user)
    return OrderResponse(
        message="Order status updated successfully",
        order=await services.presenter.present(order),
    )


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: UUID,
    request: OrderUpdate,
    user: User = Depends(require("orders", "update")),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = await services.order_service.update(order_id, request, user)
    return OrderResponse(
        message="Order updated successfully",
        order=await services.presenter.present(order),
    )


@router.delete("/{order_id}", response_model=MessageResponse)
async def delete_order(
    order_id: UUID,
    user: User = Depends(require("orders", "delete")),
    services: Services = Depends(get_services),
) -> MessageResponse:
    await services.order_service.delete(order_id, user)
    return MessageResponse(message="Order deleted successfully")
