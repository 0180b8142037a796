"""Delivery desk routes: partner self-service and manager overviews."""

from fastapi import APIRouter, Depends, Query

from dispatch.api.deps import get_services, page_params, require
from dispatch.models.user import User
from dispatch.schemas import (
    AvailabilityUpdate,
    AvailablePartnersResponse,
    EtaUpdate,
    OrderListResponse,
    OrderResponse,
    StatsResponse,
    UserResponse,
    WorkloadResponse,
)
from dispatch.serialization import present_user
from dispatch.services import Services

router = APIRouter(prefix="/delivery", tags=["delivery"])


@router.get("/current-order", response_model=OrderResponse)
async def current_order(
    user: User = Depends(require("delivery", "own")),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = await services.delivery.current_order(user)
    if order is None:
        return OrderResponse(message="No current order assigned", order=None)
    return OrderResponse(order=await services.presenter.present(order))


@router.get("/order-history", response_model=OrderListResponse)
async def order_history(
    status: str | None = Query(default=None),
    user: User = Depends(require("delivery", "own")),
    services: Services = Depends(get_services),
    paging: tuple[int, int] = Depends(page_params),
) -> OrderListResponse:
    page, limit = paging
    orders, pagination = await services.delivery.order_history(
        user, page=page, limit=limit, status=status
    )
    return OrderListResponse(
        orders=await services.presenter.present_many(orders),
        pagination=pagination,
    )


@router.put("/availability", response_model=UserResponse)
async def update_availability(
    request: AvailabilityUpdate,
    user: User = Depends(require("delivery", "own")),
    services: Services = Depends(get_services),
) -> UserResponse:
    updated = await services.delivery.set_availability(user, request.is_available)
    return UserResponse(message="Availability updated successfully", user=present_user(updated))


@router.put("/eta", response_model=UserResponse)
async def update_eta(
    request: EtaUpdate,
    user: User = Depends(require("delivery", "own")),
    services: Services = Depends(get_services),
) -> UserResponse:
    updated = await services.delivery.update_eta(user, request.estimated_delivery_time)
    return UserResponse(
        message="Estimated delivery time updated successfully",
        user=present_user(updated),
    )


@router.get("/stats", response_model=StatsResponse)
async def stats(
    user: User = Depends(require("delivery", "own")),
    services: Services = Depends(get_services),
) -> StatsResponse:
    return StatsResponse(stats=await services.delivery.stats(user))


@router.get("/available", response_model=AvailablePartnersResponse)
async def available_partners(
    user: User = Depends(require("delivery", "overview")),
    services: Services = Depends(get_services),
) -> AvailablePartnersResponse:
    partners = await services.assignment.available_partners()
    return AvailablePartnersResponse(partners=[present_user(p) for p in partners])


@router.get("/workload", response_model=WorkloadResponse)
async def workload(
    user: User = Depends(require("delivery", "overview")),
    services: Services = Depends(get_services),
) -> WorkloadResponse:
    return WorkloadResponse(workload=await services.delivery.workload())
