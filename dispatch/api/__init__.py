"""HTTP and WebSocket surface."""

from fastapi import APIRouter

from dispatch.api import auth, delivery, orders

router = APIRouter()
router.include_router(auth.router)
router.include_router(orders.router)
router.include_router(delivery.router)

__all__ = ["router"]
