"""Order status state machine and derived-field computations."""

from datetime import datetime
from uuid import UUID

from dispatch.errors import ConflictError, InvalidTransitionError
from dispatch.models.order import STATUS_FLOW, Order, OrderItem, OrderStatus, StatusChange
from dispatch.utils.clock import utcnow


def compute_total(items: list[OrderItem]) -> float:
    """Sum of price * quantity over all items."""
    return round(sum(item.subtotal for item in items), 2)


def compute_dispatch_time(prep_time: int, estimated_delivery_time: int) -> int:
    """Advisory minutes until the order reaches the customer."""
    return prep_time + estimated_delivery_time


def check_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """Allow exactly one step forward along STATUS_FLOW."""
    c = STATUS_FLOW.index(current)
    n = STATUS_FLOW.index(requested)

    if current == OrderStatus.DELIVERED:
        raise InvalidTransitionError("Order is already delivered")
    if n == c:
        raise InvalidTransitionError(f"Order is already in status {current.value}")
    if n < c:
        raise InvalidTransitionError("Cannot move to a previous status")
    if n > c + 1:
        raise InvalidTransitionError(
            "Cannot skip status. Follow sequential flow: "
            + " -> ".join(status.value for status in STATUS_FLOW)
        )


def append_history(
    order: Order,
    status: OrderStatus,
    actor_id: UUID | None,
    now: datetime | None = None,
) -> StatusChange:
    """Record a status change; timestamps never go backwards."""
    timestamp = now or utcnow()
    if order.status_history and order.status_history[-1].timestamp > timestamp:
        timestamp = order.status_history[-1].timestamp

    entry = StatusChange(status=status, timestamp=timestamp, updated_by=actor_id)
    order.status_history.append(entry)
    return entry


def advance(order: Order, requested: OrderStatus, actor_id: UUID) -> None:
    """Validate and apply one transition in memory."""
    check_transition(order.status, requested)
    order.status = requested
    append_history(order, requested, actor_id)
    order.touch()


def ensure_editable(order: Order, action: str = "modify") -> None:
    """Edits and deletion are only allowed before pickup."""
    if order.status != OrderStatus.PREP:
        raise ConflictError(f"Cannot {action} order after it has been picked up")
