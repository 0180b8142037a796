"""Real-time notification fan-out."""

from dispatch.notifications.hub import ConnectionHub
from dispatch.notifications.port import (
    Audience,
    EventType,
    NotificationPort,
    NullNotifier,
    publish_safely,
)
from dispatch.notifications.reconcile import DeliveryOrderView, OrderBoard

__all__ = [
    "Audience",
    "ConnectionHub",
    "DeliveryOrderView",
    "EventType",
    "NotificationPort",
    "NullNotifier",
    "OrderBoard",
    "publish_safely",
]
