"""
Client-side reconciliation of push events against a local view.

Events may arrive more than once (status updates are fanned out to
several rooms), out of order, or not at all. Every order payload carries
a ``version`` that grows with each committed change; a payload whose
version is not newer than the last one seen for that order is dropped,
and deleted orders are never revived. A full reload through ``reset`` is
always a valid recovery.
"""

import math
from typing import Any

TERMINAL_STATUS = "DELIVERED"

ORDER_EVENTS = ("order-assigned", "order-status-updated", "order-updated")


def _partner_id(order: dict[str, Any]) -> str | None:
    partner = order.get("deliveryPartner")
    if isinstance(partner, dict):
        return partner.get("id")
    return partner


class VersionLog:
    """Highest version seen per order id."""

    def __init__(self) -> None:
        self.seen: dict[str, float] = {}

    def clear(self) -> None:
        self.seen.clear()

    def record(self, payload: dict[str, Any]) -> None:
        version = payload.get("version")
        if version is not None:
            order_id = payload.get("id")
            self.seen[order_id] = max(self.seen.get(order_id, -1), version)

    def forget(self, order_id: str | None) -> None:
        # A deleted order outranks anything still in flight
        self.seen[order_id] = math.inf

    def is_stale(self, payload: dict[str, Any]) -> bool:
        order_id = payload.get("id")
        last = self.seen.get(order_id)
        if last is None:
            return False
        if last == math.inf:
            return True
        version = payload.get("version")
        return version is not None and version <= last


class DeliveryOrderView:
    """What a delivery partner's client shows: at most one current order."""

    def __init__(self, partner_id: str, current_order: dict[str, Any] | None = None):
        self.partner_id = str(partner_id)
        self.current_order: dict[str, Any] | None = None
        self.versions = VersionLog()
        self.reset(current_order)

    def reset(self, current_order: dict[str, Any] | None) -> None:
        self.versions.clear()
        self.current_order = current_order
        if current_order is not None:
            self.versions.record(current_order)

    def _is_current(self, order_id: str | None) -> bool:
        return self.current_order is not None and self.current_order.get("id") == order_id

    def apply(self, event: str, payload: dict[str, Any]) -> bool:
        """Fold one event into the view. Returns True if the view changed."""
        before = self.current_order

        if event in ORDER_EVENTS:
            if self.versions.is_stale(payload):
                return False
            self.versions.record(payload)

            mine = _partner_id(payload) == self.partner_id
            if self._is_current(payload.get("id")):
                if not mine or payload.get("status") == TERMINAL_STATUS:
                    # Delivered, or the same order now belongs to someone else
                    self.current_order = None
                else:
                    self.current_order = payload
            elif event == "order-assigned" and mine:
                if payload.get("status") != TERMINAL_STATUS:
                    self.current_order = payload

        elif event == "order-deleted":
            self.versions.forget(payload.get("id"))
            if self._is_current(payload.get("id")):
                self.current_order = None

        return self.current_order is not before


class OrderBoard:
    """A manager's order list, newest first, keyed by order id."""

    def __init__(self, orders: list[dict[str, Any]] | None = None):
        self.orders: list[dict[str, Any]] = []
        self.versions = VersionLog()
        self.reset(orders or [])

    def reset(self, orders: list[dict[str, Any]]) -> None:
        self.orders = list(orders)
        self.versions.clear()
        for order in self.orders:
            self.versions.record(order)

    def _index(self, order_id: str | None) -> int | None:
        for i, order in enumerate(self.orders):
            if order.get("id") == order_id:
                return i
        return None

    def get(self, order_id: str) -> dict[str, Any] | None:
        i = self._index(order_id)
        return None if i is None else self.orders[i]

    def apply(self, event: str, payload: dict[str, Any]) -> bool:
        """Fold one event into the board. Returns True if the board changed."""
        i = self._index(payload.get("id"))

        if event == "order-deleted":
            self.versions.forget(payload.get("id"))
            if i is None:
                return False
            del self.orders[i]
            return True

        if event not in ("order-created", *ORDER_EVENTS):
            return False
        if self.versions.is_stale(payload):
            return False
        if event == "order-created" and i is not None:
            return False

        self.versions.record(payload)
        if i is None:
            self.orders.insert(0, payload)
        else:
            self.orders[i] = payload
        return True
