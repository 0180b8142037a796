"""Order persistence on top of the state manager."""

from uuid import UUID

from dispatch.models.order import Order
from dispatch.state.manager import StateManager, Transaction


class OrderStore:
    """Key layout and load/stage helpers for orders."""

    ALL_KEY = "orders"
    KEY_PATTERNS = ("order:*", ALL_KEY, "orders:*")

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    @staticmethod
    def key(order_id: UUID | str) -> str:
        return f"order:{order_id}"

    @staticmethod
    def code_key(code: str) -> str:
        return f"order:code:{code}"

    @staticmethod
    def partner_key(partner_id: UUID | str) -> str:
        return f"orders:partner:{partner_id}"

    async def get(self, order_id: UUID | str) -> Order | None:
        data = await self.state.get(self.key(order_id))
        return Order(**data) if data else None

    async def _load_index(self, index_key: str) -> list[Order]:
        ids = await self.state.zrange(index_key, desc=True)
        records = await self.state.mget([self.key(oid) for oid in ids])
        return [Order(**data) for data in records if data]

    async def list_all(self) -> list[Order]:
        """All orders, newest first."""
        return await self._load_index(self.ALL_KEY)

    async def list_for_partner(self, partner_id: UUID) -> list[Order]:
        """Orders ever bound to a partner, newest first."""
        return await self._load_index(self.partner_key(partner_id))

    async def load(self, tx: Transaction, order_id: UUID | str) -> Order | None:
        data = await tx.get(self.key(order_id))
        return Order(**data) if data else None

    def stage(self, tx: Transaction, order: Order) -> None:
        tx.set(self.key(order.id), order.model_dump(mode="json"))

    def stage_insert(self, tx: Transaction, order: Order) -> None:
        self.stage(tx, order)
        tx.set(self.code_key(order.order_id), str(order.id))
        tx.zadd(self.ALL_KEY, {str(order.id): order.created_at.timestamp()})

    def stage_partner_index(self, tx: Transaction, order: Order, partner_id: UUID) -> None:
        tx.zadd(self.partner_key(partner_id), {str(order.id): order.created_at.timestamp()})

    def stage_delete(self, tx: Transaction, order: Order) -> None:
        tx.delete(self.key(order.id), self.code_key(order.order_id))
        tx.zrem(self.ALL_KEY, str(order.id))
        if order.delivery_partner:
            tx.zrem(self.partner_key(order.delivery_partner), str(order.id))
