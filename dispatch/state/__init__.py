"""State management modules."""

from dispatch.state.manager import StateManager, Transaction
from dispatch.state.orders import OrderStore
from dispatch.state.users import UserStore

# Every key this service owns
KEY_PATTERNS = UserStore.KEY_PATTERNS + OrderStore.KEY_PATTERNS

__all__ = ["KEY_PATTERNS", "OrderStore", "StateManager", "Transaction", "UserStore"]
