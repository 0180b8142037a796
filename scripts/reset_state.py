"""Delete every user and order this service keeps in Redis."""

import asyncio

from dispatch.config import get_settings
from dispatch.state import KEY_PATTERNS, StateManager


async def reset_all_state() -> None:
    """Remove the dispatch keys, leaving anything else in the database alone."""
    settings = get_settings()
    print(f"\n⚠️  WARNING: This deletes all users and orders at {settings.redis_url}")
    print(f"   Keys matching: {', '.join(KEY_PATTERNS)}")
    response = input("Are you sure? (yes/no): ")

    if response.lower() != "yes":
        print("Cancelled.")
        return

    print("\nResetting state...")

    state_manager = StateManager()
    await state_manager.connect()
    deleted = await state_manager.purge(*KEY_PATTERNS)
    await state_manager.disconnect()

    print(f"✓ Deleted {deleted} keys\n")


if __name__ == "__main__":
    asyncio.run(reset_all_state())
