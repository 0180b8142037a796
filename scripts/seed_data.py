"""Seed initial accounts for the dispatch service."""

import asyncio

from dispatch.config import get_settings
from dispatch.errors import DuplicateError
from dispatch.models.user import Role
from dispatch.notifications.port import NullNotifier
from dispatch.schemas import RegisterRequest
from dispatch.services import build_services
from dispatch.state.manager import StateManager

DEFAULT_PASSWORD = "password123"

ACCOUNTS = [
    RegisterRequest(
        username="manager",
        email="manager@restaurant.com",
        password=DEFAULT_PASSWORD,
        role=Role.MANAGER,
    ),
    RegisterRequest(
        username="partner1",
        email="partner1@restaurant.com",
        password=DEFAULT_PASSWORD,
        role=Role.DELIVERY_PARTNER,
        estimated_delivery_time=25,
    ),
    RegisterRequest(
        username="partner2",
        email="partner2@restaurant.com",
        password=DEFAULT_PASSWORD,
        role=Role.DELIVERY_PARTNER,
        estimated_delivery_time=30,
    ),
    RegisterRequest(
        username="partner3",
        email="partner3@restaurant.com",
        password=DEFAULT_PASSWORD,
        role=Role.DELIVERY_PARTNER,
        estimated_delivery_time=35,
    ),
]


async def seed_accounts() -> None:
    """Register the manager and delivery partner accounts."""
    print("Seeding accounts...")

    state_manager = StateManager()
    await state_manager.connect()
    services = build_services(state_manager, NullNotifier(), get_settings())

    for request in ACCOUNTS:
        try:
            user, _ = await services.identity.register(request)
        except DuplicateError:
            print(f"  - {request.email} already exists, skipped")
            continue

        if user.is_partner:
            print(f"  ✓ Added {user.username} (ETA: {user.estimated_delivery_time} min)")
        else:
            print(f"  ✓ Added {user.username} ({user.role.value})")

    await state_manager.disconnect()
    print("✓ Accounts seeded successfully\n")


async def main() -> None:
    print("\n" + "=" * 50)
    print("  Seeding Dispatch Data")
    print("=" * 50 + "\n")

    await seed_accounts()

    print("=" * 50)
    print(f"  Log in with any seeded email and '{DEFAULT_PASSWORD}'")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
