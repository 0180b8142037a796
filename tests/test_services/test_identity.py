"""Tests for accounts, credentials and partner management."""

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from dispatch.config import get_settings
from dispatch.errors import AuthError, ConflictError, DuplicateError, NotFoundError
from dispatch.models.order import Order
from dispatch.models.user import Role, User
from dispatch.notifications.port import EventType
from dispatch.schemas import PartnerCreate, PartnerUpdate, ProfileUpdate, RegisterRequest
from dispatch.services import Services
from dispatch.services.identity import hash_password, verify_password
from dispatch.utils.clock import utcnow


def test_password_hashing() -> None:
    hashed = hash_password("secret123", rounds=4)
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


@pytest.mark.asyncio
async def test_register_defaults(services: Services, partner: User, manager: User) -> None:
    assert partner.role == Role.DELIVERY_PARTNER
    assert partner.estimated_delivery_time == 20
    assert partner.is_available is True
    assert partner.current_order is None
    assert manager.estimated_delivery_time == get_settings().default_delivery_time

    stored = await services.users.get(partner.id)
    assert stored.password_hash != "secret123"


@pytest.mark.asyncio
async def test_duplicate_email_or_username(services: Services, partner: User) -> None:
    for username, email in (
        ("someone_else", "partner_a@example.com"),
        ("PARTNER_A", "new@example.com"),
    ):
        with pytest.raises(DuplicateError, match="already exists"):
            await services.identity.register(
                RegisterRequest(
                    username=username,
                    email=email,
                    password="secret123",
                    role=Role.DELIVERY_PARTNER,
                )
            )

    assert len(await services.identity.list_partners()) == 1


@pytest.mark.asyncio
async def test_login(services: Services, partner: User) -> None:
    user, token = await services.identity.login("partner_a@example.com", "secret123")

    assert user.id == partner.id
    assert (await services.identity.authenticate_token(token)).id == partner.id


@pytest.mark.asyncio
async def test_login_failures_look_the_same(services: Services, partner: User) -> None:
    with pytest.raises(AuthError, match="Invalid credentials"):
        await services.identity.login("partner_a@example.com", "wrong-password")

    with pytest.raises(AuthError, match="Invalid credentials"):
        await services.identity.login("nobody@example.com", "secret123")


@pytest.mark.asyncio
async def test_authenticate_token_rejects_bad_tokens(services: Services, partner: User) -> None:
    settings = get_settings()

    with pytest.raises(AuthError, match="Invalid token"):
        await services.identity.authenticate_token("not-a-token")

    forged = jwt.encode({"sub": str(partner.id)}, "other-secret-key-of-sufficient-length", "HS256")
    with pytest.raises(AuthError, match="Invalid token"):
        await services.identity.authenticate_token(forged)

    now = utcnow()
    expired = jwt.encode(
        {"sub": str(partner.id), "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)},
        settings.secret_key,
        settings.token_algorithm,
    )
    with pytest.raises(AuthError, match="expired"):
        await services.identity.authenticate_token(expired)

    orphan = jwt.encode(
        {"sub": str(uuid4()), "exp": now + timedelta(hours=1)},
        settings.secret_key,
        settings.token_algorithm,
    )
    with pytest.raises(AuthError):
        await services.identity.authenticate_token(orphan)


@pytest.mark.asyncio
async def test_update_profile_username(services: Services, manager: User) -> None:
    updated = await services.identity.update_profile(manager, ProfileUpdate(username="boss"))

    assert updated.username == "boss"
    assert updated.role == Role.MANAGER
    assert (await services.users.get(manager.id)).username == "boss"


@pytest.mark.asyncio
async def test_update_profile_username_taken(
    services: Services, manager: User, partner: User
) -> None:
    with pytest.raises(DuplicateError):
        await services.identity.update_profile(manager, ProfileUpdate(username="partner_a"))


@pytest.mark.asyncio
async def test_update_profile_eta_retimes_order(
    services: Services,
    notifier,
    partner: User,
    assigned_order: Order,
) -> None:
    notifier.clear()
    updated = await services.identity.update_profile(
        partner, ProfileUpdate(estimated_delivery_time=40)
    )

    assert updated.estimated_delivery_time == 40
    assert (await services.orders.get(assigned_order.id)).dispatch_time == 55
    assert notifier.names() == ["partner-updated", "order-updated"]


@pytest.mark.asyncio
async def test_create_partner(services: Services, notifier, manager: User) -> None:
    notifier.clear()
    partner = await services.identity.create_partner(
        PartnerCreate(username="newbie", email="newbie@example.com", password="secret123"),
        manager,
    )

    assert partner.role == Role.DELIVERY_PARTNER
    assert partner.estimated_delivery_time == 30
    [(_, payload)] = notifier.of(EventType.PARTNER_CREATED)
    assert payload["username"] == "newbie"
    assert payload["isAvailable"] is True
    assert "passwordHash" not in payload


@pytest.mark.asyncio
async def test_update_partner(
    services: Services, notifier, manager: User, partner: User
) -> None:
    notifier.clear()
    updated = await services.identity.update_partner(
        partner.id,
        PartnerUpdate(username="renamed", estimated_delivery_time=45, is_available=False),
        manager,
    )

    assert updated.username == "renamed"
    assert updated.estimated_delivery_time == 45
    assert updated.is_available is False
    assert notifier.names() == ["partner-updated", "partner-availability-changed"]


@pytest.mark.asyncio
async def test_update_partner_without_availability_change(
    services: Services, notifier, manager: User, partner: User
) -> None:
    notifier.clear()
    await services.identity.update_partner(partner.id, PartnerUpdate(is_available=True), manager)
    assert notifier.names() == ["partner-updated"]


@pytest.mark.asyncio
async def test_update_partner_cannot_contradict_binding(
    services: Services, manager: User, partner: User, assigned_order: Order
) -> None:
    with pytest.raises(ConflictError):
        await services.identity.update_partner(
            partner.id, PartnerUpdate(is_available=True), manager
        )
    with pytest.raises(ConflictError):
        await services.identity.set_availability(partner, True)

    stored = await services.users.get(partner.id)
    assert stored.is_available is False
    assert stored.current_order == assigned_order.id


@pytest.mark.asyncio
async def test_update_partner_not_found(services: Services, manager: User) -> None:
    with pytest.raises(NotFoundError, match="Delivery partner not found"):
        await services.identity.update_partner(uuid4(), PartnerUpdate(username="ghost"), manager)

    with pytest.raises(NotFoundError):
        await services.identity.update_partner(manager.id, PartnerUpdate(username="x" * 5), manager)


@pytest.mark.asyncio
async def test_delete_partner(services: Services, notifier, manager: User, partner: User) -> None:
    notifier.clear()
    await services.identity.delete_partner(partner.id, manager)

    assert await services.users.get(partner.id) is None
    assert await services.users.get_by_email(partner.email) is None
    assert await services.identity.list_partners() == []
    assert notifier.of(EventType.PARTNER_DELETED)[0][1] == {"partnerId": str(partner.id)}

    # Email and username are free again
    await services.identity.register(
        RegisterRequest(
            username="partner_a",
            email="partner_a@example.com",
            password="secret123",
            role=Role.DELIVERY_PARTNER,
        )
    )


@pytest.mark.asyncio
async def test_delete_busy_partner_fails(
    services: Services, manager: User, partner: User, assigned_order: Order
) -> None:
    with pytest.raises(ConflictError):
        await services.identity.delete_partner(partner.id, manager)

    assert await services.users.get(partner.id) is not None


@pytest.mark.asyncio
async def test_delete_manager_as_partner_fails(services: Services, manager: User) -> None:
    with pytest.raises(NotFoundError):
        await services.identity.delete_partner(manager.id, manager)
