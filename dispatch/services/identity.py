"""Identity service: accounts, credentials, profiles and partner management."""

import asyncio
from functools import lru_cache
from uuid import UUID

import bcrypt

from dispatch.auth import TokenService
from dispatch.config import Settings
from dispatch.errors import AuthError, ConflictError, NotFoundError
from dispatch.models.order import Order
from dispatch.models.user import Role, User
from dispatch.notifications.port import EventType, NotificationPort, publish_safely
from dispatch.schemas import PartnerCreate, PartnerUpdate, ProfileUpdate, RegisterRequest
from dispatch.serialization import availability_payload, present_user
from dispatch.services.assignment import stage_eta_change
from dispatch.services.presenter import OrderPresenter
from dispatch.state.manager import StateManager, Transaction
from dispatch.state.orders import OrderStore
from dispatch.state.users import UserStore
from dispatch.utils.logging import get_logger

logger = get_logger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash."""
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


@lru_cache()
def _dummy_hash(rounds: int) -> str:
    # Compared against when the email is unknown, so both paths cost a hash check
    return hash_password("dispatch-dummy-password", rounds)


class IdentityService:
    """Registers users, checks credentials and edits partner profiles."""

    def __init__(
        self,
        state_manager: StateManager,
        users: UserStore,
        orders: OrderStore,
        presenter: OrderPresenter,
        tokens: TokenService,
        notifier: NotificationPort,
        settings: Settings,
    ):
        self.state = state_manager
        self.users = users
        self.orders = orders
        self.presenter = presenter
        self.tokens = tokens
        self.notifier = notifier
        self.settings = settings

    # Accounts

    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(
            hash_password, password, self.settings.password_hash_rounds
        )

    async def register(self, request: RegisterRequest) -> tuple[User, str]:
        """Create an account and return it with a fresh token."""
        user = User(
            username=request.username,
            email=request.email,
            password_hash=await self._hash(request.password),
            role=request.role,
            estimated_delivery_time=(
                request.estimated_delivery_time or self.settings.default_delivery_time
            ),
        )
        await self.users.create(user)
        logger.info("user_registered", user_id=str(user.id), role=user.role.value)
        return user, self.issue_token(user)

    async def create_partner(self, request: PartnerCreate, actor: User) -> User:
        partner = User(
            username=request.username,
            email=request.email,
            password_hash=await self._hash(request.password),
            role=Role.DELIVERY_PARTNER,
            estimated_delivery_time=(
                request.estimated_delivery_time or self.settings.default_delivery_time
            ),
        )
        await self.users.create(partner)
        logger.info("partner_created", partner_id=str(partner.id), created_by=str(actor.id))

        await publish_safely(
            self.notifier, EventType.PARTNER_CREATED, present_user(partner).payload()
        )
        return partner

    async def verify_credentials(self, email: str, password: str) -> User:
        """
        Return the user owning ``email`` if ``password`` matches.

        Unknown emails and wrong passwords fail the same way.
        """
        user = await self.users.get_by_email(email)
        password_hash = (
            user.password_hash if user else _dummy_hash(self.settings.password_hash_rounds)
        )
        valid = await asyncio.to_thread(verify_password, password, password_hash)

        if user is None or not valid:
            logger.info("login_failed", email=email.lower())
            raise AuthError("Invalid credentials")
        return user

    async def login(self, email: str, password: str) -> tuple[User, str]:
        user = await self.verify_credentials(email, password)
        logger.info("user_logged_in", user_id=str(user.id))
        return user, self.issue_token(user)

    def issue_token(self, user: User) -> str:
        return self.tokens.issue(user)

    async def authenticate_token(self, token: str) -> User:
        """Resolve a bearer token to a live user."""
        user_id = self.tokens.verify(token)
        user = await self.users.get(user_id)
        if user is None:
            raise AuthError("Invalid token")
        return user

    # Profiles

    async def update_profile(self, user: User, request: ProfileUpdate) -> User:
        """Change the caller's username, and ETA for partners."""
        eta = request.estimated_delivery_time if user.is_partner else None
        updated, _, retimed = await self._modify(
            user.id,
            operation="update_profile",
            username=request.username,
            eta=eta,
        )
        if updated.is_partner:
            await self._announce(updated, partner_updated=True, retimed=retimed)
        return updated

    async def set_availability(self, partner: User, is_available: bool) -> User:
        updated, changed, _ = await self._modify(
            partner.id,
            operation="set_availability",
            partner_only=True,
            is_available=is_available,
        )
        await self._announce(updated, availability_changed=changed)
        return updated

    async def update_eta(self, partner: User, minutes: int) -> tuple[User, Order | None]:
        """Change a partner's estimate; returns the order whose dispatch time moved."""
        updated, _, retimed = await self._modify(
            partner.id,
            operation="update_eta",
            partner_only=True,
            eta=minutes,
        )
        await self._announce(updated, partner_updated=True, retimed=retimed)
        return updated, retimed

    # Partner management

    async def list_partners(self) -> list[User]:
        return await self.users.list_by_role(Role.DELIVERY_PARTNER)

    async def update_partner(self, partner_id: UUID, request: PartnerUpdate, actor: User) -> User:
        updated, changed, retimed = await self._modify(
            partner_id,
            operation="update_partner",
            partner_only=True,
            username=request.username,
            eta=request.estimated_delivery_time,
            is_available=request.is_available,
        )
        logger.info("partner_updated", partner_id=str(partner_id), updated_by=str(actor.id))
        await self._announce(
            updated,
            partner_updated=True,
            availability_changed=changed,
            retimed=retimed,
        )
        return updated

    async def delete_partner(self, partner_id: UUID, actor: User) -> None:
        """Remove a partner account. Partners holding an order cannot be removed."""

        async def remove(tx: Transaction) -> User:
            partner = await self.users.load(tx, partner_id)
            if partner is None or not partner.is_partner:
                raise NotFoundError("Delivery partner not found")
            if partner.current_order is not None:
                raise ConflictError(
                    "Cannot delete partner with active orders. "
                    "Complete the current order first."
                )
            self.users.stage_delete(tx, partner)
            return partner

        partner = await self.state.transaction("delete_partner", remove)
        logger.info("partner_deleted", partner_id=str(partner.id), deleted_by=str(actor.id))

        await publish_safely(
            self.notifier, EventType.PARTNER_DELETED, {"partnerId": str(partner.id)}
        )

    # Internals

    async def _modify(
        self,
        user_id: UUID,
        *,
        operation: str,
        partner_only: bool = False,
        username: str | None = None,
        eta: int | None = None,
        is_available: bool | None = None,
    ) -> tuple[User, bool, Order | None]:
        """
        Apply profile changes in one transaction.

        Returns the stored user, whether availability flipped, and the
        bound order if its dispatch time was recomputed.
        """

        async def apply(tx: Transaction) -> tuple[User, bool, Order | None]:
            user = await self.users.load(tx, user_id)
            if user is None or (partner_only and not user.is_partner):
                message = "Delivery partner not found" if partner_only else "User not found"
                raise NotFoundError(message)

            changed = False
            if is_available is not None and is_available != user.is_available:
                if user.current_order is not None:
                    raise ConflictError(
                        "Cannot change availability while holding an active order"
                    )
                user.is_available = is_available
                changed = True

            if username is not None:
                await self.users.stage_rename(tx, user, username)

            retimed = None
            if eta is not None and user.is_partner:
                retimed = await stage_eta_change(tx, self.orders, user, eta)

            user.touch()
            self.users.stage(tx, user)
            return user, changed, retimed

        return await self.state.transaction(operation, apply)

    async def _announce(
        self,
        user: User,
        *,
        partner_updated: bool = False,
        availability_changed: bool = False,
        retimed: Order | None = None,
    ) -> None:
        if partner_updated:
            await publish_safely(
                self.notifier, EventType.PARTNER_UPDATED, present_user(user).payload()
            )
        if availability_changed:
            logger.info(
                "availability_changed", partner_id=str(user.id), is_available=user.is_available
            )
            await publish_safely(
                self.notifier,
                EventType.PARTNER_AVAILABILITY_CHANGED,
                availability_payload(user),
            )
        if retimed is not None:
            logger.info(
                "dispatch_time_recomputed",
                order_id=retimed.order_id,
                dispatch_time=retimed.dispatch_time,
            )
            view = await self.presenter.present(retimed)
            await publish_safely(self.notifier, EventType.ORDER_UPDATED, view.payload())
