"""User persistence on top of the state manager."""

from uuid import UUID

from dispatch.errors import DuplicateError
from dispatch.models.user import Role, User
from dispatch.state.manager import StateManager, Transaction
from dispatch.utils.logging import get_logger

logger = get_logger(__name__)


class UserStore:
    """Key layout and load/stage helpers for users."""

    KEY_PATTERNS = ("user:*", "users:*")

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    @staticmethod
    def key(user_id: UUID | str) -> str:
        return f"user:{user_id}"

    @staticmethod
    def email_key(email: str) -> str:
        return f"user:email:{email.lower()}"

    @staticmethod
    def username_key(username: str) -> str:
        return f"user:username:{username.lower()}"

    @staticmethod
    def role_key(role: Role) -> str:
        return f"users:{role.value}"

    async def get(self, user_id: UUID | str) -> User | None:
        data = await self.state.get(self.key(user_id))
        return User(**data) if data else None

    async def get_many(self, user_ids: list[UUID]) -> dict[UUID, User]:
        unique = list(dict.fromkeys(user_ids))
        records = await self.state.mget([self.key(uid) for uid in unique])
        users = (User(**data) for data in records if data)
        return {user.id: user for user in users}

    async def get_by_email(self, email: str) -> User | None:
        user_id = await self.state.get(self.email_key(email))
        if not user_id:
            return None
        return await self.get(user_id)

    async def list_by_role(self, role: Role) -> list[User]:
        ids = sorted(await self.state.smembers(self.role_key(role)))
        records = await self.state.mget([self.key(uid) for uid in ids])
        users = [User(**data) for data in records if data]
        users.sort(key=lambda user: user.created_at)
        return users

    async def load(self, tx: Transaction, user_id: UUID | str) -> User | None:
        data = await tx.get(self.key(user_id))
        return User(**data) if data else None

    def stage(self, tx: Transaction, user: User) -> None:
        tx.set(self.key(user.id), user.model_dump(mode="json"))

    async def create(self, user: User) -> User:
        """Insert a user, enforcing email and username uniqueness atomically."""

        async def insert(tx: Transaction) -> User:
            if await tx.exists(self.email_key(user.email)) or await tx.exists(
                self.username_key(user.username)
            ):
                raise DuplicateError("User with this email or username already exists")

            self.stage(tx, user)
            tx.set(self.email_key(user.email), str(user.id))
            tx.set(self.username_key(user.username), str(user.id))
            tx.sadd(self.role_key(user.role), str(user.id))
            return user

        created = await self.state.transaction("create_user", insert)
        logger.info("user_created", user_id=str(user.id), role=user.role.value)
        return created

    async def stage_rename(self, tx: Transaction, user: User, new_username: str) -> None:
        """Move the username index; caller stages the user record itself."""
        if new_username.lower() == user.username.lower():
            user.username = new_username
            return
        if await tx.exists(self.username_key(new_username)):
            raise DuplicateError("User with this email or username already exists")

        tx.delete(self.username_key(user.username))
        tx.set(self.username_key(new_username), str(user.id))
        user.username = new_username

    def stage_delete(self, tx: Transaction, user: User) -> None:
        tx.delete(
            self.key(user.id),
            self.email_key(user.email),
            self.username_key(user.username),
        )
        tx.srem(self.role_key(user.role), str(user.id))
