"""Bearer tokens and the role policy table."""

from datetime import timedelta
from uuid import UUID

import jwt

from dispatch.config import Settings
from dispatch.errors import AuthError, ForbiddenError
from dispatch.models.user import Role, User
from dispatch.utils.clock import utcnow

MANAGER_ONLY = frozenset({Role.MANAGER})
PARTNER_ONLY = frozenset({Role.DELIVERY_PARTNER})
ANY_ROLE = frozenset(Role)

# (resource, action) -> roles allowed to perform it
POLICY: dict[tuple[str, str], frozenset[Role]] = {
    ("orders", "create"): MANAGER_ONLY,
    ("orders", "read"): ANY_ROLE,
    ("orders", "assign"): MANAGER_ONLY,
    ("orders", "update_status"): ANY_ROLE,
    ("orders", "update"): MANAGER_ONLY,
    ("orders", "delete"): MANAGER_ONLY,
    ("delivery", "own"): PARTNER_ONLY,
    ("delivery", "overview"): MANAGER_ONLY,
    ("partners", "manage"): MANAGER_ONLY,
    ("profile", "own"): ANY_ROLE,
}


def authorize(user: User, resource: str, action: str) -> None:
    """Raise ForbiddenError unless the user's role may do ``action``."""
    allowed = POLICY.get((resource, action))
    if allowed is None or user.role not in allowed:
        roles = ", ".join(sorted(role.value for role in allowed or ()))
        raise ForbiddenError(f"Access denied. Required roles: {roles or 'none'}")


class TokenService:
    """Issues and verifies signed access tokens."""

    def __init__(self, settings: Settings):
        self.secret = settings.secret_key
        self.algorithm = settings.token_algorithm
        self.ttl = timedelta(minutes=settings.access_token_expire_minutes)

    def issue(self, user: User) -> str:
        now = utcnow()
        claims = {
            "sub": str(user.id),
            "role": user.role.value,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> UUID:
        """Return the user id a token was issued for."""
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
            return UUID(claims["sub"])
        except jwt.ExpiredSignatureError:
            raise AuthError("Token has expired") from None
        except (jwt.InvalidTokenError, KeyError, ValueError):
            raise AuthError("Invalid token") from None
