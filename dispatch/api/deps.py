"""Request dependencies: service container, caller identity, role checks."""

from typing import Awaitable, Callable

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dispatch.auth import authorize
from dispatch.config import get_settings
from dispatch.errors import AuthError, InputValidationError
from dispatch.models.user import User
from dispatch.services import Services
from dispatch.utils.logging import bind_request_context

bearer = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    services: Services = Depends(get_services),
) -> User:
    """Resolve the bearer token on the request to a user."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Access denied. No token provided")

    user = await services.identity.authenticate_token(credentials.credentials)
    bind_request_context(user_id=str(user.id), role=user.role.value)
    return user


def require(resource: str, action: str) -> Callable[..., Awaitable[User]]:
    """Dependency factory: the caller, if their role may do ``action``."""

    async def dependency(user: User = Depends(current_user)) -> User:
        authorize(user, resource, action)
        return user

    return dependency


def page_params(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> tuple[int, int]:
    """Page number and size, defaulted and capped by settings."""
    settings = get_settings()
    if limit is None:
        limit = settings.default_page_size
    if limit > settings.max_page_size:
        raise InputValidationError(
            "Invalid page size",
            fields={"limit": f"Must be at most {settings.max_page_size}"},
        )
    return page, limit
