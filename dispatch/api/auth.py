"""Authentication, profile and partner management routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from dispatch.api.deps import current_user, get_services, require
from dispatch.models.user import User
from dispatch.schemas import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    PartnerCreate,
    PartnerListResponse,
    PartnerResponse,
    PartnerUpdate,
    ProfileUpdate,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from dispatch.serialization import present_user
from dispatch.services import Services
from dispatch.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    services: Services = Depends(get_services),
) -> AuthResponse:
    """Create an account and sign it in."""
    user, token = await services.identity.register(request)
    return AuthResponse(
        message="User registered successfully",
        token=token,
        user=present_user(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    services: Services = Depends(get_services),
) -> AuthResponse:
    user, token = await services.identity.login(request.email, request.password)
    return AuthResponse(message="Login successful", token=token, user=present_user(user))


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    user: User = Depends(require("profile", "own")),
) -> UserResponse:
    return UserResponse(user=present_user(user))


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    request: ProfileUpdate,
    user: User = Depends(require("profile", "own")),
    services: Services = Depends(get_services),
) -> UserResponse:
    updated = await services.identity.update_profile(user, request)
    return UserResponse(message="Profile updated successfully", user=present_user(updated))


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> TokenResponse:
    """Issue a new token for an already authenticated caller."""
    return TokenResponse(
        message="Token refreshed successfully",
        token=services.identity.issue_token(user),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(user: User = Depends(current_user)) -> MessageResponse:
    # Tokens are stateless; the client discards its copy
    logger.info("user_logged_out", user_id=str(user.id))
    return MessageResponse(message="Logout successful")


# Partner management


@router.get(
    "/delivery-partners",
    response_model=PartnerListResponse,
)
async def list_delivery_partners(
    user: User = Depends(require("partners", "manage")),
    services: Services = Depends(get_services),
) -> PartnerListResponse:
    partners = await services.identity.list_partners()
    return PartnerListResponse(delivery_partners=[present_user(p) for p in partners])


@router.post(
    "/delivery-partners",
    response_model=PartnerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_delivery_partner(
    request: PartnerCreate,
    user: User = Depends(require("partners", "manage")),
    services: Services = Depends(get_services),
) -> PartnerResponse:
    partner = await services.identity.create_partner(request, user)
    return PartnerResponse(
        message="Delivery partner created successfully",
        delivery_partner=present_user(partner),
    )


@router.put(
    "/delivery-partners/{partner_id}",
    response_model=PartnerResponse,
)
async def update_delivery_partner(
    partner_id: UUID,
    request: PartnerUpdate,
    user: User = Depends(require("partners", "manage")),
    services: Services = Depends(get_services),
) -> PartnerResponse:
    partner = await services.identity.update_partner(partner_id, request, user)
    return PartnerResponse(
        message="Delivery partner updated successfully",
        delivery_partner=present_user(partner),
    )


@router.delete("/delivery-partners/{partner_id}", response_model=MessageResponse)
async def delete_delivery_partner(
    partner_id: UUID,
    user: User = Depends(require("partners", "manage")),
    services: Services = Depends(get_services),
) -> MessageResponse:
    await services.identity.delete_partner(partner_id, user)
    return MessageResponse(message="Delivery partner deleted successfully")
