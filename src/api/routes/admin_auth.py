"""Admin sign-in and staff account routes."""

from fastapi import APIRouter, status

from src.api.deps import AdminAuthServiceDep, CurrentSuperadmin
from src.schemas.auth import (
    AdminUserCreateRequest,
    AdminUserResponse,
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
)
from src.services.admin_auth_service import TokenPair

router = APIRouter(prefix="/admin", tags=["admin"])


def _token_response(tokens: TokenPair) -> LoginResponse:
    return LoginResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
        role=tokens.role,
    )


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    summary="Admin login",
    description="Exchange an admin email and password for access and refresh tokens.",
    responses={401: {"description": "Invalid credentials"}},
)
async def login(data: LoginRequest, service: AdminAuthServiceDep) -> LoginResponse:
    """Sign an admin in."""
    return _token_response(await service.login(data.email, data.password))


@router.post(
    "/auth/refresh",
    response_model=LoginResponse,
    summary="Refresh admin tokens",
    responses={401: {"description": "Invalid or expired refresh token"}},
)
async def refresh(data: RefreshTokenRequest, service: AdminAuthServiceDep) -> LoginResponse:
    """Issue a new token pair from a refresh token."""
    return _token_response(await service.refresh(data.refresh_token))


@router.post(
    "/users",
    response_model=AdminUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create admin account",
    description="Superadmin only.",
    responses={403: {"description": "Superadmin role required"}, 409: {"description": "Email already registered"}},
)
async def create_admin_user(
    data: AdminUserCreateRequest,
    superadmin: CurrentSuperadmin,
    service: AdminAuthServiceDep,
) -> AdminUserResponse:
    """Create a staff account."""
    admin = await service.create_admin_user(data.email, data.password, data.role)
    return AdminUserResponse.model_validate(admin)
