"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, Request

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.core.config import Settings, get_settings
from src.core.errors import AuthenticationError, AuthorizationError
from src.core.payments import PaymentProvider
from src.core.receipt_storage import ReceiptStorage
from src.models.admin import AdminRole
from src.schemas.auth import AdminContext
from src.services.admin_auth_service import AdminAuthService
from src.services.booking_service import BookingService
from src.services.catalog_service import CatalogService
from src.services.order_lifecycle_service import OrderLifecycleService
from src.services.pickup_availability_service import PickupAvailabilityService
from src.stores.base import OrderStore


def get_store(request: Request) -> OrderStore:
    """Get the order store built at startup."""
    return request.app.state.store


def get_payment_provider(request: Request) -> PaymentProvider:
    """Get the payment provider built at startup."""
    return request.app.state.payments


def get_receipt_storage(request: Request) -> ReceiptStorage:
    """Get the receipt storage built at startup."""
    return request.app.state.receipt_storage


AppSettings = Annotated[Settings, Depends(get_settings)]
Store = Annotated[OrderStore, Depends(get_store)]
Payments = Annotated[PaymentProvider, Depends(get_payment_provider)]
Storage = Annotated[ReceiptStorage, Depends(get_receipt_storage)]


def get_availability_service(store: Store, settings: AppSettings) -> PickupAvailabilityService:
    return PickupAvailabilityService(store, settings)


def get_booking_service(
    store: Store,
    payments: Payments,
    settings: AppSettings,
) -> BookingService:
    return BookingService(store, payments, PickupAvailabilityService(store, settings), settings)


def get_lifecycle_service(
    store: Store,
    payments: Payments,
    storage: Storage,
    settings: AppSettings,
) -> OrderLifecycleService:
    return OrderLifecycleService(store, payments, storage, settings)


def get_catalog_service(store: Store) -> CatalogService:
    return CatalogService(store)


def get_admin_auth_service(store: Store, settings: AppSettings) -> AdminAuthService:
    return AdminAuthService(store, settings)


async def get_current_admin(
    settings: AppSettings,
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> AdminContext:
    """Extract and validate the operator from the Authorization header.

    Args:
        settings: Application settings (signing secret and audience).
        authorization: The Authorization header value (Bearer token).

    Returns:
        AdminContext: The authenticated operator.

    Raises:
        AuthenticationError: 401 if token is missing, invalid, or expired.
        AuthorizationError: 403 if the token lacks an operator role.
    """
    if not authorization:
        raise AuthenticationError("Authorization header required")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid authorization header format. Expected: Bearer <token>")

    try:
        payload = decode_jwt(parts[1], settings.admin_jwt_secret, settings.admin_jwt_audience)
    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise AuthenticationError("Token has expired") from e
        raise AuthenticationError(e.message) from e

    if not payload.is_admin:
        raise AuthorizationError("Admin role required")

    return payload.to_admin_context()


async def get_current_superadmin(admin: Annotated[AdminContext, Depends(get_current_admin)]) -> AdminContext:
    """Require the authenticated operator to be a superadmin.

    Raises:
        AuthorizationError: 403 for any other role.
    """
    if admin.role != AdminRole.SUPERADMIN.value:
        raise AuthorizationError("Superadmin role required")
    return admin


AvailabilityServiceDep = Annotated[PickupAvailabilityService, Depends(get_availability_service)]
BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
LifecycleServiceDep = Annotated[OrderLifecycleService, Depends(get_lifecycle_service)]
CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]
AdminAuthServiceDep = Annotated[AdminAuthService, Depends(get_admin_auth_service)]
CurrentAdmin = Annotated[AdminContext, Depends(get_current_admin)]
CurrentSuperadmin = Annotated[AdminContext, Depends(get_current_superadmin)]
