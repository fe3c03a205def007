"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.middleware.error_handler import (
    api_error_handler,
    error_handler_middleware,
    request_validation_error_handler,
)
from src.api.middleware.latency_logging import latency_logging_middleware
from src.api.routes import (
    admin_auth,
    admin_orders,
    admin_pickup,
    admin_products,
    catalog,
    health,
    orders,
    pickup_slots,
    storage,
    webhooks,
)
from src.core.config import get_settings
from src.core.errors import APIError
from src.core.payments import PaymentProvider, build_payment_provider
from src.core.receipt_storage import ReceiptStorage, build_receipt_storage
from src.core.stripe import configure_stripe
from src.services.admin_auth_service import AdminAuthService
from src.stores.base import OrderStore
from src.stores.factory import build_order_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the order store, payment provider and receipt storage onto
    app.state unless they were supplied to create_app().

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    configure_stripe()

    if app.state.store is None:
        app.state.store = await build_order_store(settings)
    if app.state.payments is None:
        app.state.payments = build_payment_provider(settings)
    if app.state.receipt_storage is None:
        app.state.receipt_storage = build_receipt_storage(settings)
    logger.info(
        "Payment provider: %s, receipt storage: %s",
        app.state.payments.name,
        app.state.receipt_storage.name,
    )

    await AdminAuthService(app.state.store, settings).ensure_superadmin()

    yield

    await app.state.store.close()
    logger.info("Shutting down %s", settings.app_name)


def create_app(
    store: OrderStore | None = None,
    payments: PaymentProvider | None = None,
    receipt_storage: ReceiptStorage | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Optional prebuilt order store.
        payments: Optional prebuilt payment provider.
        receipt_storage: Optional prebuilt receipt storage.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Pickup Orders API",
        description="Grocery pickup slot booking and order lifecycle backend",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.payments = payments
    app.state.receipt_storage = receipt_storage

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handler middleware (catches anything the handlers below miss)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Add latency logging middleware (tracks request timing)
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_middleware)

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    # Create API v1 router for versioned endpoints
    api_v1_router = APIRouter(prefix="/api/v1")

    # Shopper routes
    api_v1_router.include_router(catalog.router)
    api_v1_router.include_router(pickup_slots.router)
    api_v1_router.include_router(orders.router)

    # Admin routes
    api_v1_router.include_router(admin_auth.router)
    api_v1_router.include_router(admin_orders.router)
    api_v1_router.include_router(admin_pickup.router)
    api_v1_router.include_router(admin_products.router)

    # Webhook and local storage routes
    api_v1_router.include_router(webhooks.router)
    api_v1_router.include_router(storage.router)

    app.include_router(api_v1_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
