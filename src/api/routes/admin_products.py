"""Admin product management routes."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.api.deps import CatalogServiceDep, CurrentAdmin
from src.models.product import ProductCategory
from src.schemas.catalog import (
    ProductCreateRequest,
    ProductListResponse,
    ProductResponse,
    ProductUpdateRequest,
    StockUpdateRequest,
)

router = APIRouter(prefix="/admin/products", tags=["admin"])


@router.get(
    "",
    response_model=ProductListResponse,
    summary="List all products",
    description="List products including inactive ones.",
)
async def list_products(
    admin: CurrentAdmin,
    service: CatalogServiceDep,
    category: ProductCategory | None = Query(default=None, description="Category filter"),
) -> ProductListResponse:
    """List every product for inventory management."""
    products = await service.list_products(category=category, include_inactive=True)
    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        total=len(products),
    )


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
)
async def create_product(
    data: ProductCreateRequest,
    admin: CurrentAdmin,
    service: CatalogServiceDep,
) -> ProductResponse:
    """Add a product to the catalog."""
    product = await service.create_product(
        name=data.name,
        unit=data.unit,
        price_cents=data.price_cents,
        stock_quantity=data.stock_quantity,
        category=data.category,
        description=data.description,
        active=data.active,
    )
    return ProductResponse.model_validate(product)


@router.patch(
    "/{product_id}/stock",
    response_model=ProductResponse,
    summary="Set stock",
    responses={404: {"description": "Product not found"}},
)
async def set_stock(
    product_id: UUID,
    data: StockUpdateRequest,
    admin: CurrentAdmin,
    service: CatalogServiceDep,
) -> ProductResponse:
    """Set a product's stock level."""
    return ProductResponse.model_validate(await service.set_stock(product_id, data.stock_quantity))


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Edit product",
    description="Change any subset of a product's fields.",
    responses={404: {"description": "Product not found"}},
)
async def update_product(
    product_id: UUID,
    data: ProductUpdateRequest,
    admin: CurrentAdmin,
    service: CatalogServiceDep,
) -> ProductResponse:
    """Apply a partial edit to a product."""
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    return ProductResponse.model_validate(await service.update_product(product_id, changes))
