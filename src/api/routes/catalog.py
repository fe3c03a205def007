"""Shopper catalog routes."""

from uuid import UUID

from fastapi import APIRouter, Query

from src.api.deps import CatalogServiceDep
from src.models.product import ProductCategory
from src.schemas.catalog import ProductListResponse, ProductResponse

router = APIRouter(tags=["catalog"])


@router.get(
    "/catalog",
    response_model=ProductListResponse,
    summary="List products",
    description="List active products, optionally filtered by category.",
)
async def list_catalog(
    service: CatalogServiceDep,
    category: ProductCategory | None = Query(default=None, description="Category filter"),
) -> ProductListResponse:
    """List active products."""
    products = await service.list_products(category=category)
    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        total=len(products),
    )


@router.get(
    "/products/{product_id}",
    response_model=ProductResponse,
    summary="Get product",
    description="Get a single active product.",
    responses={404: {"description": "Product not found"}},
)
async def get_product(product_id: UUID, service: CatalogServiceDep) -> ProductResponse:
    """Get a product by ID."""
    return ProductResponse.model_validate(await service.get_product(product_id))
