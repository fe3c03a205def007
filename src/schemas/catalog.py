"""Catalog request/response schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.product import ProductCategory, ProductUnit


class ProductResponse(BaseModel):
    """Product as shown to shoppers and operators."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Product identifier")
    name: str = Field(description="Display name")
    description: str = Field(default="", description="Product description")
    category: ProductCategory = Field(description="Catalog category")
    unit: ProductUnit = Field(description="'each' for counted items, 'lb' for by-weight items")
    price_cents: int = Field(description="Price per unit or per pound, in cents")
    stock_quantity: Decimal = Field(description="Units or pounds on hand")
    active: bool = Field(description="Whether shoppers can order the product")
    updated_at: datetime = Field(description="Last modification time")


class ProductListResponse(BaseModel):
    """List of products."""

    products: list[ProductResponse] = Field(description="Products sorted by name")
    total: int = Field(description="Number of products returned")


class ProductCreateRequest(BaseModel):
    """Request body for adding a product."""

    name: str = Field(min_length=1, max_length=200, description="Display name")
    description: str = Field(default="", max_length=2000, description="Product description")
    category: ProductCategory = Field(default=ProductCategory.GROCERY_OTHER, description="Catalog category")
    unit: ProductUnit = Field(description="'each' or 'lb'")
    price_cents: int = Field(ge=0, description="Price per unit or per pound, in cents")
    stock_quantity: Decimal = Field(ge=0, description="Initial units or pounds on hand")
    active: bool = Field(default=True, description="Whether shoppers can order the product")


class StockUpdateRequest(BaseModel):
    """Request body for setting a product's stock."""

    stock_quantity: Decimal = Field(ge=0, description="New units or pounds on hand")


class ProductUpdateRequest(BaseModel):
    """Partial product edit. Omitted fields keep their current value."""

    name: str | None = Field(default=None, min_length=1, max_length=200, description="Display name")
    description: str | None = Field(default=None, max_length=2000, description="Product description")
    category: ProductCategory | None = Field(default=None, description="Catalog category")
    unit: ProductUnit | None = Field(default=None, description="'each' or 'lb'")
    price_cents: int | None = Field(default=None, ge=0, description="Price per unit or per pound, in cents")
    stock_quantity: Decimal | None = Field(default=None, ge=0, description="Units or pounds on hand")
    active: bool | None = Field(default=None, description="Whether shoppers can order the product")
