"""Product schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductCreate(BaseModel):
    """Schema for creating a product."""

    store_id: UUID
    name: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = None
    sku: str = Field(..., min_length=1, max_length=64)
    part_number: Optional[str] = Field(None, max_length=64)
    original_part_code: Optional[str] = Field(None, max_length=64)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    stock: int = Field(0, ge=0)
    category_id: Optional[UUID] = None
    subcategory_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    image_url: Optional[str] = Field(None, max_length=500)
    is_active: bool = True

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v):
        return v.strip().upper()


class ProductUpdate(BaseModel):
    """Schema for updating a product. The store cannot change."""

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    part_number: Optional[str] = Field(None, max_length=64)
    original_part_code: Optional[str] = Field(None, max_length=64)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    category_id: Optional[UUID] = None
    subcategory_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    image_url: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v):
        return v.strip().upper() if v else v


class ProductResponse(BaseModel):
    """Response schema for product."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    store_id: UUID
    name: str
    description: Optional[str] = None
    sku: str
    part_number: Optional[str] = None
    original_part_code: Optional[str] = None
    price: float
    stock: int
    category_id: Optional[UUID] = None
    subcategory_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    image_url: Optional[str] = None
    is_active: bool
    deleted: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ProductDetailResponse(ProductResponse):
    """Product with the best running promotion applied."""

    final_price: float
    discount_amount: float = 0
    promotion_id: Optional[UUID] = None
    promotion_name: Optional[str] = None
