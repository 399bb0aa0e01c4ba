"""Promotion schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from repuestos.models.base import as_utc


class PromotionBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    description: Optional[str] = None
    type: Literal["percentage", "fixed"]
    discount_percentage: Optional[Decimal] = Field(None, gt=0, le=100)
    discount_amount: Optional[Decimal] = Field(None, gt=0)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    max_uses: Optional[int] = Field(None, ge=1)
    product_ids: List[UUID] = []
    category_ids: List[UUID] = []

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v):
        return as_utc(v)


class PromotionCreate(PromotionBase):
    """Schema for creating a promotion."""

    store_id: Optional[UUID] = None

    @model_validator(mode="after")
    def check_discount(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if self.type == "percentage" and self.discount_percentage is None:
            raise ValueError("discount_percentage is required for percentage promotions")
        if self.type == "fixed" and self.discount_amount is None:
            raise ValueError("discount_amount is required for fixed promotions")
        if not self.product_ids and not self.category_ids:
            raise ValueError("A promotion needs at least one product or category")
        return self


class PromotionUpdate(BaseModel):
    """Schema for updating a promotion. Combined rules are re-checked on the merged result."""

    name: Optional[str] = Field(None, min_length=2, max_length=150)
    description: Optional[str] = None
    type: Optional[Literal["percentage", "fixed"]] = None
    discount_percentage: Optional[Decimal] = Field(None, gt=0, le=100)
    discount_amount: Optional[Decimal] = Field(None, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    max_uses: Optional[int] = Field(None, ge=1)
    product_ids: Optional[List[UUID]] = None
    category_ids: Optional[List[UUID]] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v):
        return as_utc(v)


class PromotionResponse(BaseModel):
    """Response schema for promotion."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    type: str
    discount_percentage: Optional[float] = None
    discount_amount: Optional[float] = None
    store_id: UUID
    start_date: datetime
    end_date: datetime
    is_active: bool
    max_uses: Optional[int] = None
    current_uses: int
    product_ids: List[UUID] = []
    category_ids: List[UUID] = []
    created_by_id: Optional[UUID] = None
    created_at: datetime


class PromotionStats(BaseModel):
    total: int
    active: int
    expired: int
    upcoming: int
    inactive: int
    by_type: Dict[str, int]


class PriceQuote(BaseModel):
    """Price of one unit after the best running promotion."""

    product_id: UUID
    original_price: float
    final_price: float
    discount_amount: float
    promotion_id: Optional[UUID] = None
    promotion_name: Optional[str] = None
