"""Loyalty, rewards, reviews and delivery availability schemas."""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LoyaltyStats(BaseModel):
    points: int
    loyalty_level: str
    referral_code: Optional[str] = None
    total_purchases: int
    total_spent: float
    redemptions: int
    reviews: int
    next_level: Optional[str] = None


class RewardCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    description: Optional[str] = None
    points_required: int = Field(..., gt=0)
    stock: int = Field(0, ge=0)
    image_url: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class RewardUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=150)
    description: Optional[str] = None
    points_required: Optional[int] = Field(None, gt=0)
    stock: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class RewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    points_required: int
    stock: int
    image_url: Optional[str] = None
    is_active: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    can_afford: bool = False


class RedemptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    reward_id: UUID
    points_spent: int
    status: str
    notes: Optional[str] = None
    created_at: datetime
    remaining_points: int = 0


class RedemptionStatusUpdate(BaseModel):
    status: Literal["approved", "delivered", "cancelled"]
    notes: Optional[str] = Field(None, max_length=500)


class ReviewCreate(BaseModel):
    """A rating from 1 to 5, optionally about a product or one of the caller's orders."""

    category: Literal["product", "service", "delivery", "app"]
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=150)
    comment: str = Field(..., min_length=1, max_length=2000)
    product_id: Optional[UUID] = None
    order_id: Optional[UUID] = None


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    category: str
    rating: int
    title: Optional[str] = None
    comment: str
    product_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    points_earned: int
    is_verified: bool
    created_at: datetime


class DeliveryStatusUpdate(BaseModel):
    status: Literal["available", "unavailable", "busy", "on_route"]
