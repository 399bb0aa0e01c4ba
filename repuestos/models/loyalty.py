"""Loyalty rewards, their redemptions and point-earning reviews."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from repuestos.models.base import BaseModel, as_utc, in_values, utcnow

REDEMPTION_STATUSES = ("pending", "approved", "delivered", "cancelled")

REDEMPTION_TRANSITIONS = {
    "pending": ("approved", "cancelled"),
    "approved": ("delivered", "cancelled"),
    "delivered": (),
    "cancelled": (),
}

# Points per star
REVIEW_CATEGORIES = {"product": 50, "service": 75, "delivery": 25, "app": 100}


class Reward(BaseModel):
    """Something a customer can buy with loyalty points."""

    __tablename__ = "rewards"

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points_required: Mapped[int] = mapped_column(Integer, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("points_required > 0", name="points_required"),
        CheckConstraint("stock >= 0", name="stock"),
    )

    def is_available(self, at: Optional[datetime] = None) -> bool:
        at = at or utcnow()
        if not self.is_active or self.stock <= 0:
            return False
        if self.start_date and as_utc(self.start_date) > at:
            return False
        if self.end_date and as_utc(self.end_date) < at:
            return False
        return True


class RewardRedemption(BaseModel):
    """A reward claimed by a user."""

    __tablename__ = "reward_redemptions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reward_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rewards.id", ondelete="RESTRICT"), nullable=False
    )
    points_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(in_values("status", REDEMPTION_STATUSES), name="status"),
    )


class Review(BaseModel):
    """A customer rating. Each one earns points once, when it is submitted."""

    __tablename__ = "reviews"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="SET NULL"), nullable=True
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        CheckConstraint(in_values("category", REVIEW_CATEGORIES), name="category"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="rating"),
    )
