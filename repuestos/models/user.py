"""User account, activity log and two-factor login challenges."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from repuestos.models.base import BaseModel, in_values

ROLES = ("client", "store_manager", "admin", "delivery")
LOYALTY_LEVELS = ("bronze", "silver", "gold", "platinum")
DELIVERY_STATUSES = ("available", "unavailable", "busy", "on_route")
LANGUAGES = ("es", "en", "pt")
THEMES = ("light", "dark")


class User(BaseModel):
    """Marketplace account. The role decides what the account may do."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), default="client", nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Login protection
    failed_login_count: Mapped[int] = mapped_column(SmallInteger, default=0, nullable=False)
    locked_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Two-factor authentication
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    two_factor_secret: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    two_factor_pending_secret: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # SHA-256 digests of the unused backup codes
    backup_codes: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    # Loyalty
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    loyalty_level: Mapped[str] = mapped_column(String(20), default="bronze", nullable=False)
    referral_code: Mapped[Optional[str]] = mapped_column(
        String(16), unique=True, nullable=True
    )
    referred_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    total_purchases: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_spent: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), nullable=False
    )

    # Location
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Preferences
    language: Mapped[str] = mapped_column(String(5), default="es", nullable=False)
    theme: Mapped[str] = mapped_column(String(10), default="light", nullable=False)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Couriers only
    delivery_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    __table_args__ = (
        CheckConstraint(in_values("role", ROLES), name="role"),
        CheckConstraint(in_values("loyalty_level", LOYALTY_LEVELS), name="loyalty_level"),
        CheckConstraint(
            "delivery_status IS NULL OR " + in_values("delivery_status", DELIVERY_STATUSES),
            name="delivery_status",
        ),
        CheckConstraint(in_values("language", LANGUAGES), name="language"),
        CheckConstraint(in_values("theme", THEMES), name="theme"),
        CheckConstraint("points >= 0", name="points"),
    )


class Activity(BaseModel):
    """Audit trail entry for a user."""

    __tablename__ = "activities"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)


class TwoFactorChallenge(BaseModel):
    """A login that passed the password step and waits for a second factor."""

    __tablename__ = "two_factor_challenges"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attempts: Mapped[int] = mapped_column(SmallInteger, default=0, nullable=False)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
