"""Orders and order line items."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repuestos.models.base import BaseModel, in_values

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "processing",
    "on_hold",
    "ready_for_pickup",
    "ready_for_delivery",
    "out_for_delivery",
    "delivered",
    "completed",
    "cancelled",
    "refunded",
)
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded", "cancelled")
FULFILLMENT_STATUSES = ("unfulfilled", "partially_fulfilled", "fulfilled")
PAYMENT_METHODS = ("cash", "card", "transfer", "pago_movil", "zelle")
SHIPPING_METHODS = ("delivery", "pickup")

CANCELLABLE_STATUSES = ("pending", "confirmed", "processing", "on_hold")


class Order(BaseModel):
    """A purchase from a single store."""

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(40), unique=True, nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(30), default="pending", nullable=False, index=True
    )
    payment_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    fulfillment_status: Mapped[str] = mapped_column(
        String(30), default="unfulfilled", nullable=False
    )
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    shipping_method: Mapped[str] = mapped_column(String(20), nullable=False)

    # Shipping address
    shipping_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    shipping_phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    shipping_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shipping_city: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    shipping_state: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    shipping_zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Totals
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), nullable=False
    )
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Delivery
    assigned_delivery_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Status timestamps
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    points_awarded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        CheckConstraint(in_values("status", ORDER_STATUSES), name="status"),
        CheckConstraint(in_values("payment_status", PAYMENT_STATUSES), name="payment_status"),
        CheckConstraint(
            in_values("fulfillment_status", FULFILLMENT_STATUSES), name="fulfillment_status"
        ),
        CheckConstraint(in_values("payment_method", PAYMENT_METHODS), name="payment_method"),
        CheckConstraint(in_values("shipping_method", SHIPPING_METHODS), name="shipping_method"),
    )

    # Relationships
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def can_be_cancelled(self) -> bool:
        return self.status in CANCELLABLE_STATUSES


class OrderItem(BaseModel):
    """One product line, with the price and discount frozen at purchase time."""

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    promotion_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("promotions.id", ondelete="SET NULL"), nullable=True
    )
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), nullable=False
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (CheckConstraint("quantity > 0", name="quantity"),)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
