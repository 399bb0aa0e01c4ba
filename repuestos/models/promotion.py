"""Store promotions scoped to products and/or categories."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repuestos.config.database import Base
from repuestos.models.base import BaseModel, as_utc, in_values, money, utcnow

if TYPE_CHECKING:
    from repuestos.models.catalog import Category, Product

PROMOTION_TYPES = ("percentage", "fixed")


promotion_products = Table(
    "promotion_products",
    Base.metadata,
    Column("promotion_id", Uuid, ForeignKey("promotions.id", ondelete="CASCADE"), primary_key=True),
    Column("product_id", Uuid, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
)

promotion_categories = Table(
    "promotion_categories",
    Base.metadata,
    Column("promotion_id", Uuid, ForeignKey("promotions.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Uuid, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Promotion(BaseModel):
    """Percentage or fixed discount that a store runs for a date window."""

    __tablename__ = "promotions"

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_uses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        CheckConstraint(in_values("type", PROMOTION_TYPES), name="type"),
        CheckConstraint("end_date > start_date", name="dates"),
        CheckConstraint("current_uses >= 0", name="current_uses"),
    )

    # Scope
    products: Mapped[List["Product"]] = relationship(
        "Product", secondary=promotion_products, lazy="selectin"
    )
    categories: Mapped[List["Category"]] = relationship(
        "Category", secondary=promotion_categories, lazy="selectin"
    )

    @property
    def product_ids(self) -> List[uuid.UUID]:
        return [p.id for p in self.products]

    @property
    def category_ids(self) -> List[uuid.UUID]:
        return [c.id for c in self.categories]

    @property
    def has_uses_left(self) -> bool:
        return self.max_uses is None or self.current_uses < self.max_uses

    def is_running(self, at: Optional[datetime] = None) -> bool:
        at = at or utcnow()
        return (
            self.is_active
            and as_utc(self.start_date) <= at <= as_utc(self.end_date)
            and self.has_uses_left
        )

    def applies_to(self, product: "Product") -> bool:
        if product.store_id != self.store_id:
            return False
        if product.id in self.product_ids:
            return True
        return product.category_id is not None and product.category_id in self.category_ids

    def discount_for(self, price: Decimal) -> Decimal:
        """Discount for one unit at ``price``, never more than the price itself."""
        price = money(price)
        if self.type == "percentage":
            discount = price * Decimal(self.discount_percentage or 0) / Decimal(100)
        else:
            discount = Decimal(self.discount_amount or 0)
        return money(min(max(discount, Decimal(0)), price))
