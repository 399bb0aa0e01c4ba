"""Promotion lookup and price calculation."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.models.base import money, utcnow
from repuestos.models.catalog import Product
from repuestos.models.promotion import Promotion


@dataclass
class PriceResult:
    """Unit price of a product after its best promotion."""

    original_price: Decimal
    discount: Decimal
    final_price: Decimal
    promotion: Optional[Promotion] = None

    @property
    def promotion_id(self) -> Optional[uuid.UUID]:
        return self.promotion.id if self.promotion else None

    @property
    def promotion_name(self) -> Optional[str]:
        return self.promotion.name if self.promotion else None


async def running_promotions(
    db: AsyncSession,
    store_id: uuid.UUID,
    at: Optional[datetime] = None,
    for_update: bool = False,
) -> List[Promotion]:
    """Active promotions of a store whose window contains ``at`` and that have uses left."""
    at = at or utcnow()
    query = select(Promotion).where(
        Promotion.store_id == store_id,
        Promotion.is_active == True,
        Promotion.start_date <= at,
        Promotion.end_date >= at,
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return [p for p in result.scalars().all() if p.is_running(at)]


def best_price(
    product: Product,
    promotions: Iterable[Promotion],
    at: Optional[datetime] = None,
) -> PriceResult:
    """Pick the promotion giving the largest discount on ``product``.

    Ties keep the promotion seen first. The final price never drops below zero.
    """
    price = money(product.price)
    best: Optional[Promotion] = None
    best_discount = Decimal("0.00")

    for promotion in promotions:
        if not promotion.is_running(at) or not promotion.applies_to(product):
            continue
        discount = promotion.discount_for(price)
        if discount > best_discount:
            best, best_discount = promotion, discount

    return PriceResult(
        original_price=price,
        discount=best_discount,
        final_price=money(max(price - best_discount, Decimal(0))),
        promotion=best,
    )


async def quote(db: AsyncSession, product: Product) -> PriceResult:
    promotions = await running_promotions(db, product.store_id)
    return best_price(product, promotions)
