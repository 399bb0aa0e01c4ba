"""Promotion endpoints."""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import require_store_staff
from repuestos.config.database import get_db
from repuestos.core.exceptions import BadRequestException, NotFoundException
from repuestos.models.base import as_utc, utcnow
from repuestos.models.catalog import Category, Product
from repuestos.models.promotion import Promotion
from repuestos.models.user import User
from repuestos.schemas.common import MessageResponse, PaginatedResponse
from repuestos.schemas.promotion import (
    PriceQuote,
    PromotionCreate,
    PromotionResponse,
    PromotionStats,
    PromotionUpdate,
)
from repuestos.services.pricing import quote, running_promotions
from repuestos.services.stores import get_managed_store, managed_store_ids

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("name", "type", "start_date", "end_date", "is_active")


async def resolve_store_id(db: AsyncSession, user: User, store_id: Optional[UUID]) -> UUID:
    """Admins name the store. A manager of exactly one store may omit it."""
    if store_id is None:
        if user.role == "admin":
            raise BadRequestException(detail="store_id is required")
        store_ids = await managed_store_ids(db, user)
        if len(store_ids) != 1:
            raise BadRequestException(detail="store_id is required")
        store_id = store_ids[0]
    await get_managed_store(db, store_id, user)
    return store_id


async def load_scope(
    db: AsyncSession, store_id: UUID, product_ids: List[UUID], category_ids: List[UUID]
):
    products: List[Product] = []
    categories: List[Category] = []

    if product_ids:
        result = await db.execute(
            select(Product).where(
                Product.id.in_(product_ids),
                Product.store_id == store_id,
                Product.deleted == False,
            )
        )
        products = list(result.scalars().all())
        if len(products) != len(set(product_ids)):
            raise BadRequestException(
                detail="Every product must exist and belong to the promotion's store"
            )

    if category_ids:
        result = await db.execute(select(Category).where(Category.id.in_(category_ids)))
        categories = list(result.scalars().all())
        if len(categories) != len(set(category_ids)):
            raise BadRequestException(detail="Category not found")

    if not products and not categories:
        raise BadRequestException(detail="A promotion needs at least one product or category")
    return products, categories


def check_discount(promotion: Promotion) -> None:
    """Keep only the discount matching the type, then validate the merged promotion."""
    if promotion.type == "percentage":
        promotion.discount_amount = None
    else:
        promotion.discount_percentage = None

    if as_utc(promotion.end_date) <= as_utc(promotion.start_date):
        raise BadRequestException(detail="end_date must be after start_date")
    if promotion.type == "percentage" and not promotion.discount_percentage:
        raise BadRequestException(detail="discount_percentage is required for percentage promotions")
    if promotion.type == "fixed" and not promotion.discount_amount:
        raise BadRequestException(detail="discount_amount is required for fixed promotions")


async def get_managed_promotion(db: AsyncSession, promotion_id: UUID, user: User) -> Promotion:
    promotion = await db.get(Promotion, promotion_id)
    if not promotion:
        raise NotFoundException(detail="Promotion not found")
    await get_managed_store(db, promotion.store_id, user)
    return promotion


async def scoped_query(db: AsyncSession, user: User, store_id: Optional[UUID]):
    query = select(Promotion)
    if store_id:
        await get_managed_store(db, store_id, user)
        query = query.where(Promotion.store_id == store_id)
    elif user.role != "admin":
        query = query.where(Promotion.store_id.in_(await managed_store_ids(db, user)))
    return query


@router.post("", response_model=PromotionResponse, status_code=201)
async def create_promotion(
    data: PromotionCreate,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> PromotionResponse:
    store_id = await resolve_store_id(db, user, data.store_id)
    products, categories = await load_scope(db, store_id, data.product_ids, data.category_ids)

    promotion = Promotion(
        **data.model_dump(exclude={"store_id", "product_ids", "category_ids"}),
        store_id=store_id,
        created_by_id=user.id,
        products=products,
        categories=categories,
    )
    check_discount(promotion)
    db.add(promotion)
    await db.flush()
    logger.info("Promotion %s created for store %s", promotion.id, store_id)

    return PromotionResponse.model_validate(promotion)


@router.get("", response_model=PaginatedResponse[PromotionResponse])
async def list_promotions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    store_id: Optional[UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    type: Optional[str] = Query(None),
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
):
    """Admins see every promotion, managers those of their stores."""
    query = await scoped_query(db, user, store_id)
    if is_active is not None:
        query = query.where(Promotion.is_active == is_active)
    if type:
        query = query.where(Promotion.type == type)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = (
        query.order_by(Promotion.start_date.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)

    return PaginatedResponse.build(
        [PromotionResponse.model_validate(p) for p in result.scalars().all()],
        total,
        page,
        page_size,
    )


@router.get("/stats", response_model=PromotionStats)
async def promotion_stats(
    store_id: Optional[UUID] = Query(None),
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> PromotionStats:
    query = await scoped_query(db, user, store_id)
    promotions = (await db.execute(query)).scalars().all()

    now = utcnow()
    stats = PromotionStats(total=len(promotions), active=0, expired=0, upcoming=0, inactive=0, by_type={})
    for promotion in promotions:
        stats.by_type[promotion.type] = stats.by_type.get(promotion.type, 0) + 1
        if not promotion.is_active:
            stats.inactive += 1
        elif as_utc(promotion.end_date) < now:
            stats.expired += 1
        elif as_utc(promotion.start_date) > now:
            stats.upcoming += 1
        else:
            stats.active += 1
    return stats


@router.get("/active/product/{product_id}", response_model=List[PromotionResponse])
async def active_promotions_for_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Running promotions that apply to a product, biggest discount first."""
    product = await db.get(Product, product_id)
    if not product or product.deleted:
        raise NotFoundException(detail="Product not found")

    promotions = [
        p for p in await running_promotions(db, product.store_id) if p.applies_to(product)
    ]
    promotions.sort(key=lambda p: p.discount_for(product.price), reverse=True)
    return [PromotionResponse.model_validate(p) for p in promotions]


@router.get("/quote/{product_id}", response_model=PriceQuote)
async def quote_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PriceQuote:
    """Unit price of a product after the best running promotion."""
    product = await db.get(Product, product_id)
    if not product or product.deleted:
        raise NotFoundException(detail="Product not found")

    price = await quote(db, product)
    return PriceQuote(
        product_id=product.id,
        original_price=float(price.original_price),
        final_price=float(price.final_price),
        discount_amount=float(price.discount),
        promotion_id=price.promotion_id,
        promotion_name=price.promotion_name,
    )


@router.get("/{promotion_id}", response_model=PromotionResponse)
async def get_promotion(
    promotion_id: UUID,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> PromotionResponse:
    return PromotionResponse.model_validate(await get_managed_promotion(db, promotion_id, user))


@router.patch("/{promotion_id}", response_model=PromotionResponse)
async def update_promotion(
    promotion_id: UUID,
    data: PromotionUpdate,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> PromotionResponse:
    promotion = await get_managed_promotion(db, promotion_id, user)
    update_data = data.model_dump(exclude_unset=True)

    product_ids = update_data.pop("product_ids", None)
    category_ids = update_data.pop("category_ids", None)
    if product_ids is not None or category_ids is not None:
        products, categories = await load_scope(
            db,
            promotion.store_id,
            product_ids if product_ids is not None else promotion.product_ids,
            category_ids if category_ids is not None else promotion.category_ids,
        )
        promotion.products = products
        promotion.categories = categories

    for field, value in update_data.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(promotion, field, value)

    check_discount(promotion)

    await db.flush()
    return PromotionResponse.model_validate(promotion)


@router.post("/{promotion_id}/toggle", response_model=PromotionResponse)
async def toggle_promotion(
    promotion_id: UUID,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> PromotionResponse:
    promotion = await get_managed_promotion(db, promotion_id, user)
    promotion.is_active = not promotion.is_active
    await db.flush()
    return PromotionResponse.model_validate(promotion)


@router.delete("/{promotion_id}", response_model=MessageResponse)
async def delete_promotion(
    promotion_id: UUID,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    promotion = await get_managed_promotion(db, promotion_id, user)
    await db.delete(promotion)
    logger.info("Promotion %s deleted by %s", promotion_id, user.id)
    return MessageResponse(message="Promotion deleted")
