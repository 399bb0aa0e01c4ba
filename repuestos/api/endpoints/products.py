"""Product catalog endpoints."""

import logging
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import require_store_staff
from repuestos.config.database import get_db
from repuestos.core.exceptions import BadRequestException, ConflictException, NotFoundException
from repuestos.models.catalog import Brand, Category, Product, Subcategory
from repuestos.models.store import Store
from repuestos.models.user import User
from repuestos.schemas.common import MessageResponse, PaginatedResponse
from repuestos.schemas.product import (
    ProductCreate,
    ProductDetailResponse,
    ProductResponse,
    ProductUpdate,
)
from repuestos.services.pricing import quote
from repuestos.services.stores import get_managed_store, managed_store_ids

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("name", "sku", "price", "stock", "is_active")

SORTS = {
    "newest": Product.created_at.desc(),
    "price_asc": Product.price.asc(),
    "price_desc": Product.price.desc(),
    "name": Product.name.asc(),
}


async def get_product_or_404(db: AsyncSession, product_id: UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise NotFoundException(detail="Product not found")
    return product


async def ensure_unique_sku(
    db: AsyncSession, store_id: UUID, sku: str, exclude_id: UUID = None
) -> None:
    """SKUs are unique per store, soft-deleted products included."""
    query = select(Product.id, Product.deleted).where(
        Product.store_id == store_id, Product.sku == sku
    )
    if exclude_id:
        query = query.where(Product.id != exclude_id)
    row = (await db.execute(query)).first()
    if row:
        detail = "SKU already exists in this store"
        if row.deleted:
            detail += " (held by a deleted product, restore it instead)"
        raise ConflictException(detail=detail)


async def validate_taxonomy(db: AsyncSession, values: dict) -> None:
    """Check referenced taxonomy rows exist and the subcategory sits under the category."""
    category_id = values.get("category_id")
    subcategory_id = values.get("subcategory_id")
    brand_id = values.get("brand_id")

    if category_id and not await db.get(Category, category_id):
        raise BadRequestException(detail="Category not found")
    if brand_id and not await db.get(Brand, brand_id):
        raise BadRequestException(detail="Brand not found")
    if subcategory_id:
        subcategory = await db.get(Subcategory, subcategory_id)
        if not subcategory:
            raise BadRequestException(detail="Subcategory not found")
        if category_id is None:
            values["category_id"] = subcategory.category_id
        elif subcategory.category_id != category_id:
            raise BadRequestException(detail="Subcategory does not belong to the category")


async def detail_response(db: AsyncSession, product: Product) -> ProductDetailResponse:
    price = await quote(db, product)
    return ProductDetailResponse(
        **ProductResponse.model_validate(product).model_dump(),
        final_price=float(price.final_price),
        discount_amount=float(price.discount),
        promotion_id=price.promotion_id,
        promotion_name=price.promotion_name,
    )


@router.get("", response_model=PaginatedResponse[ProductResponse])
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    store_id: Optional[UUID] = Query(None),
    category_id: Optional[UUID] = Query(None),
    subcategory_id: Optional[UUID] = Query(None),
    brand_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, min_length=1),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    in_stock: bool = Query(False),
    sort: Literal["newest", "price_asc", "price_desc", "name"] = Query("newest"),
    db: AsyncSession = Depends(get_db),
):
    """Browse live products of active stores."""
    query = (
        select(Product)
        .join(Store, Store.id == Product.store_id)
        .where(
            Product.deleted == False,
            Product.is_active == True,
            Store.is_active == True,
        )
    )

    if store_id:
        query = query.where(Product.store_id == store_id)
    if category_id:
        query = query.where(Product.category_id == category_id)
    if subcategory_id:
        query = query.where(Product.subcategory_id == subcategory_id)
    if brand_id:
        query = query.where(Product.brand_id == brand_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Product.name.ilike(pattern),
                Product.description.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.part_number.ilike(pattern),
            )
        )
    if min_price is not None:
        query = query.where(Product.price >= min_price)
    if max_price is not None:
        query = query.where(Product.price <= max_price)
    if in_stock:
        query = query.where(Product.stock > 0)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.order_by(SORTS[sort], Product.id).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return PaginatedResponse.build(
        [ProductResponse.model_validate(p) for p in result.scalars().all()],
        total,
        page,
        page_size,
    )


@router.get("/deleted", response_model=PaginatedResponse[ProductResponse])
async def list_deleted_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    store_id: Optional[UUID] = Query(None),
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
):
    """Soft-deleted products of the stores the caller manages."""
    query = select(Product).where(Product.deleted == True)

    if store_id:
        await get_managed_store(db, store_id, user)
        query = query.where(Product.store_id == store_id)
    elif user.role != "admin":
        query = query.where(Product.store_id.in_(await managed_store_ids(db, user)))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = (
        query.order_by(Product.deleted_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)

    return PaginatedResponse.build(
        [ProductResponse.model_validate(p) for p in result.scalars().all()],
        total,
        page,
        page_size,
    )


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ProductDetailResponse:
    """Product with its promotional price."""
    product = await get_product_or_404(db, product_id)
    if product.deleted:
        raise NotFoundException(detail="Product not found")
    return await detail_response(db, product)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    data: ProductCreate,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> ProductResponse:
    await get_managed_store(db, data.store_id, user)
    await ensure_unique_sku(db, data.store_id, data.sku)

    values = data.model_dump()
    await validate_taxonomy(db, values)

    product = Product(**values)
    db.add(product)
    await db.flush()
    logger.info("Product %s (%s) created in store %s", product.id, product.sku, product.store_id)

    return ProductResponse.model_validate(product)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> ProductResponse:
    product = await get_product_or_404(db, product_id)
    if product.deleted:
        raise NotFoundException(detail="Product not found")
    await get_managed_store(db, product.store_id, user)

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("sku") and update_data["sku"] != product.sku:
        await ensure_unique_sku(db, product.store_id, update_data["sku"], exclude_id=product.id)

    if {"category_id", "subcategory_id", "brand_id"} & update_data.keys():
        merged = {
            "category_id": product.category_id,
            "subcategory_id": product.subcategory_id,
            "brand_id": product.brand_id,
        }
        merged.update(
            {k: v for k, v in update_data.items() if k in merged}
        )
        if "category_id" in update_data and "subcategory_id" not in update_data:
            # A new category drops a subcategory from the old one
            merged["subcategory_id"] = None
        await validate_taxonomy(db, merged)
        update_data.update(merged)

    for field, value in update_data.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(product, field, value)

    await db.flush()
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: UUID,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Soft delete: the product disappears from the catalog but keeps its SKU."""
    product = await get_product_or_404(db, product_id)
    await get_managed_store(db, product.store_id, user)
    if product.deleted:
        raise BadRequestException(detail="Product is already deleted")

    product.soft_delete()
    logger.info("Product %s soft-deleted by %s", product.id, user.id)
    return MessageResponse(message="Product deleted")


@router.post("/{product_id}/restore", response_model=ProductResponse)
async def restore_product(
    product_id: UUID,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> ProductResponse:
    product = await get_product_or_404(db, product_id)
    await get_managed_store(db, product.store_id, user)
    if not product.deleted:
        raise BadRequestException(detail="Product is not deleted")

    product.restore()
    await db.flush()
    return ProductResponse.model_validate(product)
