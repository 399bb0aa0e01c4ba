"""Category, subcategory and brand endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import require_admin
from repuestos.config.database import get_db
from repuestos.core.exceptions import ConflictException, NotFoundException
from repuestos.models.catalog import Brand, Category, Subcategory
from repuestos.models.user import User
from repuestos.schemas.catalog import (
    BrandCreate,
    BrandResponse,
    BrandUpdate,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    SubcategoryCreate,
    SubcategoryResponse,
    SubcategoryUpdate,
)
from repuestos.schemas.common import MessageResponse

router = APIRouter()

REQUIRED_FIELDS = ("name", "sort_order", "is_active")


def apply_update(obj, update_data: dict) -> None:
    # Explicit nulls on required columns leave the stored value alone
    for field, value in update_data.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(obj, field, value)


async def _name_taken(db: AsyncSession, model, name: str, exclude_id: UUID = None, **scope) -> bool:
    query = select(model.id).where(func.lower(model.name) == name.lower())
    for column, value in scope.items():
        query = query.where(getattr(model, column) == value)
    if exclude_id:
        query = query.where(model.id != exclude_id)
    return (await db.execute(query)).scalar_one_or_none() is not None


async def _get_or_404(db: AsyncSession, model, object_id: UUID, label: str):
    obj = await db.get(model, object_id)
    if not obj:
        raise NotFoundException(detail=f"{label} not found")
    return obj


# Categories

@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    query = select(Category).order_by(Category.sort_order, Category.name)
    if not include_inactive:
        query = query.where(Category.is_active == True)
    result = await db.execute(query)
    return [CategoryResponse.model_validate(c) for c in result.scalars().all()]


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def create_category(
    data: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    if await _name_taken(db, Category, data.name):
        raise ConflictException(detail="Category already exists")

    category = Category(**data.model_dump())
    db.add(category)
    await db.flush()
    return CategoryResponse.model_validate(category)


@router.get("/categories/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: UUID, db: AsyncSession = Depends(get_db)):
    return CategoryResponse.model_validate(
        await _get_or_404(db, Category, category_id, "Category")
    )


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    category = await _get_or_404(db, Category, category_id, "Category")
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("name") and await _name_taken(
        db, Category, update_data["name"], exclude_id=category.id
    ):
        raise ConflictException(detail="Category already exists")

    apply_update(category, update_data)
    await db.flush()
    return CategoryResponse.model_validate(category)


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def deactivate_category(
    category_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    category = await _get_or_404(db, Category, category_id, "Category")
    category.is_active = False
    return MessageResponse(message="Category deactivated")


# Subcategories

@router.get("/categories/{category_id}/subcategories", response_model=List[SubcategoryResponse])
async def list_category_subcategories(
    category_id: UUID,
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    await _get_or_404(db, Category, category_id, "Category")
    query = (
        select(Subcategory)
        .where(Subcategory.category_id == category_id)
        .order_by(Subcategory.sort_order, Subcategory.name)
    )
    if not include_inactive:
        query = query.where(Subcategory.is_active == True)
    result = await db.execute(query)
    return [SubcategoryResponse.model_validate(s) for s in result.scalars().all()]


@router.post(
    "/categories/{category_id}/subcategories",
    response_model=SubcategoryResponse,
    status_code=201,
)
async def create_subcategory(
    category_id: UUID,
    data: SubcategoryCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    await _get_or_404(db, Category, category_id, "Category")
    if await _name_taken(db, Subcategory, data.name, category_id=category_id):
        raise ConflictException(detail="Subcategory already exists in this category")

    subcategory = Subcategory(category_id=category_id, **data.model_dump())
    db.add(subcategory)
    await db.flush()
    return SubcategoryResponse.model_validate(subcategory)


@router.get("/subcategories", response_model=List[SubcategoryResponse])
async def list_subcategories(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    query = select(Subcategory).order_by(Subcategory.sort_order, Subcategory.name)
    if not include_inactive:
        query = query.where(Subcategory.is_active == True)
    result = await db.execute(query)
    return [SubcategoryResponse.model_validate(s) for s in result.scalars().all()]


@router.patch("/subcategories/{subcategory_id}", response_model=SubcategoryResponse)
async def update_subcategory(
    subcategory_id: UUID,
    data: SubcategoryUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    subcategory = await _get_or_404(db, Subcategory, subcategory_id, "Subcategory")
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("name") and await _name_taken(
        db,
        Subcategory,
        update_data["name"],
        exclude_id=subcategory.id,
        category_id=subcategory.category_id,
    ):
        raise ConflictException(detail="Subcategory already exists in this category")

    apply_update(subcategory, update_data)
    await db.flush()
    return SubcategoryResponse.model_validate(subcategory)


@router.delete("/subcategories/{subcategory_id}", response_model=MessageResponse)
async def deactivate_subcategory(
    subcategory_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    subcategory = await _get_or_404(db, Subcategory, subcategory_id, "Subcategory")
    subcategory.is_active = False
    return MessageResponse(message="Subcategory deactivated")


# Brands

@router.get("/brands", response_model=List[BrandResponse])
async def list_brands(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    query = select(Brand).order_by(Brand.sort_order, Brand.name)
    if not include_inactive:
        query = query.where(Brand.is_active == True)
    result = await db.execute(query)
    return [BrandResponse.model_validate(b) for b in result.scalars().all()]


@router.post("/brands", response_model=BrandResponse, status_code=201)
async def create_brand(
    data: BrandCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    if await _name_taken(db, Brand, data.name):
        raise ConflictException(detail="Brand already exists")

    brand = Brand(**data.model_dump())
    db.add(brand)
    await db.flush()
    return BrandResponse.model_validate(brand)


@router.patch("/brands/{brand_id}", response_model=BrandResponse)
async def update_brand(
    brand_id: UUID,
    data: BrandUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    brand = await _get_or_404(db, Brand, brand_id, "Brand")
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("name") and await _name_taken(
        db, Brand, update_data["name"], exclude_id=brand.id
    ):
        raise ConflictException(detail="Brand already exists")

    apply_update(brand, update_data)
    await db.flush()
    return BrandResponse.model_validate(brand)


@router.delete("/brands/{brand_id}", response_model=MessageResponse)
async def deactivate_brand(
    brand_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    brand = await _get_or_404(db, Brand, brand_id, "Brand")
    brand.is_active = False
    return MessageResponse(message="Brand deactivated")
