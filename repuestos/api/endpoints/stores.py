"""Store endpoints."""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import get_current_user, require_store_staff
from repuestos.config.database import get_db
from repuestos.core.exceptions import BadRequestException, ConflictException, NotFoundException
from repuestos.models.store import Store
from repuestos.models.user import User
from repuestos.schemas.common import MessageResponse, PaginatedResponse
from repuestos.schemas.store import (
    ManagerAssign,
    NearbyStoreResponse,
    StoreCreate,
    StoreResponse,
    StoreUpdate,
)
from repuestos.services.geo import haversine_km
from repuestos.services.stores import (
    ensure_can_manage,
    ensure_owner_or_admin,
    get_store_or_404,
    managed_store_ids,
)

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = (
    "name", "address", "city", "state", "zip_code", "country", "phone", "email", "is_active",
)


async def ensure_unique_email(db: AsyncSession, email: str, exclude_id: UUID = None) -> None:
    query = select(Store.id).where(Store.email == email)
    if exclude_id:
        query = query.where(Store.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none():
        raise ConflictException(detail="A store with this email already exists")


@router.get("", response_model=PaginatedResponse[StoreResponse])
async def list_stores(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: str = Query(None),
    city: str = Query(None),
    state: str = Query(None),
    is_active: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """List stores with filters and pagination."""
    query = select(Store).where(Store.is_active == is_active)

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Store.name.ilike(pattern),
                Store.description.ilike(pattern),
                Store.city.ilike(pattern),
            )
        )
    if city:
        query = query.where(Store.city.ilike(city))
    if state:
        query = query.where(Store.state.ilike(state))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.order_by(Store.name).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return PaginatedResponse.build(
        [StoreResponse.model_validate(s) for s in result.scalars().all()],
        total,
        page,
        page_size,
    )


@router.get("/nearby", response_model=List[NearbyStoreResponse])
async def nearby_stores(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10, gt=0, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Active stores within ``radius_km`` of a point, closest first."""
    result = await db.execute(
        select(Store).where(
            Store.is_active == True,
            Store.latitude.is_not(None),
            Store.longitude.is_not(None),
        )
    )

    nearby = []
    for store in result.scalars().all():
        distance = haversine_km(lat, lng, store.latitude, store.longitude)
        if distance <= radius_km:
            nearby.append((distance, store))
    nearby.sort(key=lambda pair: pair[0])

    return [
        NearbyStoreResponse(
            **StoreResponse.model_validate(store).model_dump(),
            distance_km=round(distance, 2),
        )
        for distance, store in nearby
    ]


@router.get("/mine", response_model=List[StoreResponse])
async def my_stores(
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
):
    """Stores the caller owns or manages."""
    store_ids = await managed_store_ids(db, user)
    if not store_ids:
        return []
    result = await db.execute(
        select(Store).where(Store.id.in_(store_ids)).order_by(Store.name)
    )
    return [StoreResponse.model_validate(s) for s in result.scalars().all()]


@router.get("/{store_id}", response_model=StoreResponse)
async def get_store(
    store_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StoreResponse:
    store = await get_store_or_404(db, store_id)
    return StoreResponse.model_validate(store)


@router.post("", response_model=StoreResponse, status_code=201)
async def create_store(
    data: StoreCreate,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> StoreResponse:
    """Create a store. The creator becomes its owner and first manager."""
    await ensure_unique_email(db, data.email)

    store = Store(**data.model_dump(), owner_id=user.id, managers=[user])
    db.add(store)
    await db.flush()
    logger.info("Store %s created by %s", store.id, user.id)

    return StoreResponse.model_validate(store)


@router.patch("/{store_id}", response_model=StoreResponse)
async def update_store(
    store_id: UUID,
    data: StoreUpdate,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> StoreResponse:
    """Managers edit store details. Only the owner or an admin may (de)activate it."""
    store = await get_store_or_404(db, store_id)
    ensure_can_manage(store, user)

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("is_active") is not None:
        ensure_owner_or_admin(store, user)
    if update_data.get("email") and update_data["email"] != store.email:
        await ensure_unique_email(db, update_data["email"], exclude_id=store.id)

    for field, value in update_data.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(store, field, value)

    await db.flush()
    return StoreResponse.model_validate(store)


@router.delete("/{store_id}", response_model=MessageResponse)
async def deactivate_store(
    store_id: UUID,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Deactivate a store. Its products stop being sold."""
    store = await get_store_or_404(db, store_id)
    ensure_owner_or_admin(store, user)

    store.is_active = False
    logger.info("Store %s deactivated by %s", store.id, user.id)
    return MessageResponse(message="Store deactivated")


@router.post("/{store_id}/managers", response_model=StoreResponse)
async def add_manager(
    store_id: UUID,
    data: ManagerAssign,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> StoreResponse:
    store = await get_store_or_404(db, store_id)
    ensure_owner_or_admin(store, user)

    manager = await db.get(User, data.user_id)
    if not manager:
        raise NotFoundException(detail="User not found")
    if manager.role != "store_manager" or not manager.is_active:
        raise BadRequestException(detail="User must be an active store manager")
    if manager.id in store.manager_ids:
        raise ConflictException(detail="User already manages this store")

    store.managers.append(manager)
    await db.flush()
    return StoreResponse.model_validate(store)


@router.delete("/{store_id}/managers/{user_id}", response_model=StoreResponse)
async def remove_manager(
    store_id: UUID,
    user_id: UUID,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> StoreResponse:
    store = await get_store_or_404(db, store_id)
    ensure_owner_or_admin(store, user)

    if user_id == store.owner_id:
        raise BadRequestException(detail="The store owner cannot be removed")

    manager = next((m for m in store.managers if m.id == user_id), None)
    if manager is None:
        raise NotFoundException(detail="User does not manage this store")

    store.managers.remove(manager)
    await db.flush()
    return StoreResponse.model_validate(store)
