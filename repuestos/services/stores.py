"""Store lookup and store-level permission checks."""

import uuid
from typing import List

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.core.exceptions import ForbiddenException, NotFoundException
from repuestos.models.store import Store, store_managers
from repuestos.models.user import User


async def get_store_or_404(db: AsyncSession, store_id: uuid.UUID) -> Store:
    store = await db.get(Store, store_id)
    if not store:
        raise NotFoundException(detail="Store not found")
    return store


async def managed_store_ids(db: AsyncSession, user: User) -> List[uuid.UUID]:
    """Stores the user owns or is listed as a manager of."""
    result = await db.execute(
        select(Store.id)
        .outerjoin(store_managers, store_managers.c.store_id == Store.id)
        .where(or_(Store.owner_id == user.id, store_managers.c.user_id == user.id))
        .distinct()
    )
    return list(result.scalars().all())


def ensure_can_manage(store: Store, user: User) -> None:
    """Admins manage every store. Store managers manage their own."""
    if user.role == "admin":
        return
    if user.role == "store_manager" and store.is_managed_by(user):
        return
    raise ForbiddenException(detail="You do not manage this store")


def ensure_owner_or_admin(store: Store, user: User) -> None:
    if user.role == "admin" or store.owner_id == user.id:
        return
    raise ForbiddenException(detail="Only the store owner can do this")


async def get_managed_store(db: AsyncSession, store_id: uuid.UUID, user: User) -> Store:
    store = await get_store_or_404(db, store_id)
    ensure_can_manage(store, user)
    return store
