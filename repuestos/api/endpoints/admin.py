"""Administration endpoints."""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import require_admin
from repuestos.config.database import get_db
from repuestos.core.exceptions import BadRequestException, NotFoundException
from repuestos.models.base import money
from repuestos.models.catalog import Product
from repuestos.models.order import Order
from repuestos.models.store import Store
from repuestos.models.user import User
from repuestos.schemas.admin import DashboardStats
from repuestos.schemas.common import PaginatedResponse
from repuestos.schemas.user import AdminUserUpdate, UserResponse
from repuestos.services.activity import log_activity
from repuestos.services.orders import REVENUE_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/users", response_model=PaginatedResponse[UserResponse])
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    """List users with filters."""
    query = select(User)

    if role:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active == is_active)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.order_by(User.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return PaginatedResponse.build(
        [UserResponse.model_validate(u) for u in result.scalars().all()],
        total,
        page,
        page_size,
    )


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    data: AdminUserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> UserResponse:
    """Change a user's role or active flag."""
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundException(detail="User not found")

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    if user.id == current_user.id and (
        update_data.get("is_active") is False or update_data.get("role", "admin") != "admin"
    ):
        raise BadRequestException(detail="You cannot deactivate or demote yourself")

    for field, value in update_data.items():
        setattr(user, field, value)

    if user.role == "delivery" and user.delivery_status is None:
        user.delivery_status = "available"
    elif user.role != "delivery":
        user.delivery_status = None

    log_activity(
        db,
        user.id,
        "account_updated",
        "Account updated by an administrator",
        changed_by=current_user.id,
        **update_data,
    )
    await db.flush()
    logger.info("Admin %s updated user %s: %s", current_user.id, user.id, update_data)
    return UserResponse.model_validate(user)


@router.post("/users/{user_id}/unlock", response_model=UserResponse)
async def unlock_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
) -> UserResponse:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundException(detail="User not found")

    user.locked_until = None
    user.failed_login_count = 0
    await db.flush()
    return UserResponse.model_validate(user)


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
) -> DashboardStats:
    users_by_role = dict(
        (await db.execute(select(User.role, func.count()).group_by(User.role))).all()
    )
    total_stores = (await db.execute(select(func.count()).select_from(Store))).scalar()
    active_stores = (
        await db.execute(select(func.count()).select_from(Store).where(Store.is_active == True))
    ).scalar()
    live_products = (
        await db.execute(
            select(func.count()).select_from(Product).where(Product.deleted == False)
        )
    ).scalar()
    orders_by_status = dict(
        (await db.execute(select(Order.status, func.count()).group_by(Order.status))).all()
    )
    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(
                Order.status.in_(REVENUE_STATUSES)
            )
        )
    ).scalar()

    return DashboardStats(
        users_by_role=users_by_role,
        total_users=sum(users_by_role.values()),
        active_stores=active_stores,
        total_stores=total_stores,
        live_products=live_products,
        orders_by_status=orders_by_status,
        total_orders=sum(orders_by_status.values()),
        revenue=float(money(Decimal(str(revenue)))),
    )
