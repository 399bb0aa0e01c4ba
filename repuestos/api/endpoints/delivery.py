"""Courier endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import require_delivery
from repuestos.config.database import get_db
from repuestos.models.order import Order
from repuestos.models.user import User
from repuestos.schemas.common import PaginatedResponse
from repuestos.schemas.loyalty import DeliveryStatusUpdate
from repuestos.schemas.order import OrderResponse
from repuestos.schemas.user import UserResponse

router = APIRouter()


@router.patch("/status", response_model=UserResponse)
async def update_delivery_status(
    data: DeliveryStatusUpdate,
    user: User = Depends(require_delivery),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Set the courier's availability."""
    user.delivery_status = data.status
    await db.flush()
    return UserResponse.model_validate(user)


@router.get("/orders", response_model=PaginatedResponse[OrderResponse])
async def assigned_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    user: User = Depends(require_delivery),
    db: AsyncSession = Depends(get_db),
):
    """Orders assigned to the calling courier."""
    query = select(Order).where(Order.assigned_delivery_id == user.id)
    if status:
        query = query.where(Order.status == status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    query = (
        query.order_by(Order.estimated_delivery.asc(), Order.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)

    return PaginatedResponse.build(
        [OrderResponse.model_validate(o) for o in result.scalars().all()],
        total,
        page,
        page_size,
    )
