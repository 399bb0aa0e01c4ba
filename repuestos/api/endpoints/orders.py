"""Order endpoints."""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import get_current_user, require_admin, require_store_staff
from repuestos.config.database import get_db
from repuestos.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from repuestos.models.base import money
from repuestos.models.order import Order
from repuestos.models.store import Store
from repuestos.models.user import User
from repuestos.schemas.common import PaginatedResponse
from repuestos.schemas.order import (
    DeliveryAssign,
    OrderCancel,
    OrderCreate,
    OrderResponse,
    OrderStats,
    OrderStatusUpdate,
    PaymentStatusUpdate,
)
from repuestos.services import orders as order_service
from repuestos.services.stores import get_managed_store, managed_store_ids

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_order_or_404(db: AsyncSession, order_id: UUID) -> Order:
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundException(detail="Order not found")
    return order


async def is_store_staff_for(db: AsyncSession, order: Order, user: User) -> bool:
    if user.role == "admin":
        return True
    if user.role != "store_manager":
        return False
    store = await db.get(Store, order.store_id)
    return store is not None and store.is_managed_by(user)


async def paginate(db: AsyncSession, query, page: int, page_size: int) -> PaginatedResponse:
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    query = query.order_by(Order.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    return PaginatedResponse.build(
        [OrderResponse.model_validate(o) for o in result.scalars().all()],
        total,
        page,
        page_size,
    )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    data: OrderCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await order_service.create_order(db, user, data)
    return OrderResponse.model_validate(order)


@router.get("/mine", response_model=PaginatedResponse[OrderResponse])
async def my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Order).where(Order.user_id == user.id)
    if status:
        query = query.where(Order.status == status)
    return await paginate(db, query, page, page_size)


@router.get("/stats", response_model=OrderStats)
async def order_stats(
    store_id: Optional[UUID] = Query(None),
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> OrderStats:
    """Order counts by status and revenue from delivered or completed orders."""
    filters = []
    if store_id:
        await get_managed_store(db, store_id, user)
        filters.append(Order.store_id == store_id)
    elif user.role != "admin":
        filters.append(Order.store_id.in_(await managed_store_ids(db, user)))

    query = select(
        Order.status, func.count(), func.coalesce(func.sum(Order.total_amount), 0)
    ).group_by(Order.status)
    if filters:
        query = query.where(*filters)
    result = await db.execute(query)

    by_status = {}
    revenue = Decimal("0")
    revenue_orders = 0
    for status, count, amount in result.all():
        by_status[status] = count
        if status in order_service.REVENUE_STATUSES:
            revenue += Decimal(str(amount))
            revenue_orders += count

    return OrderStats(
        total_orders=sum(by_status.values()),
        by_status=by_status,
        total_revenue=float(money(revenue)),
        average_order_value=float(money(revenue / revenue_orders)) if revenue_orders else 0.0,
    )


@router.get("/store/{store_id}", response_model=PaginatedResponse[OrderResponse])
async def store_orders(
    store_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
):
    await get_managed_store(db, store_id, user)
    query = select(Order).where(Order.store_id == store_id)
    if status:
        query = query.where(Order.status == status)
    return await paginate(db, query, page, page_size)


@router.get("", response_model=PaginatedResponse[OrderResponse])
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    store_id: Optional[UUID] = Query(None),
    user_id: Optional[UUID] = Query(None),
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All orders (admin only)."""
    query = select(Order)
    if status:
        query = query.where(Order.status == status)
    if store_id:
        query = query.where(Order.store_id == store_id)
    if user_id:
        query = query.where(Order.user_id == user_id)
    return await paginate(db, query, page, page_size)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await get_order_or_404(db, order_id)
    if not (
        order.user_id == user.id
        or order.assigned_delivery_id == user.id
        or await is_store_staff_for(db, order, user)
    ):
        raise ForbiddenException(detail="You cannot view this order")
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    data: OrderStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """Move an order along its workflow.

    Store staff may make any allowed transition. The assigned courier may only
    dispatch and deliver.
    """
    order = await get_order_or_404(db, order_id)

    if user.role == "delivery":
        if order.assigned_delivery_id != user.id:
            raise ForbiddenException(detail="Order is not assigned to you")
        if data.status not in order_service.COURIER_STATUSES:
            raise ForbiddenException(detail="Couriers can only dispatch and deliver orders")
    elif not await is_store_staff_for(db, order, user):
        raise ForbiddenException(detail="You cannot update this order")

    previous = order.status
    await order_service.change_status(db, order, data.status)
    if data.notes:
        order.notes = data.notes
    await db.flush()
    logger.info("Order %s moved from %s to %s by %s", order.order_number, previous, order.status, user.id)

    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    data: OrderCancel,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """Cancel an order before it leaves the store. Stock is returned."""
    order = await get_order_or_404(db, order_id)
    if order.user_id != user.id and not await is_store_staff_for(db, order, user):
        raise ForbiddenException(detail="You cannot cancel this order")

    await order_service.cancel_order(db, order, data.reason)
    await db.flush()
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/payment", response_model=OrderResponse)
async def update_payment_status(
    order_id: UUID,
    data: PaymentStatusUpdate,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await get_order_or_404(db, order_id)
    await get_managed_store(db, order.store_id, user)
    if order.status in ("cancelled", "refunded"):
        raise BadRequestException(detail=f"Cannot change payment of a {order.status} order")

    order.payment_status = data.payment_status
    await db.flush()
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/assign-delivery", response_model=OrderResponse)
async def assign_delivery(
    order_id: UUID,
    data: DeliveryAssign,
    user: User = Depends(require_store_staff),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await get_order_or_404(db, order_id)
    await get_managed_store(db, order.store_id, user)

    courier = await db.get(User, data.delivery_user_id)
    if not courier:
        raise NotFoundException(detail="Delivery user not found")

    await order_service.assign_delivery(db, order, courier)
    await db.flush()
    logger.info("Order %s assigned to courier %s", order.order_number, courier.id)
    return OrderResponse.model_validate(order)
