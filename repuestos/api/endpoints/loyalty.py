"""Loyalty points, reviews and rewards endpoints."""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import get_current_user, require_admin
from repuestos.config.database import get_db
from repuestos.core.exceptions import BadRequestException, NotFoundException
from repuestos.models.base import as_utc
from repuestos.models.loyalty import Review, Reward, RewardRedemption
from repuestos.models.user import Activity, User
from repuestos.schemas.common import PaginatedResponse
from repuestos.schemas.loyalty import (
    LoyaltyStats,
    RedemptionResponse,
    RedemptionStatusUpdate,
    ReviewCreate,
    ReviewResponse,
    RewardCreate,
    RewardResponse,
    RewardUpdate,
)
from repuestos.schemas.user import ActivityResponse
from repuestos.services import loyalty as loyalty_service
from repuestos.services.activity import POINTS_ACTIVITY_TYPES

logger = logging.getLogger(__name__)

router = APIRouter()

REWARD_REQUIRED_FIELDS = ("name", "points_required", "stock", "is_active")


async def count_for(db: AsyncSession, model, user: User) -> int:
    result = await db.execute(
        select(func.count()).select_from(model).where(model.user_id == user.id)
    )
    return result.scalar()


async def paginate(db: AsyncSession, query, model, schema, page: int, page_size: int):
    """Newest first."""
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    query = query.order_by(model.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    return PaginatedResponse.build(
        [schema.model_validate(row) for row in result.scalars().all()],
        total,
        page,
        page_size,
    )


@router.get("/stats", response_model=LoyaltyStats)
async def loyalty_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> LoyaltyStats:
    return LoyaltyStats(
        points=user.points,
        loyalty_level=user.loyalty_level,
        referral_code=user.referral_code,
        total_purchases=user.total_purchases,
        total_spent=float(user.total_spent or 0),
        redemptions=await count_for(db, RewardRedemption, user),
        reviews=await count_for(db, Review, user),
        next_level=loyalty_service.next_level(user.loyalty_level),
    )


@router.get("/history", response_model=PaginatedResponse[ActivityResponse])
async def points_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Points earned and spent, newest first."""
    query = select(Activity).where(
        Activity.user_id == user.id,
        Activity.type.in_(POINTS_ACTIVITY_TYPES),
    )
    return await paginate(db, query, Activity, ActivityResponse, page, page_size)


@router.get("/rewards", response_model=List[RewardResponse])
async def list_rewards(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Rewards that can be claimed now, cheapest first."""
    result = await db.execute(
        select(Reward)
        .where(Reward.is_active == True, Reward.stock > 0)
        .order_by(Reward.points_required)
    )

    rewards = []
    for reward in result.scalars().all():
        if not reward.is_available():
            continue
        response = RewardResponse.model_validate(reward)
        response.can_afford = user.points >= reward.points_required
        rewards.append(response)
    return rewards


@router.post("/rewards", response_model=RewardResponse, status_code=201)
async def create_reward(
    data: RewardCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
) -> RewardResponse:
    reward = Reward(**data.model_dump())
    db.add(reward)
    await db.flush()
    return RewardResponse.model_validate(reward)


@router.post("/rewards/{reward_id}/redeem", response_model=RedemptionResponse)
async def redeem(
    reward_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> RedemptionResponse:
    result = await db.execute(select(Reward).where(Reward.id == reward_id).with_for_update())
    reward = result.scalar_one_or_none()
    if not reward:
        raise NotFoundException(detail="Reward not found")

    redemption = await loyalty_service.redeem_reward(db, user, reward)
    response = RedemptionResponse.model_validate(redemption)
    response.remaining_points = user.points
    return response


@router.patch("/rewards/{reward_id}", response_model=RewardResponse)
async def update_reward(
    reward_id: UUID,
    data: RewardUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
) -> RewardResponse:
    reward = await db.get(Reward, reward_id)
    if not reward:
        raise NotFoundException(detail="Reward not found")

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field in REWARD_REQUIRED_FIELDS:
            continue
        setattr(reward, field, value)

    if (
        reward.start_date
        and reward.end_date
        and as_utc(reward.end_date) <= as_utc(reward.start_date)
    ):
        raise BadRequestException(detail="end_date must be after start_date")

    await db.flush()
    return RewardResponse.model_validate(reward)


@router.get("/redemptions", response_model=PaginatedResponse[RedemptionResponse])
async def my_redemptions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's redemptions, newest first."""
    query = select(RewardRedemption).where(RewardRedemption.user_id == user.id)
    return await paginate(db, query, RewardRedemption, RedemptionResponse, page, page_size)


@router.post("/reviews", response_model=ReviewResponse, status_code=201)
async def submit_review(
    data: ReviewCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ReviewResponse:
    """Rate a product, the service, a delivery or the app and earn points."""
    review = await loyalty_service.submit_review(db, user, data)
    return ReviewResponse.model_validate(review)


@router.get("/reviews", response_model=PaginatedResponse[ReviewResponse])
async def my_reviews(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Review).where(Review.user_id == user.id)
    return await paginate(db, query, Review, ReviewResponse, page, page_size)


# Admin

@router.get("/admin/redemptions", response_model=PaginatedResponse[RedemptionResponse])
async def list_redemptions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    user_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    query = select(RewardRedemption)
    if status:
        query = query.where(RewardRedemption.status == status)
    if user_id:
        query = query.where(RewardRedemption.user_id == user_id)
    return await paginate(db, query, RewardRedemption, RedemptionResponse, page, page_size)


@router.patch("/admin/redemptions/{redemption_id}", response_model=RedemptionResponse)
async def update_redemption(
    redemption_id: UUID,
    data: RedemptionStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> RedemptionResponse:
    result = await db.execute(
        select(RewardRedemption).where(RewardRedemption.id == redemption_id).with_for_update()
    )
    redemption = result.scalar_one_or_none()
    if not redemption:
        raise NotFoundException(detail="Redemption not found")

    await loyalty_service.update_redemption_status(db, redemption, data.status, data.notes)
    logger.info("Admin %s set redemption %s to %s", admin.id, redemption.id, data.status)
    return RedemptionResponse.model_validate(redemption)
