"""Loyalty points, levels, referrals, reviews and reward redemption."""

import logging
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.config.settings import settings
from repuestos.core.exceptions import BadRequestException, ConflictException, NotFoundException
from repuestos.models.base import money
from repuestos.models.catalog import Product
from repuestos.models.loyalty import (
    REDEMPTION_TRANSITIONS,
    REVIEW_CATEGORIES,
    Review,
    Reward,
    RewardRedemption,
)
from repuestos.models.order import Order
from repuestos.models.user import User
from repuestos.schemas.loyalty import ReviewCreate
from repuestos.services.activity import log_activity

logger = logging.getLogger(__name__)

# (level, min points, min spent), highest first
LEVEL_THRESHOLDS: Tuple[Tuple[str, int, Decimal], ...] = (
    ("platinum", 10000, Decimal("1000")),
    ("gold", 5000, Decimal("500")),
    ("silver", 2000, Decimal("200")),
)


def calculate_level(points: int, total_spent) -> str:
    """Both thresholds of a level must be met to reach it."""
    spent = Decimal(str(total_spent or 0))
    for level, min_points, min_spent in LEVEL_THRESHOLDS:
        if points >= min_points and spent >= min_spent:
            return level
    return "bronze"


def next_level(current: str) -> Optional[str]:
    order = ["bronze", "silver", "gold", "platinum"]
    index = order.index(current)
    return order[index + 1] if index + 1 < len(order) else None


def add_points(
    db: AsyncSession,
    user: User,
    points: int,
    activity_type: str,
    description: str,
    **details,
) -> None:
    user.points += points
    user.loyalty_level = calculate_level(user.points, user.total_spent)
    log_activity(db, user.id, activity_type, description, points=points, **details)


async def apply_referral(db: AsyncSession, new_user: User, referral_code: str) -> bool:
    """Credit both sides of a referral. Unknown codes are ignored."""
    result = await db.execute(
        select(User).where(
            User.referral_code == referral_code.strip().upper(),
            User.is_active == True,
        )
    )
    referrer = result.scalar_one_or_none()
    if not referrer or referrer.id == new_user.id:
        return False

    new_user.referred_by_id = referrer.id
    add_points(
        db,
        referrer,
        settings.referral_bonus_referrer,
        "referral_bonus",
        f"Referral bonus for inviting {new_user.name}",
        referred_user_id=new_user.id,
    )
    add_points(
        db,
        new_user,
        settings.referral_bonus_referred,
        "referral_bonus",
        "Welcome bonus for joining with a referral code",
        referrer_id=referrer.id,
    )
    return True


async def award_order_points(db: AsyncSession, order: Order) -> int:
    """Credit the buyer once per order: one point per whole currency unit."""
    if order.points_awarded:
        return 0

    buyer = await db.get(User, order.user_id)
    if buyer is None:
        return 0

    points = int(Decimal(order.total_amount))
    buyer.total_purchases += 1
    buyer.total_spent = money(Decimal(buyer.total_spent or 0) + Decimal(order.total_amount))
    add_points(
        db,
        buyer,
        points,
        "points_earned",
        f"Points earned for order {order.order_number}",
        order_id=order.id,
    )
    order.points_awarded = True
    logger.info("Awarded %s points to user %s for order %s", points, buyer.id, order.order_number)
    return points


async def redeem_reward(db: AsyncSession, user: User, reward: Reward) -> RewardRedemption:
    if not reward.is_available():
        raise BadRequestException(detail="Reward is not available")
    if user.points < reward.points_required:
        raise BadRequestException(detail="Insufficient points")

    user.points -= reward.points_required
    user.loyalty_level = calculate_level(user.points, user.total_spent)
    reward.stock -= 1

    redemption = RewardRedemption(
        user_id=user.id,
        reward_id=reward.id,
        points_spent=reward.points_required,
    )
    db.add(redemption)
    log_activity(
        db,
        user.id,
        "reward_redeemed",
        f"Redeemed reward {reward.name}",
        points=-reward.points_required,
        reward_id=reward.id,
    )
    await db.flush()
    return redemption


def calculate_review_points(rating: int, category: str) -> int:
    return REVIEW_CATEGORIES.get(category, REVIEW_CATEGORIES["product"]) * rating


async def submit_review(db: AsyncSession, user: User, data: ReviewCreate) -> Review:
    """Store a review and credit its points.

    A review tied to one of the caller's delivered or completed orders is
    verified. Each order takes one review per category.
    """
    if data.product_id:
        product = await db.get(Product, data.product_id)
        if not product or product.deleted:
            raise NotFoundException(detail="Product not found")

    is_verified = False
    if data.order_id:
        order = await db.get(Order, data.order_id)
        if not order or order.user_id != user.id:
            raise NotFoundException(detail="Order not found")
        result = await db.execute(
            select(Review.id).where(
                Review.user_id == user.id,
                Review.order_id == order.id,
                Review.category == data.category,
            )
        )
        if result.scalar_one_or_none():
            raise ConflictException(detail="This order already has a review in this category")
        is_verified = order.status in ("delivered", "completed")

    points = calculate_review_points(data.rating, data.category)
    review = Review(
        user_id=user.id,
        **data.model_dump(),
        points_earned=points,
        is_verified=is_verified,
    )
    db.add(review)
    await db.flush()

    add_points(
        db,
        user,
        points,
        "review_points",
        f"Points earned for a {data.category} review",
        review_id=review.id,
        rating=data.rating,
    )
    return review


async def update_redemption_status(
    db: AsyncSession, redemption: RewardRedemption, status: str, notes: Optional[str] = None
) -> RewardRedemption:
    """Move a redemption forward. Cancelling refunds the points and the stock."""
    if status not in REDEMPTION_TRANSITIONS[redemption.status]:
        raise BadRequestException(
            detail=f"Cannot change redemption status from {redemption.status} to {status}"
        )

    if status == "cancelled":
        user = await db.get(User, redemption.user_id)
        reward = await db.get(Reward, redemption.reward_id)
        if reward is not None:
            reward.stock += 1
        if user is not None:
            add_points(
                db,
                user,
                redemption.points_spent,
                "redemption_refund",
                "Points refunded for a cancelled redemption",
                redemption_id=redemption.id,
            )

    redemption.status = status
    if notes is not None:
        redemption.notes = notes
    await db.flush()
    logger.info("Redemption %s moved to %s", redemption.id, status)
    return redemption
