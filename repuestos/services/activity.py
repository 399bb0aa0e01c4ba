"""Per-user activity trail."""

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.models.user import Activity

POINTS_ACTIVITY_TYPES = (
    "points_earned",
    "referral_bonus",
    "review_points",
    "reward_redeemed",
    "redemption_refund",
)


def log_activity(
    db: AsyncSession,
    user_id: uuid.UUID,
    activity_type: str,
    description: str,
    **details: Any,
) -> Activity:
    """Add an activity row to the current transaction."""
    activity = Activity(
        user_id=user_id,
        type=activity_type,
        description=description,
        details={k: str(v) if isinstance(v, uuid.UUID) else v for k, v in details.items()},
    )
    db.add(activity)
    return activity
