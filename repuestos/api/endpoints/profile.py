"""Profile endpoints for the logged-in user."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import get_current_user
from repuestos.config.database import get_db
from repuestos.core.exceptions import ConflictException
from repuestos.models.user import Activity, User
from repuestos.schemas.common import PaginatedResponse
from repuestos.schemas.user import ActivityResponse, ProfileResponse, ProfileUpdate
from repuestos.services.activity import log_activity

router = APIRouter()

REQUIRED_FIELDS = (
    "name", "email", "language", "theme", "email_notifications", "push_notifications",
)


@router.get("", response_model=ProfileResponse)
async def get_profile(user: User = Depends(get_current_user)) -> ProfileResponse:
    return ProfileResponse.model_validate(user)


@router.patch("", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    update_data = data.model_dump(exclude_unset=True)

    if "email" in update_data and update_data["email"] != user.email:
        result = await db.execute(
            select(User.id).where(User.email == update_data["email"], User.id != user.id)
        )
        if result.scalar_one_or_none():
            raise ConflictException(detail="Email already in use")

    for field, value in update_data.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(user, field, value)

    if update_data:
        log_activity(
            db, user.id, "profile_updated", "Profile updated", fields=sorted(update_data)
        )
    await db.flush()
    return ProfileResponse.model_validate(user)


@router.get("/activity", response_model=PaginatedResponse[ActivityResponse])
async def get_activity(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    type: str = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Activity history, newest first."""
    query = select(Activity).where(Activity.user_id == user.id)
    if type:
        query = query.where(Activity.type == type)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = (
        query.order_by(Activity.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)

    return PaginatedResponse.build(
        [ActivityResponse.model_validate(a) for a in result.scalars().all()],
        total,
        page,
        page_size,
    )
