"""Registration code management endpoints."""

import logging
from datetime import timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import require_admin
from repuestos.config.database import get_db
from repuestos.config.settings import settings
from repuestos.core.exceptions import BadRequestException, ConflictException, NotFoundException
from repuestos.core.security import generate_registration_code
from repuestos.models.base import utcnow
from repuestos.models.registration_code import RegistrationCode
from repuestos.models.user import User
from repuestos.schemas.common import MessageResponse, PaginatedResponse
from repuestos.schemas.registration_code import (
    ExpireCodesResponse,
    RegistrationCodeCreate,
    RegistrationCodeResponse,
    RegistrationCodeVerifyResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=RegistrationCodeResponse, status_code=201)
async def create_registration_code(
    request: RegistrationCodeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> RegistrationCodeResponse:
    """Create a registration code for an e-mail and role (admin only)."""
    now = utcnow()
    result = await db.execute(
        select(RegistrationCode).where(
            RegistrationCode.email == request.email,
            RegistrationCode.status == "pending",
            RegistrationCode.expires_at > now,
        )
    )
    if result.scalars().first():
        raise ConflictException(detail="A pending registration code already exists for this email")

    result = await db.execute(select(User.id).where(User.email == request.email))
    if result.scalar_one_or_none():
        raise ConflictException(detail="A user with this email already exists")

    while True:
        code = generate_registration_code()
        result = await db.execute(
            select(RegistrationCode.id).where(RegistrationCode.code == code)
        )
        if result.scalar_one_or_none() is None:
            break

    days = request.expires_in_days or settings.registration_code_expire_days
    registration_code = RegistrationCode(
        code=code,
        email=request.email,
        role=request.role,
        expires_at=now + timedelta(days=days),
        created_by_id=current_user.id,
    )
    db.add(registration_code)
    await db.flush()
    logger.info("Registration code for role %s issued by %s", request.role, current_user.id)

    return RegistrationCodeResponse.model_validate(registration_code)


@router.get("", response_model=PaginatedResponse[RegistrationCodeResponse])
async def list_registration_codes(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: str = Query(None),
    role: str = Query(None),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    """List registration codes with pagination."""
    query = select(RegistrationCode)

    if status:
        query = query.where(RegistrationCode.status == status)
    if role:
        query = query.where(RegistrationCode.role == role)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    query = (
        query.order_by(RegistrationCode.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)
    codes = result.scalars().all()

    return PaginatedResponse.build(
        [RegistrationCodeResponse.model_validate(c) for c in codes], total, page, page_size
    )


@router.get("/verify/{code}", response_model=RegistrationCodeVerifyResponse)
async def verify_registration_code(
    code: str,
    db: AsyncSession = Depends(get_db),
) -> RegistrationCodeVerifyResponse:
    """Public check of a code before registering."""
    result = await db.execute(
        select(RegistrationCode).where(RegistrationCode.code == code.strip().upper())
    )
    registration_code = result.scalar_one_or_none()

    if not registration_code or not registration_code.is_usable:
        raise NotFoundException(detail="Registration code not found or no longer valid")

    return RegistrationCodeVerifyResponse(
        email=registration_code.email,
        role=registration_code.role,
        expires_at=registration_code.expires_at,
    )


@router.post("/expire", response_model=ExpireCodesResponse)
async def expire_registration_codes(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
) -> ExpireCodesResponse:
    """Mark pending codes past their expiry as expired."""
    result = await db.execute(
        update(RegistrationCode)
        .where(
            RegistrationCode.status == "pending",
            RegistrationCode.expires_at <= utcnow(),
        )
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )
    return ExpireCodesResponse(expired=result.rowcount or 0)


@router.get("/{code_id}", response_model=RegistrationCodeResponse)
async def get_registration_code(
    code_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
) -> RegistrationCodeResponse:
    registration_code = await db.get(RegistrationCode, code_id)
    if not registration_code:
        raise NotFoundException(detail="Registration code not found")
    return RegistrationCodeResponse.model_validate(registration_code)


@router.delete("/{code_id}", response_model=MessageResponse)
async def revoke_registration_code(
    code_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
) -> MessageResponse:
    """Revoke a pending code. Used or expired codes stay as they are."""
    registration_code = await db.get(RegistrationCode, code_id)
    if not registration_code:
        raise NotFoundException(detail="Registration code not found")
    if registration_code.status != "pending":
        raise BadRequestException(detail=f"Cannot revoke a {registration_code.status} code")

    registration_code.status = "revoked"
    return MessageResponse(message="Registration code revoked")
