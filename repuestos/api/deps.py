"""API dependencies for authentication and authorization."""

import uuid
from typing import Callable, List

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.config.database import get_db
from repuestos.core.exceptions import ForbiddenException, UnauthorizedException
from repuestos.core.security import verify_token
from repuestos.models.user import User

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from JWT token."""
    if credentials is None:
        raise UnauthorizedException(detail="Not authenticated")

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedException(detail="Invalid or expired token")

    user_id = payload.get("sub")
    try:
        user_uuid = uuid.UUID(user_id)
    except (TypeError, ValueError):
        raise UnauthorizedException(detail="Invalid token payload")

    result = await db.execute(
        select(User).where(User.id == user_uuid, User.is_active == True)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise UnauthorizedException(detail="User not found or disabled")

    return user


def require_roles(allowed_roles: List[str]) -> Callable:
    """Factory for role-based access control dependency."""

    async def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed_roles:
            raise ForbiddenException(detail="Permission denied")
        return user

    return role_checker


# Predefined role checkers
require_admin = require_roles(["admin"])
require_store_staff = require_roles(["admin", "store_manager"])
require_delivery = require_roles(["delivery"])
