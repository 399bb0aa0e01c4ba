"""Authentication and two-factor endpoints."""

import logging
from datetime import timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.api.deps import get_current_user
from repuestos.config.database import get_db
from repuestos.config.settings import settings
from repuestos.core import totp
from repuestos.core.exceptions import (
    BadRequestException,
    ForbiddenException,
    LockedException,
    UnauthorizedException,
)
from repuestos.core.security import (
    create_access_token,
    create_refresh_token,
    generate_referral_code,
    get_password_hash,
    verify_password,
    verify_token,
)
from repuestos.models.base import as_utc, utcnow
from repuestos.models.registration_code import RegistrationCode
from repuestos.models.user import User
from repuestos.schemas.auth import (
    AuthResponse,
    BackupCodesResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    RegisterRequest,
    Token,
    TwoFactorCode,
    TwoFactorLoginRequest,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
    TwoFactorVerifyResponse,
)
from repuestos.schemas.common import MessageResponse
from repuestos.schemas.user import UserResponse
from repuestos.services import two_factor
from repuestos.services.activity import log_activity
from repuestos.services.loyalty import apply_referral

logger = logging.getLogger(__name__)

router = APIRouter()


async def unique_referral_code(db: AsyncSession) -> str:
    while True:
        code = generate_referral_code()
        result = await db.execute(select(User.id).where(User.referral_code == code))
        if result.scalar_one_or_none() is None:
            return code


def issue_tokens(db: AsyncSession, user: User) -> Token:
    """Finish a successful login: reset counters and mint tokens."""
    user.failed_login_count = 0
    user.locked_until = None
    user.last_login_at = utcnow()
    log_activity(db, user.id, "login", "Logged in")
    return Token(
        access_token=create_access_token(subject=str(user.id)),
        refresh_token=create_refresh_token(subject=str(user.id)),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Create an account.

    Clients register freely. Store managers, couriers and admins need a
    pending registration code issued for the same e-mail and role.
    """
    result = await db.execute(select(User).where(User.email == request.email))
    if result.scalar_one_or_none():
        raise BadRequestException(detail="A user with this email already exists")

    registration_code = None
    if request.role != "client":
        if not request.registration_code:
            raise BadRequestException(detail="A registration code is required for this role")
        result = await db.execute(
            select(RegistrationCode).where(
                RegistrationCode.code == request.registration_code.strip().upper()
            )
        )
        registration_code = result.scalar_one_or_none()
        if (
            not registration_code
            or not registration_code.is_usable
            or registration_code.email != request.email
            or registration_code.role != request.role
        ):
            raise BadRequestException(detail="Invalid or expired registration code")

    user = User(
        name=request.name,
        email=request.email,
        phone=request.phone,
        password_hash=get_password_hash(request.password),
        role=request.role,
        referral_code=await unique_referral_code(db),
        delivery_status="available" if request.role == "delivery" else None,
    )
    db.add(user)
    await db.flush()

    if registration_code:
        registration_code.status = "used"
        registration_code.used_by_id = user.id
        registration_code.used_at = utcnow()

    log_activity(db, user.id, "register", "Account created", role=user.role)

    if request.referral_code:
        await apply_referral(db, user, request.referral_code)

    tokens = issue_tokens(db, user)
    await db.flush()
    logger.info("Registered user %s with role %s", user.id, user.role)

    return AuthResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Password login. Accounts with 2FA get a temp token instead of JWTs."""
    result = await db.execute(select(User).where(User.email == request.email))
    user = result.scalar_one_or_none()

    if not user:
        raise UnauthorizedException(detail="Invalid credentials")

    now = utcnow()
    if user.locked_until and as_utc(user.locked_until) > now:
        raise LockedException(
            detail="Account temporarily locked after too many failed attempts"
        )

    if not verify_password(request.password, user.password_hash):
        user.failed_login_count += 1
        if user.failed_login_count >= settings.max_failed_logins:
            user.locked_until = now + timedelta(minutes=settings.lockout_minutes)
            user.failed_login_count = 0
            logger.warning("Locked user %s after repeated failed logins", user.id)
        await db.commit()
        raise UnauthorizedException(detail="Invalid credentials")

    if not user.is_active:
        raise ForbiddenException(detail="Account is disabled")

    if user.two_factor_enabled:
        temp_token = two_factor.create_challenge(db, user)
        user.failed_login_count = 0
        return LoginResponse(
            requires_two_factor=True,
            temp_token=temp_token,
            user=UserResponse.model_validate(user),
        )

    tokens = issue_tokens(db, user)
    return LoginResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserResponse.model_validate(user),
    )


@router.post("/2fa/verify-login", response_model=AuthResponse)
async def verify_two_factor_login(
    request: TwoFactorLoginRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Second login step: exchange a temp token and a TOTP or backup code for JWTs."""
    challenge = await two_factor.get_open_challenge(db, request.temp_token)
    if not challenge:
        raise UnauthorizedException(detail="Invalid or expired two-factor session")

    user = await db.get(User, challenge.user_id)
    if not user or not user.is_active:
        raise UnauthorizedException(detail="User not found or disabled")

    valid, used_backup = two_factor.check_code(user, request.code)
    if not valid:
        challenge.attempts += 1
        if challenge.attempts >= settings.two_factor_max_attempts:
            challenge.consumed_at = utcnow()
            logger.warning("Two-factor challenge for user %s exhausted", user.id)
        await db.commit()
        raise BadRequestException(detail="Invalid two-factor code")

    challenge.consumed_at = utcnow()
    if used_backup:
        log_activity(db, user.id, "backup_code_used", "Logged in with a backup code")
    tokens = issue_tokens(db, user)

    return AuthResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserResponse.model_validate(user),
    )


@router.post("/refresh", response_model=Token)
async def refresh_token(
    request: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Refresh access token using refresh token."""
    payload = verify_token(request.refresh_token, token_type="refresh")

    if not payload:
        raise UnauthorizedException(detail="Invalid refresh token")

    try:
        user = await db.get(User, UUID(payload.get("sub")))
    except (TypeError, ValueError):
        raise UnauthorizedException(detail="Invalid refresh token")

    if not user or not user.is_active:
        raise UnauthorizedException(detail="User not found or disabled")

    return Token(
        access_token=create_access_token(subject=str(user.id)),
        refresh_token=create_refresh_token(subject=str(user.id)),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    """Get current authenticated user information."""
    return UserResponse.model_validate(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """User logout (client should discard tokens)."""
    log_activity(db, user.id, "logout", "Logged out")
    return MessageResponse(message="Logged out successfully")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    if not verify_password(request.current_password, user.password_hash):
        raise BadRequestException(detail="Current password is incorrect")
    if verify_password(request.new_password, user.password_hash):
        raise BadRequestException(detail="New password must be different from the current one")

    user.password_hash = get_password_hash(request.new_password)
    user.password_changed_at = utcnow()
    log_activity(db, user.id, "password_changed", "Password changed")
    return MessageResponse(message="Password updated successfully")


@router.post("/2fa/setup", response_model=TwoFactorSetupResponse)
async def setup_two_factor(
    user: User = Depends(get_current_user),
) -> TwoFactorSetupResponse:
    """Generate a secret to scan into an authenticator app. Not active until enabled."""
    if user.two_factor_enabled:
        raise BadRequestException(detail="Two-factor authentication is already enabled")

    secret = totp.generate_secret()
    user.two_factor_pending_secret = secret
    return TwoFactorSetupResponse(
        secret=secret,
        otpauth_url=totp.provisioning_uri(secret, user.email),
    )


@router.post("/2fa/enable", response_model=BackupCodesResponse)
async def enable_two_factor(
    request: TwoFactorCode,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> BackupCodesResponse:
    if user.two_factor_enabled:
        raise BadRequestException(detail="Two-factor authentication is already enabled")
    if not user.two_factor_pending_secret:
        raise BadRequestException(detail="Start two-factor setup first")
    if not totp.verify_code(user.two_factor_pending_secret, request.code):
        raise BadRequestException(detail="Invalid two-factor code")

    user.two_factor_secret = user.two_factor_pending_secret
    user.two_factor_pending_secret = None
    user.two_factor_enabled = True
    codes = two_factor.issue_backup_codes(user)
    log_activity(db, user.id, "2fa_enabled", "Two-factor authentication enabled")
    logger.info("Two-factor enabled for user %s", user.id)

    return BackupCodesResponse(
        message="Two-factor authentication enabled. Store these backup codes safely.",
        backup_codes=codes,
    )


@router.post("/2fa/disable", response_model=MessageResponse)
async def disable_two_factor(
    request: TwoFactorCode,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    if not user.two_factor_enabled:
        raise BadRequestException(detail="Two-factor authentication is not enabled")

    valid, _ = two_factor.check_code(user, request.code)
    if not valid:
        raise BadRequestException(detail="Invalid two-factor code")

    two_factor.disable(user)
    log_activity(db, user.id, "2fa_disabled", "Two-factor authentication disabled")
    logger.info("Two-factor disabled for user %s", user.id)
    return MessageResponse(message="Two-factor authentication disabled")


@router.post("/2fa/verify", response_model=TwoFactorVerifyResponse)
async def verify_two_factor(
    request: TwoFactorCode,
    user: User = Depends(get_current_user),
) -> TwoFactorVerifyResponse:
    """Check a code for the logged-in user. A backup code is consumed."""
    if not user.two_factor_enabled:
        raise BadRequestException(detail="Two-factor authentication is not enabled")

    valid, used_backup = two_factor.check_code(user, request.code)
    if not valid:
        raise BadRequestException(detail="Invalid two-factor code")
    return TwoFactorVerifyResponse(valid=True, used_backup_code=used_backup)


@router.post("/2fa/backup-codes", response_model=BackupCodesResponse)
async def regenerate_backup_codes(
    request: TwoFactorCode,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> BackupCodesResponse:
    """Replace all backup codes. Requires a code from the authenticator app."""
    if not user.two_factor_enabled:
        raise BadRequestException(detail="Two-factor authentication is not enabled")

    valid, _ = two_factor.check_code(user, request.code, allow_backup=False)
    if not valid:
        raise BadRequestException(detail="Invalid two-factor code")

    codes = two_factor.issue_backup_codes(user)
    log_activity(db, user.id, "backup_codes_regenerated", "Backup codes regenerated")
    return BackupCodesResponse(message="New backup codes generated", backup_codes=codes)


@router.get("/2fa/status", response_model=TwoFactorStatusResponse)
async def two_factor_status(
    user: User = Depends(get_current_user),
) -> TwoFactorStatusResponse:
    return TwoFactorStatusResponse(
        enabled=user.two_factor_enabled,
        setup_pending=user.two_factor_pending_secret is not None,
        backup_codes_remaining=len(user.backup_codes or []),
    )
