"""Second-factor checks shared by login and account settings."""

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.config.settings import settings
from repuestos.core import totp
from repuestos.core.security import (
    generate_backup_codes,
    generate_temp_token,
    hash_backup_code,
    hash_token,
)
from repuestos.models.base import as_utc, utcnow
from repuestos.models.user import TwoFactorChallenge, User

logger = logging.getLogger(__name__)


def check_code(user: User, code: str, allow_backup: bool = True) -> Tuple[bool, bool]:
    """Verify a TOTP or backup code for a user with 2FA enabled.

    Returns ``(valid, used_backup_code)``. A matching backup code is removed
    from the user so it cannot be used again.
    """
    if not user.two_factor_enabled or not user.two_factor_secret:
        return False, False

    if totp.verify_code(user.two_factor_secret, code):
        return True, False

    if allow_backup:
        digest = hash_backup_code(code)
        if digest in (user.backup_codes or []):
            # Reassign so the JSON column is flagged dirty
            user.backup_codes = [c for c in user.backup_codes if c != digest]
            logger.info("User %s used a backup code, %s left", user.id, len(user.backup_codes))
            return True, True

    return False, False


def issue_backup_codes(user: User) -> List[str]:
    codes = generate_backup_codes(settings.backup_code_count)
    user.backup_codes = [hash_backup_code(c) for c in codes]
    return codes


def disable(user: User) -> None:
    user.two_factor_enabled = False
    user.two_factor_secret = None
    user.two_factor_pending_secret = None
    user.backup_codes = []


def create_challenge(db: AsyncSession, user: User) -> str:
    """Start a second-factor login. Returns the plaintext temp token."""
    token = generate_temp_token()
    db.add(
        TwoFactorChallenge(
            user_id=user.id,
            token_hash=hash_token(token),
            expires_at=utcnow() + timedelta(minutes=settings.two_factor_challenge_minutes),
        )
    )
    return token


async def get_open_challenge(db: AsyncSession, token: str) -> Optional[TwoFactorChallenge]:
    """The challenge behind ``token`` if it is unconsumed and unexpired."""
    result = await db.execute(
        select(TwoFactorChallenge).where(TwoFactorChallenge.token_hash == hash_token(token))
    )
    challenge = result.scalar_one_or_none()
    if challenge is None or challenge.consumed_at is not None:
        return None
    if as_utc(challenge.expires_at) <= utcnow():
        return None
    return challenge
