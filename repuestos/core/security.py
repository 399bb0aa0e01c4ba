"""Password hashing, JWT tokens and one-time secrets."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from repuestos.config.settings import settings

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

BACKUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
BACKUP_CODE_LENGTH = 8


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _create_token(subject: str, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a short-lived access token for ``subject`` (a user id)."""
    return _create_token(
        subject,
        "access",
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a long-lived refresh token for ``subject``."""
    return _create_token(
        subject,
        "refresh",
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """Decode a JWT and check its type.

    Returns the payload, or None when the token is malformed, expired, signed
    with another key or of the wrong type.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        return None

    if payload.get("type") != token_type:
        return None
    return payload


def generate_temp_token() -> str:
    """Opaque token identifying a pending two-factor login."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def normalize_backup_code(code: str) -> str:
    return code.replace("-", "").replace(" ", "").strip().upper()


def hash_backup_code(code: str) -> str:
    return hash_token(normalize_backup_code(code))


def generate_backup_codes(count: Optional[int] = None) -> List[str]:
    """Generate plaintext backup codes. Only their hashes are stored."""
    count = count or settings.backup_code_count
    return [
        "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
        for _ in range(count)
    ]


def generate_registration_code() -> str:
    """16 upper-case hex characters."""
    return secrets.token_hex(8).upper()


def generate_referral_code() -> str:
    return secrets.token_hex(4).upper()
