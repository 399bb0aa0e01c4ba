"""Authentication and two-factor schemas."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from repuestos.schemas.user import Role, UserResponse


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"email": "cliente@piezasya.com", "password": "secreto123"}
        }
    )

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class RegisterRequest(BaseModel):
    """Self-registration. Roles other than client need a registration code."""

    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    phone: Optional[str] = Field(None, max_length=30)
    role: Role = "client"
    registration_code: Optional[str] = Field(None, max_length=32)
    referral_code: Optional[str] = Field(None, max_length=16)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    """Tokens plus the authenticated user."""

    success: bool = True
    user: UserResponse


class LoginResponse(BaseModel):
    """Either tokens, or a pending second-factor challenge."""

    success: bool = True
    requires_two_factor: bool = False
    temp_token: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: UserResponse


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class TwoFactorCode(BaseModel):
    """A TOTP code, or a backup code where accepted."""

    code: str = Field(..., min_length=6, max_length=16)


class TwoFactorLoginRequest(TwoFactorCode):
    temp_token: str = Field(..., min_length=16)


class TwoFactorSetupResponse(BaseModel):
    success: bool = True
    secret: str
    otpauth_url: str


class BackupCodesResponse(BaseModel):
    """Plaintext backup codes. They are only ever shown once."""

    success: bool = True
    message: str
    backup_codes: List[str]


class TwoFactorStatusResponse(BaseModel):
    enabled: bool
    setup_pending: bool
    backup_codes_remaining: int


class TwoFactorVerifyResponse(BaseModel):
    success: bool = True
    valid: bool
    used_backup_code: bool = False
