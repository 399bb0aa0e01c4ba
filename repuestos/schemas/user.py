"""User, profile and activity schemas."""

from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Role = Literal["client", "store_manager", "admin", "delivery"]


class UserResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    two_factor_enabled: bool
    points: int
    loyalty_level: str
    referral_code: Optional[str] = None
    delivery_status: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime


class ProfileResponse(UserResponse):
    """The caller's own account including location and preferences."""

    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    language: str
    theme: str
    email_notifications: bool
    push_notifications: bool
    total_purchases: int
    total_spent: float


class ProfileUpdate(BaseModel):
    """Schema for updating the caller's profile."""

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=255)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    language: Optional[Literal["es", "en", "pt"]] = None
    theme: Optional[Literal["light", "dark"]] = None
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower() if v else v


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    description: str
    details: Dict[str, Any] = {}
    created_at: datetime


class AdminUserUpdate(BaseModel):
    """Fields an admin may change on another account."""

    role: Optional[Role] = None
    is_active: Optional[bool] = None
