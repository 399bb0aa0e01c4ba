"""Registration code schemas."""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class RegistrationCodeCreate(BaseModel):
    """Schema for creating a registration code."""

    email: EmailStr
    role: Literal["admin", "store_manager", "delivery"]
    expires_in_days: Optional[int] = Field(None, ge=1, le=90)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "gerente@autopartes.com",
                "role": "store_manager",
                "expires_in_days": 7,
            }
        }
    )

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class RegistrationCodeResponse(BaseModel):
    """Response schema for registration code."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    email: str
    role: str
    status: str
    expires_at: datetime
    created_by_id: Optional[UUID] = None
    used_by_id: Optional[UUID] = None
    used_at: Optional[datetime] = None
    created_at: datetime


class RegistrationCodeVerifyResponse(BaseModel):
    """What an invitee learns about a code before registering."""

    valid: bool = True
    email: str
    role: str
    expires_at: datetime


class ExpireCodesResponse(BaseModel):
    success: bool = True
    expired: int
