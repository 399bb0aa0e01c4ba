"""Store schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class StoreBase(BaseModel):
    """Base schema for store."""

    name: str = Field(..., min_length=2, max_length=120)
    description: Optional[str] = None
    address: str = Field(..., min_length=3, max_length=255)
    city: str = Field(..., min_length=2, max_length=80)
    state: str = Field(..., min_length=2, max_length=80)
    zip_code: str = Field(..., min_length=3, max_length=20)
    country: str = Field("Venezuela", max_length=80)
    phone: str = Field(..., min_length=5, max_length=30)
    email: EmailStr
    website: Optional[str] = Field(None, max_length=255)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class StoreCreate(StoreBase):
    """Schema for creating a store."""


class StoreUpdate(BaseModel):
    """Schema for updating a store."""

    name: Optional[str] = Field(None, min_length=2, max_length=120)
    description: Optional[str] = None
    address: Optional[str] = Field(None, min_length=3, max_length=255)
    city: Optional[str] = Field(None, min_length=2, max_length=80)
    state: Optional[str] = Field(None, min_length=2, max_length=80)
    zip_code: Optional[str] = Field(None, min_length=3, max_length=20)
    country: Optional[str] = Field(None, max_length=80)
    phone: Optional[str] = Field(None, min_length=5, max_length=30)
    email: Optional[EmailStr] = None
    website: Optional[str] = Field(None, max_length=255)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower() if v else v


class StoreResponse(StoreBase):
    """Response schema for store."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    owner_id: UUID
    manager_ids: List[UUID] = []
    is_active: bool
    created_at: datetime


class NearbyStoreResponse(StoreResponse):
    distance_km: float


class ManagerAssign(BaseModel):
    user_id: UUID
