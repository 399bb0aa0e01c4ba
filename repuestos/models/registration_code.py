"""Registration codes gating sign-up for elevated roles."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from repuestos.models.base import BaseModel, as_utc, in_values, utcnow

CODE_ROLES = ("admin", "store_manager", "delivery")
CODE_STATUSES = ("pending", "used", "expired", "revoked")


class RegistrationCode(BaseModel):
    """Single-use invite bound to an e-mail address and a role."""

    __tablename__ = "registration_codes"

    code: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    used_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(in_values("role", CODE_ROLES), name="role"),
        CheckConstraint(in_values("status", CODE_STATUSES), name="status"),
    )

    @property
    def is_expired(self) -> bool:
        return as_utc(self.expires_at) <= utcnow()

    @property
    def is_usable(self) -> bool:
        return self.status == "pending" and not self.is_expired
