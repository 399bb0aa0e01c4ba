"""Store model and the store manager association."""

import uuid
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Column, Float, ForeignKey, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repuestos.config.database import Base
from repuestos.models.base import BaseModel

if TYPE_CHECKING:
    from repuestos.models.user import User


store_managers = Table(
    "store_managers",
    Base.metadata,
    Column("store_id", Uuid, ForeignKey("stores.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Store(BaseModel):
    """A shop selling parts on the marketplace."""

    __tablename__ = "stores"

    name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Address
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[str] = mapped_column(String(80), default="Venezuela", nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Contact
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    managers: Mapped[List["User"]] = relationship(
        "User", secondary=store_managers, lazy="selectin"
    )

    @property
    def manager_ids(self) -> List[uuid.UUID]:
        return [m.id for m in self.managers]

    def is_managed_by(self, user: "User") -> bool:
        return user.id == self.owner_id or user.id in self.manager_ids
