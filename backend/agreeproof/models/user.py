"""User model for agreement owners."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agreeproof.db.base import Base
from agreeproof.models.mixins import (
    TimestampMixin,
    UTCDateTime,
    UUIDPrimaryKeyMixin,
)

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from agreeproof.models.agreement import Agreement


class ReminderFrequency(str, enum.Enum):
    """How often reminder emails repeat."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Authenticated account that owns agreements."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    agreement_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    email_notifications: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    reminder_frequency: Mapped[ReminderFrequency] = mapped_column(
        Enum(ReminderFrequency), default=ReminderFrequency.WEEKLY, nullable=False
    )

    agreements: Mapped[list["Agreement"]] = relationship(
        "Agreement", back_populates="owner"
    )
