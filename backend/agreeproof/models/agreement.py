"""Bilateral agreement records with payment and reminder tracking."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agreeproof.db.base import Base
from agreeproof.models.mixins import (
    TimestampMixin,
    UTCDateTime,
    UUIDPrimaryKeyMixin,
)
from agreeproof.models.user import ReminderFrequency

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from agreeproof.models.user import User


class AgreementStatus(str, enum.Enum):
    """Lifecycle states of an agreement."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentType(str, enum.Enum):
    UPI = "UPI"
    CASH = "CASH"
    CHEQUE = "CHEQUE"
    BANK_TRANSFER = "BANK_TRANSFER"
    OFFLINE = "OFFLINE"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Currency(str, enum.Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


# Fields covered by the proof hash; they are frozen once the record is immutable.
CONTENT_FIELDS = frozenset(
    {
        "title",
        "content",
        "party_a_name",
        "party_a_contact",
        "party_b_name",
        "party_b_contact",
        "amount",
        "currency",
        "proof_hash",
    }
)


class Agreement(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Agreement between two named parties."""

    __tablename__ = "agreements"

    agreement_id: Mapped[str] = mapped_column(
        String(32), unique=True, index=True, nullable=False
    )
    share_token: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text(), nullable=False)
    party_a_name: Mapped[str] = mapped_column(String(100), nullable=False)
    party_a_contact: Mapped[str] = mapped_column(String(254), nullable=False)
    party_b_name: Mapped[str] = mapped_column(String(100), nullable=False)
    party_b_contact: Mapped[str] = mapped_column(String(254), nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    currency: Mapped[Currency] = mapped_column(
        Enum(Currency), default=Currency.INR, nullable=False
    )

    proof_hash: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    hash_nonce: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[AgreementStatus] = mapped_column(
        Enum(AgreementStatus),
        default=AgreementStatus.PENDING,
        nullable=False,
        index=True,
    )
    is_immutable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    due_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), index=True
    )
    payment_type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType), default=PaymentType.OFFLINE, nullable=False
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )
    payment_date: Mapped[datetime | None] = mapped_column(UTCDateTime())
    payment_proof_reference: Mapped[str | None] = mapped_column(String(500))
    payment_notes: Mapped[str | None] = mapped_column(String(500))

    reminder_enabled: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    reminder_frequency: Mapped[ReminderFrequency] = mapped_column(
        Enum(ReminderFrequency), default=ReminderFrequency.DAILY, nullable=False
    )
    reminder_days_before: Mapped[int] = mapped_column(
        Integer, default=3, nullable=False
    )
    last_reminder_sent_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime()
    )

    owner: Mapped["User | None"] = relationship("User", back_populates="agreements")
