"""Schemas for agreement input, views and lifecycle results."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from agreeproof.models import (
    Agreement,
    AgreementStatus,
    Currency,
    PaymentStatus,
    PaymentType,
    ReminderFrequency,
)
from agreeproof.schemas.common import CamelModel


def _strip(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


class PartyInput(CamelModel):
    name: str = Field(max_length=100)
    contact: str = Field(
        max_length=254, validation_alias=AliasChoices("contact", "email")
    )

    _strip_fields = field_validator("name", "contact", mode="before")(_strip)


class ReminderSettingsInput(CamelModel):
    enabled: bool = True
    frequency: ReminderFrequency = ReminderFrequency.DAILY
    days_before: int = Field(default=3, ge=1, le=30)


class ReminderSettingsUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = None
    frequency: ReminderFrequency | None = None
    days_before: int | None = Field(default=None, ge=1, le=30)


class AgreementCreate(CamelModel):
    """Validated input for creating an agreement."""

    title: str = Field(max_length=200)
    content: str = Field(max_length=5000)
    party_a: PartyInput
    party_b: PartyInput
    amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    currency: Currency = Currency.INR
    due_date: datetime | None = None
    payment_type: PaymentType = PaymentType.OFFLINE
    reminder_settings: ReminderSettingsInput | None = None

    _strip_fields = field_validator("title", "content", mode="before")(_strip)


class AgreementUpdate(CamelModel):
    """Fields an owner may still change while the agreement is pending."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=200)
    content: str | None = Field(default=None, max_length=5000)
    due_date: datetime | None = None
    reminder_settings: ReminderSettingsUpdate | None = None

    _strip_fields = field_validator("title", "content", mode="before")(_strip)


class MarkPaidRequest(CamelModel):
    payment_date: datetime | None = None
    notes: str | None = Field(
        default=None,
        max_length=500,
        validation_alias=AliasChoices("notes", "paymentNotes"),
    )
    proof_reference: str | None = Field(
        default=None,
        max_length=500,
        validation_alias=AliasChoices(
            "proofReference", "proof_reference", "paymentProofUrl"
        ),
    )


class PartyRead(CamelModel):
    name: str
    contact: str


class PaymentSummary(CamelModel):
    due_date: datetime | None = None
    payment_type: PaymentType
    payment_status: PaymentStatus
    payment_date: datetime | None = None


class PaymentRead(PaymentSummary):
    payment_proof_reference: str | None = None
    notes: str | None = None


class ReminderSettingsRead(CamelModel):
    enabled: bool
    frequency: ReminderFrequency
    days_before: int
    last_reminder_sent_at: datetime | None = None


def _share_link(frontend_url: str, agreement_id: str) -> str:
    return f"{frontend_url.rstrip('/')}/agreement/{agreement_id}"


def _public_link(frontend_url: str, share_token: str) -> str:
    return f"{frontend_url.rstrip('/')}/shared/{share_token}"


def _payment_fields(agreement: Agreement) -> dict[str, object]:
    return {
        "due_date": agreement.due_date,
        "payment_type": agreement.payment_type,
        "payment_status": agreement.payment_status,
        "payment_date": agreement.payment_date,
    }


class AgreementPublicRead(CamelModel):
    """Read-only view safe to show to anyone holding the link."""

    agreement_id: str
    title: str
    content: str
    party_a: PartyRead
    party_b: PartyRead
    amount: Decimal | None = None
    currency: Currency
    status: AgreementStatus
    proof_hash: str
    share_link: str
    is_immutable: bool
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    payment: PaymentSummary

    @classmethod
    def _base_fields(cls, agreement: Agreement, frontend_url: str) -> dict[str, object]:
        return {
            "agreement_id": agreement.agreement_id,
            "title": agreement.title,
            "content": agreement.content,
            "party_a": PartyRead(
                name=agreement.party_a_name, contact=agreement.party_a_contact
            ),
            "party_b": PartyRead(
                name=agreement.party_b_name, contact=agreement.party_b_contact
            ),
            "amount": agreement.amount,
            "currency": agreement.currency,
            "status": agreement.status,
            "proof_hash": agreement.proof_hash,
            "share_link": _share_link(frontend_url, agreement.agreement_id),
            "is_immutable": agreement.is_immutable,
            "confirmed_at": agreement.confirmed_at,
            "cancelled_at": agreement.cancelled_at,
            "created_at": agreement.created_at,
            "updated_at": agreement.updated_at,
        }

    @classmethod
    def from_agreement(
        cls, agreement: Agreement, *, frontend_url: str
    ) -> "AgreementPublicRead":
        return cls(
            **cls._base_fields(agreement, frontend_url),
            payment=PaymentSummary(**_payment_fields(agreement)),
        )


class AgreementRead(AgreementPublicRead):
    """Full view returned to the owner."""

    owner_id: uuid.UUID | None = None
    share_token: str
    public_link: str
    payment: PaymentRead
    reminder_settings: ReminderSettingsRead

    @classmethod
    def from_agreement(
        cls, agreement: Agreement, *, frontend_url: str
    ) -> "AgreementRead":
        return cls(
            **cls._base_fields(agreement, frontend_url),
            owner_id=agreement.owner_id,
            share_token=agreement.share_token,
            public_link=_public_link(frontend_url, agreement.share_token),
            payment=PaymentRead(
                **_payment_fields(agreement),
                payment_proof_reference=agreement.payment_proof_reference,
                notes=agreement.payment_notes,
            ),
            reminder_settings=ReminderSettingsRead(
                enabled=agreement.reminder_enabled,
                frequency=agreement.reminder_frequency,
                days_before=agreement.reminder_days_before,
                last_reminder_sent_at=agreement.last_reminder_sent_at,
            ),
        )


class AgreementCreated(CamelModel):
    agreement_id: str
    share_link: str
    share_token: str
    public_link: str
    status: AgreementStatus
    proof_hash: str
    created_at: datetime

    @classmethod
    def from_agreement(
        cls, agreement: Agreement, *, frontend_url: str
    ) -> "AgreementCreated":
        return cls(
            agreement_id=agreement.agreement_id,
            share_link=_share_link(frontend_url, agreement.agreement_id),
            share_token=agreement.share_token,
            public_link=_public_link(frontend_url, agreement.share_token),
            status=agreement.status,
            proof_hash=agreement.proof_hash,
            created_at=agreement.created_at,
        )


class AgreementStatusRead(CamelModel):
    agreement_id: str
    status: AgreementStatus
    confirmed_at: datetime | None = None
    is_immutable: bool


class ConfirmationRead(AgreementStatusRead):
    share_link: str


class PaymentResult(AgreementStatusRead):
    payment: PaymentRead


class CancellationRead(AgreementStatusRead):
    cancelled_at: datetime | None = None


class VerificationRead(CamelModel):
    agreement_id: str
    proof_hash: str
    valid: bool


class Pagination(CamelModel):
    current: int
    total: int
    count: int
    limit: int


class AgreementList(CamelModel):
    agreements: list[AgreementRead]
    pagination: Pagination


class AgreementStats(CamelModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    paid: int = 0
    overdue: int = 0
    cancelled: int = 0
    total_value: Decimal = Decimal("0")


__all__ = [
    "AgreementCreate",
    "AgreementCreated",
    "AgreementList",
    "AgreementPublicRead",
    "AgreementRead",
    "AgreementStats",
    "AgreementStatusRead",
    "AgreementUpdate",
    "CancellationRead",
    "ConfirmationRead",
    "MarkPaidRequest",
    "Pagination",
    "PartyInput",
    "PartyRead",
    "PaymentRead",
    "PaymentResult",
    "PaymentSummary",
    "ReminderSettingsInput",
    "ReminderSettingsRead",
    "ReminderSettingsUpdate",
    "VerificationRead",
]
