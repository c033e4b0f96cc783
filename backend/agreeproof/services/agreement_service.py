"""Agreement lifecycle: creation, confirmation, payment and owner edits.

State machine::

    PENDING --confirm--> CONFIRMED --mark_paid--> PAID
    PENDING/CONFIRMED --due date elapsed--> OVERDUE --mark_paid--> PAID
    PENDING/CONFIRMED/OVERDUE --cancel--> CANCELLED

Confirmation, payment and cancellation freeze the record (``is_immutable``);
after that the proof hash and the hashed fields never change again. Every
mutation is a compare-and-set through the store, so two concurrent calls on
the same agreement cannot both succeed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from agreeproof.core.errors import (
    AlreadyConfirmed,
    AlreadyPaid,
    Conflict,
    Forbidden,
    Immutable,
    NotCancellable,
    NotConfirmable,
    NotDeletable,
    NotFound,
    NotPayable,
    NotUpdatable,
    ValidationFailed,
)
from agreeproof.core.identifiers import (
    compute_proof_hash,
    generate_agreement_id,
    generate_share_token,
    is_valid_email,
)
from agreeproof.models import (
    Agreement,
    AgreementStatus,
    PaymentStatus,
    ReminderFrequency,
)
from agreeproof.schemas.agreement import (
    AgreementCreate,
    AgreementStats,
    AgreementUpdate,
    MarkPaidRequest,
    Pagination,
)
from agreeproof.services.agreement_store import AgreementStore
from agreeproof.services.notification_service import Notifier

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = frozenset(
    {AgreementStatus.PENDING, AgreementStatus.CONFIRMED, AgreementStatus.OVERDUE}
)
CANCELLABLE_STATUSES = PAYABLE_STATUSES

SORT_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "dueDate": "due_date",
    "title": "title",
    "amount": "amount",
    "status": "status",
}

MAX_PAGE_SIZE = 100


def as_utc(value: datetime | None) -> datetime | None:
    """Normalise a datetime to UTC, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def hash_for(agreement: Agreement, **overrides: str) -> str:
    """Recompute the proof hash of a record, optionally with replacement fields."""
    fields = {
        "title": agreement.title,
        "content": agreement.content,
        "party_a_contact": agreement.party_a_contact,
        "party_b_contact": agreement.party_b_contact,
    }
    fields.update(overrides)
    return compute_proof_hash(
        agreement.agreement_id,
        fields["title"],
        fields["content"],
        fields["party_a_contact"],
        fields["party_b_contact"],
        agreement.hash_nonce,
    )


@dataclass(frozen=True)
class Verification:
    agreement: Agreement
    valid: bool


class AgreementLifecycle:
    """Applies the agreement state machine on top of an :class:`AgreementStore`."""

    def __init__(
        self,
        store: AgreementStore,
        notifier: Notifier | None = None,
        *,
        frontend_url: str = "http://localhost:3000",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.frontend_url = frontend_url.rstrip("/")
        self._clock = clock or (lambda: datetime.now(UTC))

    def _now(self) -> datetime:
        return as_utc(self._clock())

    # Reads -------------------------------------------------------------

    async def get(self, agreement_id: str) -> Agreement:
        agreement = await self.store.get(agreement_id)
        if agreement is None:
            raise NotFound("Agreement not found")
        return agreement

    async def get_shared(self, share_token: str) -> Agreement:
        agreement = await self.store.get_by_share_token(share_token)
        if agreement is None:
            raise NotFound("Agreement not found")
        return agreement

    async def status(self, agreement_id: str) -> Agreement:
        return await self.get(agreement_id)

    async def verify(self, agreement_id: str) -> Verification:
        agreement = await self.get(agreement_id)
        return Verification(agreement, hash_for(agreement) == agreement.proof_hash)

    @staticmethod
    def is_owner(agreement: Agreement, caller_id: uuid.UUID | None) -> bool:
        return caller_id is not None and agreement.owner_id == caller_id

    async def _get_owned(self, agreement_id: str, caller_id: uuid.UUID) -> Agreement:
        agreement = await self.get(agreement_id)
        if not self.is_owner(agreement, caller_id):
            raise Forbidden("Only the agreement owner can perform this action")
        return agreement

    async def list_for_owner(
        self,
        owner_id: uuid.UUID,
        *,
        page: int = 1,
        limit: int = 10,
        status: AgreementStatus | None = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[Agreement], Pagination]:
        if sort_by not in SORT_FIELDS:
            raise ValidationFailed(
                f"sortBy must be one of {', '.join(SORT_FIELDS)}", field="sortBy"
            )
        if sort_order not in {"asc", "desc"}:
            raise ValidationFailed("sortOrder must be asc or desc", field="sortOrder")
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        items, total = await self.store.list_by_owner(
            owner_id,
            status=status,
            offset=(page - 1) * limit,
            limit=limit,
            sort_by=SORT_FIELDS[sort_by],
            descending=sort_order == "desc",
        )
        pages = (total + limit - 1) // limit
        return items, Pagination(current=page, total=pages, count=total, limit=limit)

    async def stats(self, owner_id: uuid.UUID) -> AgreementStats:
        counts = await self.store.count_by_status(owner_id)
        paid_value = await self.store.sum_amount(
            status=AgreementStatus.PAID, owner_id=owner_id
        )
        return AgreementStats(
            total=sum(counts.values()),
            pending=counts.get(AgreementStatus.PENDING, 0),
            confirmed=counts.get(AgreementStatus.CONFIRMED, 0),
            paid=counts.get(AgreementStatus.PAID, 0),
            overdue=counts.get(AgreementStatus.OVERDUE, 0),
            cancelled=counts.get(AgreementStatus.CANCELLED, 0),
            total_value=paid_value,
        )

    # Mutations ---------------------------------------------------------

    def _require_text(self, value: str | None, field: str, label: str) -> str:
        text = (value or "").strip()
        if not text:
            raise ValidationFailed(f"{label} is required", field=field)
        return text

    def _future_due_date(self, value: datetime | None) -> datetime | None:
        due_date = as_utc(value)
        if due_date is not None and due_date <= self._now():
            raise ValidationFailed("Due date must be in the future", field="dueDate")
        return due_date

    async def create(
        self, payload: AgreementCreate, *, owner_id: uuid.UUID | None = None
    ) -> Agreement:
        """Validate and persist a new PENDING agreement."""
        title = self._require_text(payload.title, "title", "Title")
        content = self._require_text(payload.content, "content", "Content")
        parties: dict[str, tuple[str, str]] = {}
        for key, label, party in (
            ("partyA", "Party A", payload.party_a),
            ("partyB", "Party B", payload.party_b),
        ):
            name = self._require_text(party.name, f"{key}.name", f"{label} name")
            contact = self._require_text(
                party.contact, f"{key}.contact", f"{label} contact"
            ).lower()
            if not is_valid_email(contact):
                raise ValidationFailed(
                    f"{label} contact must be a valid email address",
                    field=f"{key}.contact",
                )
            parties[key] = (name, contact)
        if parties["partyA"][1] == parties["partyB"][1]:
            raise ValidationFailed(
                "Party A and Party B must have different contacts",
                field="partyB.contact",
            )
        due_date = self._future_due_date(payload.due_date)

        now = self._now()
        agreement_id = generate_agreement_id(now)
        hash_nonce = now.isoformat()
        reminders = payload.reminder_settings
        agreement = Agreement(
            id=uuid.uuid4(),
            agreement_id=agreement_id,
            share_token=generate_share_token(),
            owner_id=owner_id,
            title=title,
            content=content,
            party_a_name=parties["partyA"][0],
            party_a_contact=parties["partyA"][1],
            party_b_name=parties["partyB"][0],
            party_b_contact=parties["partyB"][1],
            amount=payload.amount,
            currency=payload.currency,
            proof_hash=compute_proof_hash(
                agreement_id,
                title,
                content,
                parties["partyA"][1],
                parties["partyB"][1],
                hash_nonce,
            ),
            hash_nonce=hash_nonce,
            status=AgreementStatus.PENDING,
            is_immutable=False,
            due_date=due_date,
            payment_type=payload.payment_type,
            payment_status=PaymentStatus.PENDING,
            reminder_enabled=reminders.enabled if reminders else True,
            reminder_frequency=(
                reminders.frequency if reminders else ReminderFrequency.DAILY
            ),
            reminder_days_before=reminders.days_before if reminders else 3,
            created_at=now,
            updated_at=now,
        )
        agreement = await self.store.add(agreement)
        if owner_id is not None:
            await self.store.adjust_agreement_count(owner_id, 1)
        logger.info("Agreement %s created", agreement.agreement_id)
        return agreement

    async def confirm(self, agreement_id: str) -> Agreement:
        """Move a PENDING agreement to CONFIRMED and freeze it."""
        now = self._now()
        updated = await self.store.transition(
            agreement_id,
            expected_statuses={AgreementStatus.PENDING},
            changes={
                "status": AgreementStatus.CONFIRMED,
                "confirmed_at": now,
                "is_immutable": True,
            },
            require_mutable=True,
        )
        if updated is None:
            current = await self.get(agreement_id)
            if current.confirmed_at is not None:
                raise AlreadyConfirmed(
                    data={
                        "agreementId": current.agreement_id,
                        "status": current.status.value,
                        "confirmedAt": as_utc(current.confirmed_at).isoformat(),
                    }
                )
            if current.status != AgreementStatus.PENDING:
                raise NotConfirmable(
                    f"Agreement cannot be confirmed while {current.status.value}"
                )
            raise Immutable()
        logger.info("Agreement %s confirmed", agreement_id)
        self._notify(
            updated.party_b_contact,
            "agreement_confirmed",
            updated,
            confirmed_at=updated.confirmed_at,
        )
        return updated

    async def mark_paid(
        self,
        agreement_id: str,
        caller_id: uuid.UUID,
        payload: MarkPaidRequest | None = None,
    ) -> Agreement:
        """Record payment on an owned agreement; PAID is terminal."""
        payload = payload or MarkPaidRequest()
        agreement = await self._get_owned(agreement_id, caller_id)
        self._check_payable(agreement)

        now = self._now()
        changes: dict[str, Any] = {
            "status": AgreementStatus.PAID,
            "payment_status": PaymentStatus.PAID,
            "payment_date": as_utc(payload.payment_date) or now,
            "payment_notes": payload.notes,
            "payment_proof_reference": payload.proof_reference,
            "is_immutable": True,
            "confirmed_at": agreement.confirmed_at or now,
        }
        updated = await self.store.transition(
            agreement_id,
            expected_statuses=PAYABLE_STATUSES,
            changes=changes,
            match={"confirmed_at": agreement.confirmed_at},
        )
        if updated is None:
            current = await self.get(agreement_id)
            self._check_payable(current)
            raise Conflict("Agreement changed while recording payment, please retry")
        logger.info("Agreement %s marked as paid", agreement_id)
        self._notify(
            updated.party_b_contact,
            "payment_received",
            updated,
            payment_date=updated.payment_date,
            payment_notes=updated.payment_notes,
        )
        return updated

    @staticmethod
    def _check_payable(agreement: Agreement) -> None:
        if agreement.status == AgreementStatus.PAID:
            raise AlreadyPaid()
        if agreement.status == AgreementStatus.CANCELLED:
            raise NotPayable()

    async def update(
        self, agreement_id: str, caller_id: uuid.UUID, payload: AgreementUpdate
    ) -> Agreement:
        """Apply owner edits while the agreement is still PENDING."""
        agreement = await self._get_owned(agreement_id, caller_id)
        self._check_updatable(agreement)

        fields = payload.model_dump(exclude_unset=True)
        changes: dict[str, Any] = {}
        if "title" in fields:
            changes["title"] = self._require_text(payload.title, "title", "Title")
        if "content" in fields:
            changes["content"] = self._require_text(
                payload.content, "content", "Content"
            )
        if "due_date" in fields:
            changes["due_date"] = self._future_due_date(payload.due_date)
        if payload.reminder_settings is not None:
            reminders = payload.reminder_settings.model_dump(exclude_unset=True)
            for key, column in (
                ("enabled", "reminder_enabled"),
                ("frequency", "reminder_frequency"),
                ("days_before", "reminder_days_before"),
            ):
                if reminders.get(key) is not None:
                    changes[column] = reminders[key]
        if not changes:
            return agreement

        if "title" in changes or "content" in changes:
            changes["proof_hash"] = hash_for(
                agreement,
                title=changes.get("title", agreement.title),
                content=changes.get("content", agreement.content),
            )
        updated = await self.store.transition(
            agreement_id,
            expected_statuses={AgreementStatus.PENDING},
            changes=changes,
            require_mutable=True,
            match={"title": agreement.title, "content": agreement.content},
        )
        if updated is None:
            current = await self.get(agreement_id)
            self._check_updatable(current)
            raise Conflict("Agreement was modified concurrently, please retry")
        logger.info("Agreement %s updated", agreement_id)
        return updated

    @staticmethod
    def _check_updatable(agreement: Agreement) -> None:
        if agreement.status != AgreementStatus.PENDING or agreement.is_immutable:
            raise NotUpdatable()

    async def delete(self, agreement_id: str, caller_id: uuid.UUID) -> None:
        """Remove an owned agreement that was never confirmed."""
        agreement = await self._get_owned(agreement_id, caller_id)
        if agreement.status != AgreementStatus.PENDING or agreement.is_immutable:
            raise NotDeletable()
        deleted = await self.store.delete(
            agreement_id, expected_statuses={AgreementStatus.PENDING}
        )
        if not deleted:
            await self.get(agreement_id)
            raise NotDeletable()
        await self.store.adjust_agreement_count(caller_id, -1)
        logger.info("Agreement %s deleted", agreement_id)

    async def cancel(self, agreement_id: str, caller_id: uuid.UUID) -> Agreement:
        """Cancel an owned agreement that has not been paid."""
        agreement = await self._get_owned(agreement_id, caller_id)
        if agreement.status not in CANCELLABLE_STATUSES:
            raise NotCancellable()
        updated = await self.store.transition(
            agreement_id,
            expected_statuses=CANCELLABLE_STATUSES,
            changes={
                "status": AgreementStatus.CANCELLED,
                "cancelled_at": self._now(),
                "is_immutable": True,
            },
        )
        if updated is None:
            raise NotCancellable()
        logger.info("Agreement %s cancelled", agreement_id)
        return updated

    def _notify(
        self, recipient: str, template: str, agreement: Agreement, **extra: Any
    ) -> None:
        notify_best_effort(
            self.notifier,
            recipient,
            template,
            notification_data(agreement, frontend_url=self.frontend_url, **extra),
        )


def notification_data(
    agreement: Agreement, *, frontend_url: str, **extra: Any
) -> dict[str, Any]:
    """Template variables describing an agreement in notification emails."""
    amount = agreement.amount
    data: dict[str, Any] = {
        "agreement_id": agreement.agreement_id,
        "title": agreement.title,
        "content": agreement.content,
        "party_a_name": agreement.party_a_name,
        "party_b_name": agreement.party_b_name,
        "amount": f"{Decimal(amount):.2f}" if amount is not None else None,
        "currency": agreement.currency.value if agreement.currency else None,
        "due_date": (
            agreement.due_date.date().isoformat() if agreement.due_date else None
        ),
        "payment_type": (
            agreement.payment_type.value if agreement.payment_type else None
        ),
        "view_link": f"{frontend_url.rstrip('/')}/agreement/{agreement.agreement_id}",
    }
    data.update(extra)
    return data


def notify_best_effort(
    notifier: Notifier | None, recipient: str, template: str, data: dict[str, Any]
) -> bool:
    """Hand a notification to ``notifier``; errors are logged, never raised."""
    if notifier is None:
        return False
    try:
        notifier.notify(recipient, template, data)
    except Exception:
        logger.exception(
            "Failed to queue %s notification for %s",
            template,
            data.get("agreement_id"),
        )
        return False
    return True


__all__ = [
    "AgreementLifecycle",
    "CANCELLABLE_STATUSES",
    "PAYABLE_STATUSES",
    "SORT_FIELDS",
    "Verification",
    "as_utc",
    "hash_for",
    "notification_data",
    "notify_best_effort",
]
