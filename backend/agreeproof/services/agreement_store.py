"""Persistence ports and adapters for agreement records.

The lifecycle service only talks to :class:`AgreementStore`. Every state
change goes through :meth:`AgreementStore.transition`, an atomic
compare-and-set that applies ``changes`` only while the record is still in
one of ``expected_statuses`` (and, optionally, still mutable and still
matching a set of previously read column values). Callers treat a ``None``
result as "somebody else got there first" and re-read the record to decide
which error to report.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agreeproof.core.errors import DuplicateIdentifier
from agreeproof.models import CONTENT_FIELDS, Agreement, AgreementStatus, User

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = frozenset(
    {"created_at", "updated_at", "due_date", "title", "amount", "status"}
)


class AgreementStore(ABC):
    """Storage port used by the agreement lifecycle and the scheduled sweeps."""

    @abstractmethod
    async def add(self, agreement: Agreement) -> Agreement:
        """Persist a new record, raising ``DuplicateIdentifier`` on key collisions."""

    @abstractmethod
    async def get(self, agreement_id: str) -> Agreement | None: ...

    @abstractmethod
    async def get_by_share_token(self, share_token: str) -> Agreement | None: ...

    @abstractmethod
    async def transition(
        self,
        agreement_id: str,
        *,
        expected_statuses: Collection[AgreementStatus],
        changes: Mapping[str, Any],
        require_mutable: bool = False,
        match: Mapping[str, Any] | None = None,
    ) -> Agreement | None:
        """Atomically apply ``changes`` if the record still satisfies the guards.

        Changes touching hashed content always require the record to be
        mutable. Returns the updated record, or ``None`` when no row matched.
        """

    @abstractmethod
    async def delete(
        self,
        agreement_id: str,
        *,
        expected_statuses: Collection[AgreementStatus],
        require_mutable: bool = True,
    ) -> bool: ...

    @abstractmethod
    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        *,
        status: AgreementStatus | None = None,
        offset: int = 0,
        limit: int = 10,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Agreement], int]: ...

    @abstractmethod
    async def count_by_status(
        self, owner_id: uuid.UUID | None = None
    ) -> dict[AgreementStatus, int]: ...

    @abstractmethod
    async def sum_amount(
        self, *, status: AgreementStatus, owner_id: uuid.UUID | None = None
    ) -> Decimal: ...

    @abstractmethod
    async def find_due(
        self,
        *,
        statuses: Collection[AgreementStatus],
        due_before: datetime,
        due_after: datetime | None = None,
        reminders_only: bool = True,
    ) -> list[Agreement]:
        """Return records with a due date in ``[due_after, due_before)``."""

    @abstractmethod
    async def adjust_agreement_count(self, owner_id: uuid.UUID, delta: int) -> None: ...


def _guarded_by_mutability(changes: Mapping[str, Any], require_mutable: bool) -> bool:
    return require_mutable or bool(CONTENT_FIELDS.intersection(changes))


def _check_sort(sort_by: str) -> str:
    if sort_by not in SORTABLE_COLUMNS:
        raise ValueError(f"Unsupported sort column: {sort_by}")
    return sort_by


class SqlAlchemyAgreementStore(AgreementStore):
    """Store backed by an ``AsyncSession``; each write commits on its own."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, agreement: Agreement) -> Agreement:
        self.session.add(agreement)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            logger.warning("Duplicate agreement identifier %s", agreement.agreement_id)
            raise DuplicateIdentifier() from exc
        await self.session.refresh(agreement)
        return agreement

    async def _reload(self, agreement_id: str) -> Agreement | None:
        result = await self.session.execute(
            select(Agreement)
            .where(Agreement.agreement_id == agreement_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, agreement_id: str) -> Agreement | None:
        return await self._reload(agreement_id)

    async def get_by_share_token(self, share_token: str) -> Agreement | None:
        result = await self.session.execute(
            select(Agreement).where(Agreement.share_token == share_token)
        )
        return result.scalar_one_or_none()

    async def transition(
        self,
        agreement_id: str,
        *,
        expected_statuses: Collection[AgreementStatus],
        changes: Mapping[str, Any],
        require_mutable: bool = False,
        match: Mapping[str, Any] | None = None,
    ) -> Agreement | None:
        stmt = update(Agreement).where(
            Agreement.agreement_id == agreement_id,
            Agreement.status.in_(list(expected_statuses)),
        )
        if _guarded_by_mutability(changes, require_mutable):
            stmt = stmt.where(Agreement.is_immutable.is_(False))
        for field, value in (match or {}).items():
            column = getattr(Agreement, field)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        stmt = stmt.values(**dict(changes)).execution_options(
            synchronize_session=False
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateIdentifier() from exc
        if result.rowcount == 0:
            return None
        return await self._reload(agreement_id)

    async def delete(
        self,
        agreement_id: str,
        *,
        expected_statuses: Collection[AgreementStatus],
        require_mutable: bool = True,
    ) -> bool:
        stmt = delete(Agreement).where(
            Agreement.agreement_id == agreement_id,
            Agreement.status.in_(list(expected_statuses)),
        )
        if require_mutable:
            stmt = stmt.where(Agreement.is_immutable.is_(False))
        result = await self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        *,
        status: AgreementStatus | None = None,
        offset: int = 0,
        limit: int = 10,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Agreement], int]:
        column = getattr(Agreement, _check_sort(sort_by))
        filters = [Agreement.owner_id == owner_id]
        if status is not None:
            filters.append(Agreement.status == status)

        total = await self.session.scalar(
            select(func.count()).select_from(Agreement).where(*filters)
        )
        order = column.desc() if descending else column.asc()
        result = await self.session.execute(
            select(Agreement)
            .where(*filters)
            .order_by(order, Agreement.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), int(total or 0)

    async def count_by_status(
        self, owner_id: uuid.UUID | None = None
    ) -> dict[AgreementStatus, int]:
        stmt = select(Agreement.status, func.count()).group_by(Agreement.status)
        if owner_id is not None:
            stmt = stmt.where(Agreement.owner_id == owner_id)
        result = await self.session.execute(stmt)
        return {status: int(count) for status, count in result.all()}

    async def sum_amount(
        self, *, status: AgreementStatus, owner_id: uuid.UUID | None = None
    ) -> Decimal:
        stmt = select(func.coalesce(func.sum(Agreement.amount), 0)).where(
            Agreement.status == status
        )
        if owner_id is not None:
            stmt = stmt.where(Agreement.owner_id == owner_id)
        total = await self.session.scalar(stmt)
        return Decimal(str(total or 0))

    async def find_due(
        self,
        *,
        statuses: Collection[AgreementStatus],
        due_before: datetime,
        due_after: datetime | None = None,
        reminders_only: bool = True,
    ) -> list[Agreement]:
        stmt = select(Agreement).where(
            Agreement.status.in_(list(statuses)),
            Agreement.due_date.is_not(None),
            Agreement.due_date < due_before,
        )
        if due_after is not None:
            stmt = stmt.where(Agreement.due_date >= due_after)
        if reminders_only:
            stmt = stmt.where(Agreement.reminder_enabled.is_(True))
        result = await self.session.execute(stmt.order_by(Agreement.due_date))
        return list(result.scalars().all())

    async def adjust_agreement_count(self, owner_id: uuid.UUID, delta: int) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == owner_id, User.agreement_count + delta >= 0)
            .values(agreement_count=User.agreement_count + delta)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()


class InMemoryAgreementStore(AgreementStore):
    """Dictionary-backed store for tests and local experiments.

    Operations run without awaiting in between, so each call is atomic with
    respect to other coroutines on the same event loop.
    """

    def __init__(self) -> None:
        self._records: dict[str, Agreement] = {}
        self.agreement_counts: dict[uuid.UUID, int] = {}

    def _now(self) -> datetime:
        return datetime.now(UTC)

    async def add(self, agreement: Agreement) -> Agreement:
        if agreement.agreement_id in self._records:
            raise DuplicateIdentifier()
        for existing in self._records.values():
            if (
                existing.proof_hash == agreement.proof_hash
                or existing.share_token == agreement.share_token
            ):
                raise DuplicateIdentifier()
        now = self._now()
        if agreement.id is None:
            agreement.id = uuid.uuid4()
        agreement.created_at = agreement.created_at or now
        agreement.updated_at = agreement.updated_at or now
        self._records[agreement.agreement_id] = agreement
        return agreement

    async def get(self, agreement_id: str) -> Agreement | None:
        return self._records.get(agreement_id)

    async def get_by_share_token(self, share_token: str) -> Agreement | None:
        for record in self._records.values():
            if record.share_token == share_token:
                return record
        return None

    async def transition(
        self,
        agreement_id: str,
        *,
        expected_statuses: Collection[AgreementStatus],
        changes: Mapping[str, Any],
        require_mutable: bool = False,
        match: Mapping[str, Any] | None = None,
    ) -> Agreement | None:
        record = self._records.get(agreement_id)
        if record is None or record.status not in expected_statuses:
            return None
        if _guarded_by_mutability(changes, require_mutable) and record.is_immutable:
            return None
        for field, value in (match or {}).items():
            if getattr(record, field) != value:
                return None
        new_hash = changes.get("proof_hash")
        if new_hash is not None and any(
            other.proof_hash == new_hash
            for key, other in self._records.items()
            if key != agreement_id
        ):
            raise DuplicateIdentifier()
        for field, value in changes.items():
            setattr(record, field, value)
        record.updated_at = self._now()
        return record

    async def delete(
        self,
        agreement_id: str,
        *,
        expected_statuses: Collection[AgreementStatus],
        require_mutable: bool = True,
    ) -> bool:
        record = self._records.get(agreement_id)
        if record is None or record.status not in expected_statuses:
            return False
        if require_mutable and record.is_immutable:
            return False
        del self._records[agreement_id]
        return True

    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        *,
        status: AgreementStatus | None = None,
        offset: int = 0,
        limit: int = 10,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Agreement], int]:
        field = _check_sort(sort_by)
        matches = [
            record
            for record in self._records.values()
            if record.owner_id == owner_id
            and (status is None or record.status == status)
        ]
        present = [r for r in matches if getattr(r, field) is not None]
        missing = [r for r in matches if getattr(r, field) is None]
        present.sort(key=lambda r: getattr(r, field), reverse=descending)
        ordered = present + missing
        return ordered[offset : offset + limit], len(matches)

    async def count_by_status(
        self, owner_id: uuid.UUID | None = None
    ) -> dict[AgreementStatus, int]:
        counts: dict[AgreementStatus, int] = {}
        for record in self._records.values():
            if owner_id is not None and record.owner_id != owner_id:
                continue
            counts[record.status] = counts.get(record.status, 0) + 1
        return counts

    async def sum_amount(
        self, *, status: AgreementStatus, owner_id: uuid.UUID | None = None
    ) -> Decimal:
        total = Decimal("0")
        for record in self._records.values():
            if owner_id is not None and record.owner_id != owner_id:
                continue
            if record.status == status and record.amount is not None:
                total += Decimal(record.amount)
        return total

    async def find_due(
        self,
        *,
        statuses: Collection[AgreementStatus],
        due_before: datetime,
        due_after: datetime | None = None,
        reminders_only: bool = True,
    ) -> list[Agreement]:
        found = [
            record
            for record in self._records.values()
            if record.status in statuses
            and record.due_date is not None
            and record.due_date < due_before
            and (due_after is None or record.due_date >= due_after)
            and (record.reminder_enabled or not reminders_only)
        ]
        return sorted(found, key=lambda r: r.due_date)

    async def adjust_agreement_count(self, owner_id: uuid.UUID, delta: int) -> None:
        current = self.agreement_counts.get(owner_id, 0)
        self.agreement_counts[owner_id] = max(current + delta, 0)


__all__ = [
    "AgreementStore",
    "InMemoryAgreementStore",
    "SORTABLE_COLUMNS",
    "SqlAlchemyAgreementStore",
]
