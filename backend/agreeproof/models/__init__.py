"""ORM models package export."""

from agreeproof.models.agreement import (
    CONTENT_FIELDS,
    Agreement,
    AgreementStatus,
    Currency,
    PaymentStatus,
    PaymentType,
)
from agreeproof.models.user import ReminderFrequency, User

__all__ = [
    "Agreement",
    "AgreementStatus",
    "CONTENT_FIELDS",
    "Currency",
    "PaymentStatus",
    "PaymentType",
    "ReminderFrequency",
    "User",
]
