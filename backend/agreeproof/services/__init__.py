"""Service layer exports."""
from agreeproof.services import (
    agreement_service,
    agreement_store,
    auth_service,
    notification_service,
    reminder_service,
    user_service,
)

__all__ = [
    "agreement_service",
    "agreement_store",
    "auth_service",
    "notification_service",
    "reminder_service",
    "user_service",
]
