"""Schema exports."""

from agreeproof.schemas.agreement import (
    AgreementCreate,
    AgreementCreated,
    AgreementList,
    AgreementPublicRead,
    AgreementRead,
    AgreementStats,
    AgreementStatusRead,
    AgreementUpdate,
    CancellationRead,
    ConfirmationRead,
    MarkPaidRequest,
    Pagination,
    PartyInput,
    PaymentResult,
    ReminderSettingsInput,
    ReminderSettingsUpdate,
    VerificationRead,
)
from agreeproof.schemas.auth import (
    AuthResult,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RefreshTokenRequest,
    RegisterRequest,
    Token,
    TokenPair,
    UserRead,
)
from agreeproof.schemas.common import ApiResponse, CamelModel, ErrorItem, envelope

__all__ = [
    "AgreementCreate",
    "AgreementCreated",
    "AgreementList",
    "AgreementPublicRead",
    "AgreementRead",
    "AgreementStats",
    "AgreementStatusRead",
    "AgreementUpdate",
    "ApiResponse",
    "AuthResult",
    "CamelModel",
    "CancellationRead",
    "ConfirmationRead",
    "ErrorItem",
    "LoginRequest",
    "MarkPaidRequest",
    "Pagination",
    "PartyInput",
    "PasswordChange",
    "PaymentResult",
    "ProfileUpdate",
    "RefreshTokenRequest",
    "RegisterRequest",
    "ReminderSettingsInput",
    "ReminderSettingsUpdate",
    "Token",
    "TokenPair",
    "UserRead",
    "VerificationRead",
    "envelope",
]
