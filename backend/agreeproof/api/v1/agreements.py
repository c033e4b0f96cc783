"""Agreement endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Query, status

from agreeproof.api.deps import CurrentUser, Lifecycle, OptionalUser
from agreeproof.api.rate_limit import AGREEMENT_RATE_DEP, DEFAULT_RATE_DEP
from agreeproof.core.config import get_settings
from agreeproof.models import AgreementStatus
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
    PaymentRead,
    PaymentResult,
    VerificationRead,
)
from agreeproof.schemas.common import ApiResponse, envelope

router = APIRouter(dependencies=[DEFAULT_RATE_DEP])


def _frontend_url() -> str:
    return get_settings().frontend_url


def _status_fields(agreement) -> dict[str, Any]:
    return {
        "agreement_id": agreement.agreement_id,
        "status": agreement.status,
        "confirmed_at": agreement.confirmed_at,
        "is_immutable": agreement.is_immutable,
    }


@router.post(
    "",
    response_model=ApiResponse[AgreementCreated],
    status_code=status.HTTP_201_CREATED,
    summary="Create agreement",
    dependencies=[AGREEMENT_RATE_DEP],
)
async def create_agreement(
    payload: AgreementCreate,
    lifecycle: Lifecycle,
    current_user: OptionalUser,
) -> dict[str, Any]:
    agreement = await lifecycle.create(
        payload, owner_id=current_user.id if current_user else None
    )
    return envelope(
        "Agreement created successfully",
        AgreementCreated.from_agreement(agreement, frontend_url=_frontend_url()),
    )


@router.get(
    "",
    response_model=ApiResponse[AgreementList],
    summary="List the caller's agreements",
)
async def list_agreements(
    lifecycle: Lifecycle,
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: AgreementStatus | None = Query(default=None, alias="status"),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder"),
) -> dict[str, Any]:
    items, pagination = await lifecycle.list_for_owner(
        current_user.id,
        page=page,
        limit=limit,
        status=status_filter,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    frontend_url = _frontend_url()
    return envelope(
        "Agreements retrieved successfully",
        AgreementList(
            agreements=[
                AgreementRead.from_agreement(item, frontend_url=frontend_url)
                for item in items
            ],
            pagination=pagination,
        ),
    )


@router.get(
    "/stats",
    response_model=ApiResponse[AgreementStats],
    summary="Agreement statistics for the caller",
)
async def agreement_stats(
    lifecycle: Lifecycle, current_user: CurrentUser
) -> dict[str, Any]:
    stats = await lifecycle.stats(current_user.id)
    return envelope("Statistics retrieved successfully", stats)


@router.get(
    "/shared/{share_token}",
    response_model=ApiResponse[AgreementPublicRead],
    summary="Public read-only view by share token",
)
async def get_shared_agreement(
    share_token: str, lifecycle: Lifecycle
) -> dict[str, Any]:
    agreement = await lifecycle.get_shared(share_token)
    return envelope(
        "Agreement retrieved successfully",
        AgreementPublicRead.from_agreement(agreement, frontend_url=_frontend_url()),
    )


@router.get(
    "/{agreement_id}",
    response_model=ApiResponse[AgreementRead | AgreementPublicRead],
    summary="Get agreement",
)
async def get_agreement(
    agreement_id: str, lifecycle: Lifecycle, current_user: OptionalUser
) -> dict[str, Any]:
    agreement = await lifecycle.get(agreement_id)
    caller_id = current_user.id if current_user else None
    if lifecycle.is_owner(agreement, caller_id):
        view: type[AgreementPublicRead] = AgreementRead
    else:
        view = AgreementPublicRead
    return envelope(
        "Agreement retrieved successfully",
        view.from_agreement(agreement, frontend_url=_frontend_url()),
    )


@router.get(
    "/{agreement_id}/status",
    response_model=ApiResponse[AgreementStatusRead],
    summary="Get agreement status",
)
async def get_agreement_status(
    agreement_id: str, lifecycle: Lifecycle
) -> dict[str, Any]:
    agreement = await lifecycle.status(agreement_id)
    return envelope(
        "Agreement status retrieved successfully",
        AgreementStatusRead(**_status_fields(agreement)),
    )


@router.get(
    "/{agreement_id}/verify",
    response_model=ApiResponse[VerificationRead],
    summary="Verify the proof hash",
)
async def verify_agreement(agreement_id: str, lifecycle: Lifecycle) -> dict[str, Any]:
    result = await lifecycle.verify(agreement_id)
    return envelope(
        "Agreement integrity verified" if result.valid else "Proof hash mismatch",
        VerificationRead(
            agreement_id=result.agreement.agreement_id,
            proof_hash=result.agreement.proof_hash,
            valid=result.valid,
        ),
    )


@router.post(
    "/{agreement_id}/confirm",
    response_model=ApiResponse[ConfirmationRead],
    summary="Confirm agreement",
    dependencies=[AGREEMENT_RATE_DEP],
)
async def confirm_agreement(agreement_id: str, lifecycle: Lifecycle) -> dict[str, Any]:
    agreement = await lifecycle.confirm(agreement_id)
    return envelope(
        "Agreement confirmed successfully",
        ConfirmationRead(
            **_status_fields(agreement),
            share_link=f"{_frontend_url().rstrip('/')}/agreement/{agreement_id}",
        ),
    )


@router.post(
    "/{agreement_id}/mark-paid",
    response_model=ApiResponse[PaymentResult],
    summary="Mark agreement as paid",
)
async def mark_agreement_paid(
    agreement_id: str,
    lifecycle: Lifecycle,
    current_user: CurrentUser,
    payload: MarkPaidRequest | None = Body(default=None),
) -> dict[str, Any]:
    agreement = await lifecycle.mark_paid(agreement_id, current_user.id, payload)
    return envelope(
        "Agreement marked as paid successfully",
        PaymentResult(
            **_status_fields(agreement),
            payment=PaymentRead(
                due_date=agreement.due_date,
                payment_type=agreement.payment_type,
                payment_status=agreement.payment_status,
                payment_date=agreement.payment_date,
                payment_proof_reference=agreement.payment_proof_reference,
                notes=agreement.payment_notes,
            ),
        ),
    )


@router.post(
    "/{agreement_id}/cancel",
    response_model=ApiResponse[CancellationRead],
    summary="Cancel agreement",
)
async def cancel_agreement(
    agreement_id: str, lifecycle: Lifecycle, current_user: CurrentUser
) -> dict[str, Any]:
    agreement = await lifecycle.cancel(agreement_id, current_user.id)
    return envelope(
        "Agreement cancelled successfully",
        CancellationRead(
            **_status_fields(agreement), cancelled_at=agreement.cancelled_at
        ),
    )


@router.put(
    "/{agreement_id}",
    response_model=ApiResponse[AgreementRead],
    summary="Update a pending agreement",
)
async def update_agreement(
    agreement_id: str,
    payload: AgreementUpdate,
    lifecycle: Lifecycle,
    current_user: CurrentUser,
) -> dict[str, Any]:
    agreement = await lifecycle.update(agreement_id, current_user.id, payload)
    return envelope(
        "Agreement updated successfully",
        AgreementRead.from_agreement(agreement, frontend_url=_frontend_url()),
    )


@router.delete(
    "/{agreement_id}",
    response_model=ApiResponse[None],
    summary="Delete a pending agreement",
)
async def delete_agreement(
    agreement_id: str, lifecycle: Lifecycle, current_user: CurrentUser
) -> dict[str, Any]:
    await lifecycle.delete(agreement_id, current_user.id)
    return envelope("Agreement deleted successfully")
