"""
Sales API Endpoints.

Endpoints for the per-parcel sales table and every sale mutation: creation,
confirmation, promise completion, cancellation, reset and installment
collection.
"""

from dataclasses import asdict
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_current_user, get_store, raise_for_result, store_unavailable
from api.models import (
    CancelParcelBody,
    CompletePromiseBody,
    ConfirmFullBody,
    ConfirmInstallmentBody,
    CreateSaleBody,
    InstallmentPaymentBody,
    OperationResponse,
    SaleRowListResponse,
    SaleRowResponse,
)
from domain.user import User
from repositories.record_store import RecordStore
from services.confirmation_service import (
    FullConfirmationRequest,
    InstallmentConfirmationRequest,
    PromiseCompletionRequest,
    complete_promise,
    confirm_full,
    confirm_installment,
)
from services.errors import OperationResult, PermissionDeniedError
from services.installment_service import InstallmentPaymentRequest, record_installment_payment
from services.reversal_service import CancellationRequest, cancel_parcel, reset_to_reservation
from services.sale_service import CreateSaleRequest, create_sale
from services.sale_view_service import list_sale_rows

router = APIRouter()


def _respond(result: OperationResult, message: str) -> OperationResponse:
    raise_for_result(result)
    if len(result.sale_ids) > 1:
        message = f"{message} The parcel was split into its own sale."
    return OperationResponse(success=True, sale_ids=result.sale_ids, errors=[], message=message)


@router.get(
    "/sales/rows",
    response_model=SaleRowListResponse,
    summary="List Sale Rows",
    description="One row per parcel of every sale, with derived status and balances."
)
def get_sale_rows(
    as_of: Optional[date] = Query(None, description="Day used to flag overdue installments (default today)"),
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """
    Per-parcel sale rows, rebuilt from a fresh read on every call.

    **Example usage:**
    - `GET /api/v1/sales/rows`
    - `GET /api/v1/sales/rows?as_of=2024-05-02`
    """
    day = as_of or date.today()
    try:
        rows = list_sale_rows(store, actor, as_of=day)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except RuntimeError as e:
        raise store_unavailable("load sales", e)

    return SaleRowListResponse(
        rows=[SaleRowResponse(**asdict(row)) for row in rows],
        total_count=len(rows),
        as_of=day,
    )


@router.post(
    "/sales",
    response_model=OperationResponse,
    status_code=201,
    summary="Create Sale",
    description="Reserve one or more available parcels for a client."
)
def post_sale(
    body: CreateSaleBody,
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """
    Create a Pending sale and reserve its parcels.

    **Conflicts:**
    If any selected parcel is no longer Available when the sale is about to be
    written, nothing is written and 409 is returned; refresh and select again.
    """
    request = CreateSaleRequest(
        client_id=body.client_id,
        parcel_ids=body.parcel_ids,
        payment_type=body.payment_type,
        sale_date=body.sale_date,
        reservation_amount=body.reservation_amount,
        deadline_date=body.deadline_date,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    try:
        result = create_sale(store, actor, request)
    except RuntimeError as e:
        raise store_unavailable("create sale", e)
    return _respond(result, "Sale created.")


@router.post(
    "/sales/{sale_id}/confirm-full",
    response_model=OperationResponse,
    summary="Confirm Parcel Paid In Full",
)
def post_confirm_full(
    sale_id: UUID,
    body: ConfirmFullBody,
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """
    Confirm one parcel as paid in full.

    A parcel of a multi-parcel sale is first split into its own sale; the
    response then lists the new sale followed by the shrunk original.
    """
    request = FullConfirmationRequest(
        sale_id=sale_id,
        parcel_id=body.parcel_id,
        received_amount=body.received_amount,
        company_fee_percentage=body.company_fee_percentage,
        payment_date=body.payment_date,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    try:
        result = confirm_full(store, actor, request)
    except RuntimeError as e:
        raise store_unavailable("confirm sale", e)
    return _respond(result, "Parcel confirmed as paid in full.")


@router.post(
    "/sales/{sale_id}/confirm-installment",
    response_model=OperationResponse,
    summary="Confirm Parcel With Down Payment",
)
def post_confirm_installment(
    sale_id: UUID,
    body: ConfirmInstallmentBody,
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """
    Confirm one parcel with a down payment.

    Installment sales get a monthly schedule of `term_months` installments
    from `start_date`; a promise of sale records the down payment only.
    """
    request = InstallmentConfirmationRequest(
        sale_id=sale_id,
        parcel_id=body.parcel_id,
        down_payment=body.down_payment,
        term_months=body.term_months,
        start_date=body.start_date,
        company_fee_percentage=body.company_fee_percentage,
        payment_date=body.payment_date,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    try:
        result = confirm_installment(store, actor, request)
    except RuntimeError as e:
        raise store_unavailable("confirm sale", e)
    return _respond(result, "Parcel confirmed with down payment.")


@router.post(
    "/sales/{sale_id}/complete-promise",
    response_model=OperationResponse,
    summary="Complete Promise Of Sale",
)
def post_complete_promise(
    sale_id: UUID,
    body: CompletePromiseBody,
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    request = PromiseCompletionRequest(
        sale_id=sale_id,
        amount=body.amount,
        payment_date=body.payment_date,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    try:
        result = complete_promise(store, actor, request)
    except RuntimeError as e:
        raise store_unavailable("complete promise of sale", e)
    return _respond(result, "Promise of sale completed.")


@router.post(
    "/sales/{sale_id}/cancel",
    response_model=OperationResponse,
    summary="Cancel Parcel",
)
def post_cancel(
    sale_id: UUID,
    body: CancelParcelBody,
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """
    Cancel one parcel of a sale, optionally refunding the buyer.

    The parcel returns to Available. A single-parcel sale loses its payments
    and installments and becomes Cancelled.
    """
    request = CancellationRequest(
        sale_id=sale_id,
        parcel_id=body.parcel_id,
        refund_amount=body.refund_amount,
        refund_date=body.refund_date,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    try:
        result = cancel_parcel(store, actor, request)
    except RuntimeError as e:
        raise store_unavailable("cancel parcel", e)
    return _respond(result, "Parcel cancelled.")


@router.post(
    "/sales/{sale_id}/reset",
    response_model=OperationResponse,
    summary="Reset Sale To Reservation",
)
def post_reset(
    sale_id: UUID,
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """Revert a confirmed sale to its reserved state, keeping the reservation deposit."""
    try:
        result = reset_to_reservation(store, actor, sale_id)
    except RuntimeError as e:
        raise store_unavailable("reset sale", e)
    return _respond(result, "Sale reset to reservation.")


@router.post(
    "/sales/{sale_id}/installment-payments",
    response_model=OperationResponse,
    summary="Record Installment Payment",
)
def post_installment_payment(
    sale_id: UUID,
    body: InstallmentPaymentBody,
    store: RecordStore = Depends(get_store),
    actor: Optional[User] = Depends(get_current_user),
):
    """Apply a payment to the oldest unpaid installments of a sale."""
    request = InstallmentPaymentRequest(
        sale_id=sale_id,
        amount=body.amount,
        payment_date=body.payment_date,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    try:
        result = record_installment_payment(store, actor, request)
    except RuntimeError as e:
        raise store_unavailable("record installment payment", e)
    return _respond(result, "Installment payment recorded.")
