"""
Sale reversal service: parcel cancellation and reset-to-reservation.

Cancellation
- Single-parcel sale: deletes every installment and ledger entry of the sale,
  optionally records a refund, frees the parcel, marks the sale Cancelled.
- Multi-parcel sale: splits the parcel out into a Cancelled single-parcel sale
  (which carries the refund, if any), decrements the original's ledger and
  installments by 1 / pieceCount, frees the parcel.

Reset
- Reverts a confirmed sale to its reserved state: deletes every ledger entry
  except reservation deposits (SmallAdvance) and refunds, deletes the
  installments, clears down payment, company fee, schedule and confirmation
  fields, returns the status to Pending and the parcels to Reserved.
- Refused when the sale has neither a down payment nor a company fee.

Both are sequences of independent writes with no transaction. A failure
part-way is logged with the steps already applied and re-raised; a further
cancel or reset is the recovery path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import FrozenSet, List, Optional
from uuid import UUID, uuid4

from domain.classification import classify_sale_payments
from domain.land import ParcelStatus
from domain.money import TOLERANCE, ZERO, round_cents
from domain.payment import Payment, PaymentMethod, PaymentRecordType
from domain.sale import Sale, SaleStatus
from domain.time import utc_now
from domain.user import Permission, User
from repositories.installment_repository import delete_installments_for_sale
from repositories.land_repository import update_parcel_status, update_parcels_status
from repositories.payment_repository import delete_payments, delete_payments_for_sale, insert_payment
from repositories.record_store import RecordStore
from repositories.sale_repository import update_sale
from services.authorization import require_permission
from services.errors import OperationResult, SaleOperationError, ValidationError
from services.sale_context import load_sale_context, recheck_sale, require_parcel_in_sale
from services.sale_split_service import persist_split, plan_split

logger = logging.getLogger(__name__)

# Ledger entries that survive a reset.
RESET_KEPT_TYPES: FrozenSet[PaymentRecordType] = frozenset(
    {PaymentRecordType.SMALL_ADVANCE, PaymentRecordType.REFUND}
)


@dataclass(frozen=True, slots=True)
class CancellationRequest:
    """Cancel one parcel of a sale, optionally refunding the buyer."""
    sale_id: UUID
    parcel_id: UUID
    refund_amount: Optional[Decimal] = None
    refund_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


def _refund(
    store: RecordStore,
    sale: Sale,
    amount: Decimal,
    request: CancellationRequest,
    recorded_by: UUID,
) -> None:
    insert_payment(
        store,
        Payment(
            payment_id=uuid4(),
            client_id=sale.client_id,
            sale_id=sale.sale_id,
            amount=-amount,
            payment_type=PaymentRecordType.REFUND,
            payment_date=request.refund_date or date.today(),
            payment_method=request.payment_method,
            notes=request.notes,
            recorded_by=recorded_by,
            created_at=utc_now(),
        ),
    )


def cancel_parcel(store: RecordStore, actor: Optional[User], request: CancellationRequest) -> OperationResult:
    """
    Cancel one parcel of a sale.

    The refund, when given, must not exceed the cash received for the parcel.

    Returns:
        OperationResult with the cancelled sale id (and the shrunk original on a split)
    """

    steps: List[str] = []
    try:
        user = require_permission(actor, Permission.EDIT_SALES)
        refund = request.refund_amount or ZERO
        if refund < ZERO:
            raise ValidationError("Refund amount cannot be negative")

        context = load_sale_context(store, request.sale_id)
        sale = context.sale
        if sale.status is SaleStatus.CANCELLED:
            raise ValidationError(f"Sale {sale.sale_id} is already cancelled")
        require_parcel_in_sale(sale, request.parcel_id)

        paid_for_parcel = classify_sale_payments(sale, context.payments).received(request.parcel_id)
        if refund > paid_for_parcel + TOLERANCE:
            raise ValidationError(
                f"Refund {refund} exceeds the {round_cents(paid_for_parcel)} received for this parcel"
            )

        recheck_sale(store, sale, request.parcel_id, allow_completed=True)

        if sale.piece_count == 1:
            delete_installments_for_sale(store, sale.sale_id)
            steps.append("deleted installments")
            delete_payments_for_sale(store, sale.sale_id)
            steps.append("deleted payments")

            cancelled = replace(sale, status=SaleStatus.CANCELLED, updated_at=utc_now())
            update_sale(store, cancelled)
            steps.append(f"cancelled sale {sale.sale_id}")
            affected = [sale.sale_id]
        else:
            split = plan_split(sale, request.parcel_id, context.payments, context.installments)
            split = replace(split, target=replace(split.target, status=SaleStatus.CANCELLED))
            persist_split(store, split, steps, carry_payments=False)
            cancelled = split.target
            affected = [cancelled.sale_id, sale.sale_id]

        if refund > ZERO:
            _refund(store, cancelled, refund, request, user.user_id)
            steps.append(f"recorded refund of {refund}")

        update_parcel_status(store, request.parcel_id, ParcelStatus.AVAILABLE)
        steps.append(f"freed parcel {request.parcel_id}")

        logger.info(
            "Cancelled parcel %s of sale %s (cancelled sale %s, refund %s) by %s",
            request.parcel_id,
            sale.sale_id,
            cancelled.sale_id,
            refund,
            user.user_id,
        )
        return OperationResult.ok(*affected)

    except SaleOperationError as e:
        logger.warning("Rejected cancellation of parcel %s in sale %s: %s", request.parcel_id, request.sale_id, e.message)
        return OperationResult.rejected(e)
    except RuntimeError:
        if steps:
            logger.error(
                "Cancellation of parcel %s in sale %s failed part-way after: %s",
                request.parcel_id,
                request.sale_id,
                "; ".join(steps),
            )
        raise


def has_confirmation_to_reset(sale: Sale) -> bool:
    """A down payment or a company fee must exist for a reset to make sense."""

    return (
        sale.big_advance_amount > ZERO
        or sale.company_fee_amount is not None
        or (sale.promise_initial_payment or ZERO) > ZERO
    )


def reset_sale_fields(sale: Sale) -> Sale:
    """The sale with every post-confirmation field back at its default."""

    return replace(
        sale,
        status=SaleStatus.PENDING,
        big_advance_amount=ZERO,
        company_fee_percentage=None,
        company_fee_amount=None,
        number_of_installments=None,
        monthly_installment_amount=None,
        installment_start_date=None,
        installment_end_date=None,
        promise_initial_payment=None,
        promise_completed=False,
        is_confirmed=False,
        big_advance_confirmed=False,
        confirmed_by=None,
        updated_at=utc_now(),
    )


def reset_to_reservation(store: RecordStore, actor: Optional[User], sale_id: UUID) -> OperationResult:
    """
    Revert a confirmed sale to its reserved state, keeping the reservation deposit.

    Returns:
        OperationResult with the reset sale id
    """

    steps: List[str] = []
    try:
        user = require_permission(actor, Permission.EDIT_SALES)
        context = load_sale_context(store, sale_id)
        sale = context.sale
        if sale.status is SaleStatus.CANCELLED:
            raise ValidationError(f"Sale {sale_id} is cancelled and cannot be reset")
        if not has_confirmation_to_reset(sale):
            raise ValidationError(f"Sale {sale_id} has no down payment or company fee to reset")

        doomed = [p.payment_id for p in context.payments if p.payment_type not in RESET_KEPT_TYPES]
        delete_payments(store, doomed)
        steps.append(f"deleted {len(doomed)} payment(s)")

        delete_installments_for_sale(store, sale_id)
        steps.append("deleted installments")

        update_sale(store, reset_sale_fields(sale))
        steps.append(f"reset sale {sale_id}")

        update_parcels_status(store, sale.parcel_ids, ParcelStatus.RESERVED)
        steps.append(f"re-reserved {sale.piece_count} parcel(s)")

        logger.info("Reset sale %s to reservation by %s", sale_id, user.user_id)
        return OperationResult.ok(sale_id)

    except SaleOperationError as e:
        logger.warning("Rejected reset of sale %s: %s", sale_id, e.message)
        return OperationResult.rejected(e)
    except RuntimeError:
        if steps:
            logger.error("Reset of sale %s failed part-way after: %s", sale_id, "; ".join(steps))
        raise


__all__ = [
    "CancellationRequest",
    "RESET_KEPT_TYPES",
    "cancel_parcel",
    "has_confirmation_to_reset",
    "reset_sale_fields",
    "reset_to_reservation",
]
