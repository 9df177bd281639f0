"""
Installment collection service.

Handles:
- Recording a payment against a sale's schedule, oldest unpaid installment first
- Moving the stored sale status to Completed once every installment is Paid
- Flagging overdue installments as Late
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from domain.installment import Installment, all_paid, allocate_payment, mark_overdue, outstanding_balance
from domain.lifecycle import is_confirmed
from domain.money import TOLERANCE, ZERO, round_cents
from domain.payment import Payment, PaymentMethod, PaymentRecordType
from domain.sale import PaymentType, SaleStatus
from domain.time import utc_now
from domain.user import Permission, User
from repositories.installment_repository import list_installments, update_installment
from repositories.payment_repository import insert_payments
from repositories.record_store import RecordStore
from repositories.sale_repository import list_sales, update_sale
from services.authorization import require_permission
from services.errors import OperationResult, SaleOperationError, ValidationError
from services.sale_context import load_sale_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InstallmentPaymentRequest:
    """Money received toward a sale's installment schedule."""
    sale_id: UUID
    amount: Decimal
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OverdueSweepResult:
    """
    Result of flagging overdue installments.

    marked: Installments newly set to Late
    sale_ids: Sales owning those installments
    """
    marked: int
    sale_ids: List[UUID]


def record_installment_payment(
    store: RecordStore,
    actor: Optional[User],
    request: InstallmentPaymentRequest,
) -> OperationResult:
    """
    Apply a payment to a confirmed installment sale.

    The amount may span several installments; one Installment ledger entry is
    recorded per installment it touches. Amounts above the outstanding balance
    are rejected.
    """

    steps: List[str] = []
    try:
        user = require_permission(actor, Permission.RECORD_PAYMENTS)
        if request.amount <= ZERO:
            raise ValidationError("Payment amount must be positive")

        context = load_sale_context(store, request.sale_id)
        sale = context.sale
        if sale.status is SaleStatus.CANCELLED:
            raise ValidationError(f"Sale {sale.sale_id} is cancelled")
        if sale.payment_type is not PaymentType.INSTALLMENT:
            raise ValidationError(f"Sale {sale.sale_id} is not an installment sale")
        if not is_confirmed(sale, context.payments) or not context.installments:
            raise ValidationError(f"Sale {sale.sale_id} has no installment schedule yet")

        outstanding = outstanding_balance(context.installments)
        if outstanding <= ZERO:
            raise ValidationError(f"Sale {sale.sale_id} has no outstanding installments")
        if request.amount > outstanding + TOLERANCE:
            raise ValidationError(
                f"Payment {request.amount} exceeds the {round_cents(outstanding)} outstanding"
            )

        paid_on = request.payment_date or date.today()
        allocation = allocate_payment(context.installments, request.amount, paid_on)

        for installment in allocation.updated:
            update_installment(store, installment)
        steps.append(f"updated {len(allocation.updated)} installment(s)")

        now = utc_now()
        insert_payments(
            store,
            [
                Payment(
                    payment_id=uuid4(),
                    client_id=sale.client_id,
                    sale_id=sale.sale_id,
                    amount=amount,
                    payment_type=PaymentRecordType.INSTALLMENT,
                    payment_date=paid_on,
                    payment_method=request.payment_method,
                    installment_id=installment_id,
                    notes=request.notes,
                    recorded_by=user.user_id,
                    created_at=now,
                )
                for installment_id, amount in allocation.applied
            ],
        )
        steps.append(f"recorded {len(allocation.applied)} installment payment(s)")

        touched: Dict[UUID, Installment] = {i.installment_id: i for i in allocation.updated}
        schedule = [touched.get(i.installment_id, i) for i in context.installments]
        # InstallmentsOngoing is derived from the ledger, never stored.
        status = SaleStatus.COMPLETED if all_paid(schedule) else SaleStatus.AWAITING_PAYMENT
        if status is not sale.status:
            update_sale(store, replace(sale, status=status, updated_at=now))
            steps.append(f"sale status {status.value}")

        logger.info(
            "Recorded installment payment of %s on sale %s across %d installment(s) by %s",
            request.amount,
            sale.sale_id,
            len(allocation.applied),
            user.user_id,
        )
        return OperationResult.ok(sale.sale_id)

    except SaleOperationError as e:
        logger.warning("Rejected installment payment on sale %s: %s", request.sale_id, e.message)
        return OperationResult.rejected(e)
    except RuntimeError:
        if steps:
            logger.error(
                "Installment payment on sale %s failed part-way after: %s",
                request.sale_id,
                "; ".join(steps),
            )
        raise


def mark_overdue_installments(
    store: RecordStore,
    actor: Optional[User],
    as_of: Optional[date] = None,
) -> OverdueSweepResult:
    """
    Set every overdue installment of a live sale to Late.

    An installment is overdue when it is not Paid, more than one cent remains,
    and its due date is before `as_of` (today by default).

    Raises:
        PermissionDeniedError: The actor may not record payments
    """

    require_permission(actor, Permission.RECORD_PAYMENTS)
    day = as_of or date.today()

    live = {s.sale_id for s in list_sales(store) if s.status is not SaleStatus.CANCELLED}
    installments = [i for i in list_installments(store) if i.sale_id in live]

    late = mark_overdue(installments, day)
    for installment in late:
        update_installment(store, installment)

    sale_ids = sorted({i.sale_id for i in late}, key=str)
    if late:
        logger.info("Marked %d installment(s) Late across %d sale(s) as of %s", len(late), len(sale_ids), day)
    return OverdueSweepResult(marked=len(late), sale_ids=sale_ids)


__all__ = [
    "InstallmentPaymentRequest",
    "OverdueSweepResult",
    "mark_overdue_installments",
    "record_installment_payment",
]
