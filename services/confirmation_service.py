"""
Sale confirmation service.

Handles:
- Full-cash confirmation of one parcel of a sale
- Down payment + installment schedule confirmation (Installment sales)
- Down payment confirmation of a promise of sale, and its later completion
- Splitting the parcel out of a multi-parcel sale before acting on it

Per-parcel figures are the sale totals divided equally by the parcel count:
    price       = total_selling_price / n
    reservation = small_advance_amount / n
    company fee = price * fee% / 100   (fee% defaults to DEFAULT_COMPANY_FEE_PERCENTAGE)

Every confirmation persists the explicit confirmation markers (is_confirmed,
confirmed_by, a non-null company fee amount). Reset clears them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4

from domain.classification import classify_sale_payments
from domain.installment import (
    MAX_TERM_MONTHS,
    MIN_TERM_MONTHS,
    generate_schedule,
    monthly_amount,
)
from domain.land import ParcelStatus
from domain.lifecycle import is_confirmed
from domain.money import TOLERANCE, ZERO, round_cents
from domain.payment import Payment, PaymentMethod, PaymentRecordType
from domain.sale import PaymentType, Sale, SaleStatus
from domain.time import utc_now
from domain.user import Permission, User
from repositories.client import StoreSettings, load_settings
from repositories.installment_repository import insert_installments
from repositories.land_repository import update_parcel_status
from repositories.payment_repository import insert_payment
from repositories.record_store import RecordStore
from repositories.sale_repository import update_sale
from services.authorization import require_permission
from services.errors import OperationResult, SaleOperationError, ValidationError
from services.sale_context import (
    load_sale_context,
    recheck_parcels,
    recheck_sale,
    require_open_sale,
    require_parcel_in_sale,
)
from services.sale_split_service import persist_split, plan_split

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")


@dataclass(frozen=True, slots=True)
class FullConfirmationRequest:
    """Confirm one parcel of a sale as paid in full."""
    sale_id: UUID
    parcel_id: UUID
    received_amount: Decimal
    company_fee_percentage: Optional[Decimal] = None
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


@dataclass(frozen=True, slots=True)
class InstallmentConfirmationRequest:
    """
    Confirm one parcel of an Installment or PromiseOfSale sale with a down payment.

    term_months and start_date drive the schedule of Installment sales; a
    promise of sale has no schedule and ignores them.
    """
    sale_id: UUID
    parcel_id: UUID
    down_payment: Decimal
    term_months: int
    start_date: date
    company_fee_percentage: Optional[Decimal] = None
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PromiseCompletionRequest:
    """Record the completion payment of a promise of sale."""
    sale_id: UUID
    amount: Decimal
    payment_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ParcelQuote:
    """
    Per-parcel figures used to confirm one parcel.

    price: parcel's share of the sale price
    reservation: parcel's share of the reservation deposit
    company_fee: fee charged on top of the price
    """
    price: Decimal
    reservation: Decimal
    company_fee_percentage: Decimal
    company_fee: Decimal

    @property
    def total_payable(self) -> Decimal:
        return self.price + self.company_fee

    @property
    def due_after_reservation(self) -> Decimal:
        return self.total_payable - self.reservation


def quote_parcel(sale: Sale, company_fee_percentage: Decimal) -> ParcelQuote:
    """Equal per-parcel share of the sale plus the company fee on that share."""

    price = sale.total_selling_price / sale.piece_count
    return ParcelQuote(
        price=price,
        reservation=sale.small_advance_amount / sale.piece_count,
        company_fee_percentage=company_fee_percentage,
        company_fee=round_cents(price * company_fee_percentage / _HUNDRED),
    )


def _fee_percentage(requested: Optional[Decimal], settings: StoreSettings) -> Decimal:
    percentage = settings.default_company_fee_percentage if requested is None else requested
    if percentage < ZERO or percentage > _HUNDRED:
        raise ValidationError(f"Company fee percentage must be between 0 and 100, got {percentage}")
    return percentage


def _affected(target: Sale, remainder: Optional[Sale]) -> List[UUID]:
    return [target.sale_id] + ([remainder.sale_id] if remainder is not None else [])


def _record_payment(
    store: RecordStore,
    sale: Sale,
    amount: Decimal,
    payment_type: PaymentRecordType,
    *,
    payment_date: Optional[date],
    payment_method: PaymentMethod,
    notes: Optional[str],
    recorded_by: UUID,
) -> Payment:
    return insert_payment(
        store,
        Payment(
            payment_id=uuid4(),
            client_id=sale.client_id,
            sale_id=sale.sale_id,
            amount=amount,
            payment_type=payment_type,
            payment_date=payment_date or date.today(),
            payment_method=payment_method,
            notes=notes,
            recorded_by=recorded_by,
            created_at=utc_now(),
        ),
    )


def confirm_full(
    store: RecordStore,
    actor: Optional[User],
    request: FullConfirmationRequest,
    *,
    settings: Optional[StoreSettings] = None,
) -> OperationResult:
    """
    Confirm one parcel as paid in full.

    **Process:**
    1. Check permission and inputs; the sale must not be confirmed yet and the
       received amount must cover the parcel's price + company fee - reservation
    2. Re-read sale and parcel; abort if either changed since selection
    3. Split the parcel out of a multi-parcel sale (ledger shares follow it)
    4. Mark the target sale Completed, the parcel Sold, record a Full payment

    Returns:
        OperationResult with the target sale id (and the shrunk original on a split)
    """

    steps: List[str] = []
    try:
        user = require_permission(actor, Permission.EDIT_SALES)
        percentage = _fee_percentage(request.company_fee_percentage, settings or load_settings())
        if request.received_amount < ZERO:
            raise ValidationError("Received amount cannot be negative")

        context = load_sale_context(store, request.sale_id)
        sale = context.sale
        require_open_sale(sale)
        require_parcel_in_sale(sale, request.parcel_id)
        if is_confirmed(sale, context.payments):
            raise ValidationError(
                f"Sale {sale.sale_id} is already confirmed; collect its installments or "
                "complete the promise instead"
            )

        quote = quote_parcel(sale, percentage)
        if request.received_amount + TOLERANCE < quote.due_after_reservation:
            raise ValidationError(
                f"Received {request.received_amount} is less than the {round_cents(quote.due_after_reservation)} "
                "still due for this parcel"
            )

        recheck_sale(store, sale, request.parcel_id)
        recheck_parcels(store, [request.parcel_id], [ParcelStatus.RESERVED])

        split = plan_split(sale, request.parcel_id, context.payments, context.installments)
        persist_split(store, split, steps, carry_payments=True)

        target = replace(
            split.target,
            status=SaleStatus.COMPLETED,
            big_advance_amount=ZERO,
            company_fee_percentage=percentage,
            company_fee_amount=quote.company_fee,
            is_confirmed=True,
            confirmed_by=user.user_id,
            updated_at=utc_now(),
        )
        update_sale(store, target)
        steps.append(f"completed sale {target.sale_id}")

        update_parcel_status(store, request.parcel_id, ParcelStatus.SOLD)
        steps.append(f"sold parcel {request.parcel_id}")

        if request.received_amount > ZERO:
            _record_payment(
                store,
                target,
                request.received_amount,
                PaymentRecordType.FULL,
                payment_date=request.payment_date,
                payment_method=request.payment_method,
                notes=request.notes,
                recorded_by=user.user_id,
            )
            steps.append("recorded full payment")

        logger.info(
            "Confirmed parcel %s of sale %s as paid in full (sale %s) by %s",
            request.parcel_id,
            request.sale_id,
            target.sale_id,
            user.user_id,
        )
        return OperationResult.ok(*_affected(target, split.remainder))

    except SaleOperationError as e:
        logger.warning("Rejected full confirmation of sale %s: %s", request.sale_id, e.message)
        return OperationResult.rejected(e)
    except RuntimeError:
        if steps:
            logger.error(
                "Full confirmation of sale %s failed part-way after: %s",
                request.sale_id,
                "; ".join(steps),
            )
        raise


def confirm_installment(
    store: RecordStore,
    actor: Optional[User],
    request: InstallmentConfirmationRequest,
    *,
    settings: Optional[StoreSettings] = None,
) -> OperationResult:
    """
    Confirm one parcel with a down payment.

    Installment sales get their schedule:
        remaining = price + company fee - reservation - down payment
    split into `term_months` monthly installments from `start_date`, and the
    down payment is recorded as BigAdvance. A promise of sale records it as
    InitialPayment and gets no schedule.

    Example:
        confirm_installment(store, user, InstallmentConfirmationRequest(
            sale_id=sale_id, parcel_id=parcel_id, down_payment=Decimal("20000"),
            term_months=10, start_date=date(2024, 1, 1), company_fee_percentage=Decimal("0"),
        ))
        # price 100000, no reservation -> 10 installments of 8000, 2024-01-01 .. 2024-10-01
    """

    steps: List[str] = []
    try:
        user = require_permission(actor, Permission.EDIT_SALES)
        percentage = _fee_percentage(request.company_fee_percentage, settings or load_settings())
        if request.down_payment < ZERO:
            raise ValidationError("Down payment cannot be negative")

        context = load_sale_context(store, request.sale_id)
        sale = context.sale
        require_open_sale(sale)
        require_parcel_in_sale(sale, request.parcel_id)

        if sale.payment_type is PaymentType.FULL:
            raise ValidationError("Full-payment sales are confirmed with a full confirmation")
        if is_confirmed(sale, context.payments):
            raise ValidationError(
                f"Sale {sale.sale_id} is already confirmed; reset it to reservation before confirming again"
            )

        with_schedule = sale.payment_type is PaymentType.INSTALLMENT
        if with_schedule and not MIN_TERM_MONTHS <= request.term_months <= MAX_TERM_MONTHS:
            raise ValidationError(
                f"Number of installments must be between {MIN_TERM_MONTHS} and {MAX_TERM_MONTHS}"
            )

        quote = quote_parcel(sale, percentage)
        remaining = quote.due_after_reservation - request.down_payment
        if remaining < ZERO:
            raise ValidationError(
                f"Down payment {request.down_payment} exceeds the {round_cents(quote.due_after_reservation)} "
                "due for this parcel"
            )

        recheck_sale(store, sale, request.parcel_id)
        recheck_parcels(store, [request.parcel_id], [ParcelStatus.RESERVED])

        split = plan_split(sale, request.parcel_id, context.payments, context.installments)
        persist_split(store, split, steps, carry_payments=True)

        target = replace(
            split.target,
            status=SaleStatus.AWAITING_PAYMENT,
            company_fee_percentage=percentage,
            company_fee_amount=quote.company_fee,
            is_confirmed=True,
            big_advance_confirmed=request.down_payment > ZERO,
            confirmed_by=user.user_id,
            updated_at=utc_now(),
        )

        schedule = []
        if with_schedule:
            schedule = generate_schedule(target.sale_id, remaining, request.term_months, request.start_date)
            target = replace(
                target,
                big_advance_amount=request.down_payment,
                number_of_installments=request.term_months,
                monthly_installment_amount=monthly_amount(remaining, request.term_months),
                installment_start_date=request.start_date,
                installment_end_date=schedule[-1].due_date,
            )
        else:
            target = replace(
                target,
                big_advance_amount=ZERO,
                promise_initial_payment=request.down_payment,
            )

        update_sale(store, target)
        steps.append(f"confirmed sale {target.sale_id}")

        if schedule:
            insert_installments(store, schedule)
            steps.append(f"generated {len(schedule)} installment(s)")

        update_parcel_status(store, request.parcel_id, ParcelStatus.SOLD)
        steps.append(f"sold parcel {request.parcel_id}")

        if request.down_payment > ZERO:
            _record_payment(
                store,
                target,
                request.down_payment,
                PaymentRecordType.BIG_ADVANCE if with_schedule else PaymentRecordType.INITIAL_PAYMENT,
                payment_date=request.payment_date,
                payment_method=request.payment_method,
                notes=request.notes,
                recorded_by=user.user_id,
            )
            steps.append("recorded down payment")

        logger.info(
            "Confirmed parcel %s of sale %s with down payment %s (sale %s, %d installment(s)) by %s",
            request.parcel_id,
            request.sale_id,
            request.down_payment,
            target.sale_id,
            len(schedule),
            user.user_id,
        )
        return OperationResult.ok(*_affected(target, split.remainder))

    except SaleOperationError as e:
        logger.warning("Rejected installment confirmation of sale %s: %s", request.sale_id, e.message)
        return OperationResult.rejected(e)
    except RuntimeError:
        if steps:
            logger.error(
                "Installment confirmation of sale %s failed part-way after: %s",
                request.sale_id,
                "; ".join(steps),
            )
        raise


def complete_promise(
    store: RecordStore,
    actor: Optional[User],
    request: PromiseCompletionRequest,
) -> OperationResult:
    """
    Record the completion payment of a confirmed promise of sale.

    The amount must cover what is still owed: price + company fee minus every
    cash payment received so far.
    """

    steps: List[str] = []
    try:
        user = require_permission(actor, Permission.EDIT_SALES)
        if request.amount <= ZERO:
            raise ValidationError("Completion amount must be positive")

        context = load_sale_context(store, request.sale_id)
        sale = context.sale
        require_open_sale(sale)
        if sale.payment_type is not PaymentType.PROMISE_OF_SALE:
            raise ValidationError(f"Sale {sale.sale_id} is not a promise of sale")
        if sale.promise_completed:
            raise ValidationError(f"Promise of sale {sale.sale_id} is already completed")
        if not is_confirmed(sale, context.payments):
            raise ValidationError(f"Promise of sale {sale.sale_id} has not been confirmed yet")

        received = classify_sale_payments(sale, context.payments).total_received()
        outstanding = max(ZERO, sale.total_payable - received)
        if request.amount + TOLERANCE < outstanding:
            raise ValidationError(
                f"Completion amount {request.amount} is less than the {round_cents(outstanding)} outstanding"
            )

        recheck_parcels(store, sale.parcel_ids, [ParcelStatus.SOLD, ParcelStatus.RESERVED])

        completed = replace(sale, promise_completed=True, status=SaleStatus.COMPLETED, updated_at=utc_now())
        update_sale(store, completed)
        steps.append(f"completed sale {sale.sale_id}")

        _record_payment(
            store,
            completed,
            request.amount,
            PaymentRecordType.FULL,
            payment_date=request.payment_date,
            payment_method=request.payment_method,
            notes=request.notes,
            recorded_by=user.user_id,
        )
        steps.append("recorded completion payment")

        for parcel_id in sale.parcel_ids:
            update_parcel_status(store, parcel_id, ParcelStatus.SOLD)
        steps.append("sold parcel(s)")

        logger.info("Completed promise of sale %s by %s", sale.sale_id, user.user_id)
        return OperationResult.ok(sale.sale_id)

    except SaleOperationError as e:
        logger.warning("Rejected promise completion of sale %s: %s", request.sale_id, e.message)
        return OperationResult.rejected(e)
    except RuntimeError:
        if steps:
            logger.error(
                "Promise completion of sale %s failed part-way after: %s",
                request.sale_id,
                "; ".join(steps),
            )
        raise


__all__ = [
    "FullConfirmationRequest",
    "InstallmentConfirmationRequest",
    "ParcelQuote",
    "PromiseCompletionRequest",
    "complete_promise",
    "confirm_full",
    "confirm_installment",
    "quote_parcel",
]
