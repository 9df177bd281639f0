"""
Domain: Installment schedules.

Governed by:
- An installment schedule is generated exactly once per confirmation event.
  Corrections go through reset, never through regeneration.

Contract excerpts relevant here:
- remaining balance = parcel price + company fee - reservation - down payment
- `term` rows (1..120), installment_number 1..term, due dates one calendar
  month apart starting on the start date.
- The schedule sums to the remaining balance. Amounts are truncated to cents
  and the last installment absorbs the remainder.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from .money import TOLERANCE, ZERO, floor_cents, money_sum, require_non_negative
from .time import add_months

MIN_TERM_MONTHS = 1
MAX_TERM_MONTHS = 120


class InstallmentStatus(str, Enum):
    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"
    LATE = "Late"


@dataclass(frozen=True, slots=True)
class Installment:
    """
    One monthly obligation of an installment sale.

    stacked_amount holds balance rolled over from earlier installments; it is
    owed on top of amount_due.
    """

    installment_id: UUID
    sale_id: UUID
    installment_number: int
    amount_due: Decimal
    due_date: date
    amount_paid: Decimal = ZERO
    stacked_amount: Decimal = ZERO
    status: InstallmentStatus = InstallmentStatus.UNPAID
    paid_date: Optional[date] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.installment_number < 1:
            raise ValueError("installment_number must start at 1")
        require_non_negative("amount_due", self.amount_due)
        require_non_negative("amount_paid", self.amount_paid)
        require_non_negative("stacked_amount", self.stacked_amount)

    @property
    def total_required(self) -> Decimal:
        return self.amount_due + self.stacked_amount

    @property
    def remaining(self) -> Decimal:
        return max(ZERO, self.total_required - self.amount_paid)

    @property
    def is_paid(self) -> bool:
        return self.status is InstallmentStatus.PAID

    def is_overdue(self, as_of: date) -> bool:
        """Unpaid balance left on a due date strictly before `as_of`."""
        return not self.is_paid and self.remaining > TOLERANCE and self.due_date < as_of


@dataclass(frozen=True, slots=True)
class InstallmentAllocation:
    """
    Outcome of applying one payment to a schedule.

    updated: every installment that received money, in the new state
    applied: (installment_id, amount applied) pairs, in schedule order
    unapplied: money left over once every installment was covered
    """

    updated: List[Installment]
    applied: List[Tuple[UUID, Decimal]]
    unapplied: Decimal


def generate_schedule(
    sale_id: UUID,
    remaining_balance: Decimal,
    term_months: int,
    start_date: date,
    *,
    id_factory: Callable[[], UUID] = uuid4,
) -> List[Installment]:
    """
    Produce the equal monthly obligations for a confirmed installment sale.

    Args:
        sale_id: Sale the schedule belongs to
        remaining_balance: Balance left after reservation and down payment
        term_months: Number of monthly installments (1..120)
        start_date: Due date of installment 1
        id_factory: Installment id source (overridable for deterministic ids)

    Returns:
        Installments numbered 1..term_months

    Example:
        generate_schedule(sale_id, Decimal("80000"), 10, date(2024, 1, 1))
        # -> 10 x 8000.00, due 2024-01-01 .. 2024-10-01
    """

    if not MIN_TERM_MONTHS <= term_months <= MAX_TERM_MONTHS:
        raise ValueError(
            f"term_months must be between {MIN_TERM_MONTHS} and {MAX_TERM_MONTHS}, got {term_months}"
        )
    if remaining_balance < ZERO:
        raise ValueError(f"remaining balance must be non-negative, got {remaining_balance}")

    monthly = floor_cents(remaining_balance / term_months)
    last = remaining_balance - monthly * (term_months - 1)

    schedule: List[Installment] = []
    for index in range(term_months):
        amount_due = last if index == term_months - 1 else monthly
        schedule.append(
            Installment(
                installment_id=id_factory(),
                sale_id=sale_id,
                installment_number=index + 1,
                amount_due=amount_due,
                due_date=add_months(start_date, index),
                # Nothing owed means nothing to collect.
                status=InstallmentStatus.PAID if amount_due == ZERO else InstallmentStatus.UNPAID,
            )
        )
    return schedule


def monthly_amount(remaining_balance: Decimal, term_months: int) -> Decimal:
    """Headline monthly amount stored on the sale."""
    return floor_cents(remaining_balance / term_months)


def outstanding_balance(installments: Sequence[Installment]) -> Decimal:
    return money_sum(i.remaining for i in installments if not i.is_paid)


def all_paid(installments: Sequence[Installment]) -> bool:
    return bool(installments) and all(i.is_paid for i in installments)


def overdue_installments(installments: Sequence[Installment], as_of: date) -> List[Installment]:
    return [i for i in installments if i.is_overdue(as_of)]


def allocate_payment(
    installments: Sequence[Installment],
    amount: Decimal,
    paid_on: date,
) -> InstallmentAllocation:
    """
    Apply a payment to unpaid installments in installment-number order.

    Each installment takes at most its remaining balance. Fully covered ones
    (within one cent) become Paid; partly covered ones become Partial. Every
    touched installment gets `paid_date = paid_on`.
    """

    if amount <= ZERO:
        raise ValueError("payment amount must be positive")

    left = amount
    updated: List[Installment] = []
    applied: List[Tuple[UUID, Decimal]] = []

    for installment in sorted(installments, key=lambda i: i.installment_number):
        if left <= ZERO:
            break
        if installment.is_paid or installment.remaining <= ZERO:
            continue

        portion = min(left, installment.remaining)
        new_paid = installment.amount_paid + portion
        fully_paid = new_paid >= installment.total_required - TOLERANCE
        updated.append(
            replace(
                installment,
                amount_paid=new_paid,
                status=InstallmentStatus.PAID if fully_paid else InstallmentStatus.PARTIAL,
                paid_date=paid_on,
            )
        )
        applied.append((installment.installment_id, portion))
        left -= portion

    return InstallmentAllocation(updated=updated, applied=applied, unapplied=left)


def mark_overdue(installments: Sequence[Installment], as_of: date) -> List[Installment]:
    """Return the overdue installments re-labelled Late (already Late ones are skipped)."""

    return [
        replace(i, status=InstallmentStatus.LATE)
        for i in installments
        if i.is_overdue(as_of) and i.status is not InstallmentStatus.LATE
    ]


__all__ = [
    "Installment",
    "InstallmentAllocation",
    "InstallmentStatus",
    "MAX_TERM_MONTHS",
    "MIN_TERM_MONTHS",
    "all_paid",
    "allocate_payment",
    "generate_schedule",
    "mark_overdue",
    "monthly_amount",
    "outstanding_balance",
    "overdue_installments",
]
