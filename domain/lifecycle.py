"""
Domain: Sale lifecycle resolution (pure).

Derives a sale's lifecycle state from its record, its payments and its
installments. The stored status is trusted only for the terminal Completed and
Cancelled markers.

Decision order:
1. Cancelled if stored so (terminal).
2. Completed if stored so, or every installment is Paid (installment sale), or
   the promise completion flag is set (promise of sale).
3. Otherwise the sale is confirmed when any of these holds: a non-null company
   fee amount (zero included), a positive down payment, an explicit
   confirmation flag, or a down-payment / full-payment / promise initial
   payment ledger entry. A reset sale is never confirmed.
4. Not confirmed -> Pending.
5. Confirmed installment sale -> InstallmentsOngoing once a down payment (or
   an installment payment) is in the ledger, AwaitingPayment before.
6. Confirmed full / promise sale -> Completed once a full payment is in the
   ledger, AwaitingPayment before.

The same `is_confirmed` and `is_reset` predicates drive report eligibility, so
the status shown for a sale and whether its money is reported never disagree.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, List, Sequence

from .installment import Installment, all_paid
from .money import ZERO
from .payment import Payment, PaymentRecordType
from .sale import PaymentType, Sale, SaleStatus

# Ledger entries that only exist once a sale has been confirmed.
CONFIRMING_PAYMENT_TYPES: FrozenSet[PaymentRecordType] = frozenset(
    {
        PaymentRecordType.BIG_ADVANCE,
        PaymentRecordType.FULL,
        PaymentRecordType.INITIAL_PAYMENT,
    }
)


def _own_payments(sale: Sale, payments: Iterable[Payment]) -> List[Payment]:
    return [p for p in payments if p.sale_id == sale.sale_id]


def is_reset(sale: Sale) -> bool:
    """
    A sale reverted to (or never past) a bare pending state.

    Pending, no reservation, no down payment, no company fee recorded.
    """

    return (
        sale.status is SaleStatus.PENDING
        and sale.small_advance_amount == ZERO
        and sale.big_advance_amount == ZERO
        and sale.company_fee_amount is None
    )


def is_confirmed(sale: Sale, payments: Iterable[Payment] = ()) -> bool:
    if is_reset(sale):
        return False
    if sale.company_fee_amount is not None:
        return True
    if sale.big_advance_amount > ZERO:
        return True
    if sale.is_confirmed or sale.big_advance_confirmed:
        return True
    return any(p.payment_type in CONFIRMING_PAYMENT_TYPES for p in _own_payments(sale, payments))


def resolve_sale_status(
    sale: Sale,
    payments: Iterable[Payment] = (),
    installments: Sequence[Installment] = (),
) -> SaleStatus:
    """
    Derive the lifecycle state of a sale.

    Args:
        sale: Sale record
        payments: Ledger entries (entries of other sales are ignored)
        installments: Installments (entries of other sales are ignored)

    Returns:
        One of Pending, AwaitingPayment, InstallmentsOngoing, Completed, Cancelled
    """

    if sale.status is SaleStatus.CANCELLED:
        return SaleStatus.CANCELLED

    own_payments = _own_payments(sale, payments)
    own_installments = [i for i in installments if i.sale_id == sale.sale_id]

    if sale.status is SaleStatus.COMPLETED:
        return SaleStatus.COMPLETED
    if sale.payment_type is PaymentType.INSTALLMENT and all_paid(own_installments):
        return SaleStatus.COMPLETED
    if sale.payment_type is PaymentType.PROMISE_OF_SALE and sale.promise_completed:
        return SaleStatus.COMPLETED

    if not is_confirmed(sale, own_payments):
        return SaleStatus.PENDING

    recorded = {p.payment_type for p in own_payments if p.amount > ZERO}

    if sale.payment_type is PaymentType.INSTALLMENT:
        if recorded & {PaymentRecordType.BIG_ADVANCE, PaymentRecordType.INSTALLMENT}:
            return SaleStatus.INSTALLMENTS_ONGOING
        return SaleStatus.AWAITING_PAYMENT

    if PaymentRecordType.FULL in recorded:
        return SaleStatus.COMPLETED
    return SaleStatus.AWAITING_PAYMENT


__all__ = [
    "CONFIRMING_PAYMENT_TYPES",
    "is_confirmed",
    "is_reset",
    "resolve_sale_status",
]
