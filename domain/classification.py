"""
Domain: Payment classification (pure).

Categorizes ledger entries by declared type and attributes them to the parcels
of their sale.

Contract excerpts relevant here:
- A payment against a sale covering n parcels attributes amount / n to each
  parcel. The last parcel takes the division remainder so shares always sum to
  the payment amount.
- Refunds are never cash received.
- When a sale's denormalized reservation / down payment / promise initial
  payment field is positive but the ledger holds no entry of that type for the
  sale, the field stands in for the missing entry. The check is by sale id
  membership, never by amount equality, so a later real entry replaces the
  stand-in instead of adding to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from .money import ZERO, money_sum
from .payment import Payment, PaymentRecordType
from .sale import Sale


class PaymentCategory(str, Enum):
    RESERVATION = "Reservation"
    DOWN_PAYMENT = "DownPayment"
    FULL_PAYMENT = "FullPayment"
    PARTIAL_PAYMENT = "PartialPayment"
    PROMISE_INITIAL_PAYMENT = "PromiseInitialPayment"
    INSTALLMENT_PAYMENT = "InstallmentPayment"
    FIELD_PAYMENT = "FieldPayment"
    REFUND = "Refund"


_CATEGORY_BY_TYPE: Dict[PaymentRecordType, PaymentCategory] = {
    PaymentRecordType.SMALL_ADVANCE: PaymentCategory.RESERVATION,
    PaymentRecordType.BIG_ADVANCE: PaymentCategory.DOWN_PAYMENT,
    PaymentRecordType.FULL: PaymentCategory.FULL_PAYMENT,
    PaymentRecordType.PARTIAL: PaymentCategory.PARTIAL_PAYMENT,
    PaymentRecordType.INITIAL_PAYMENT: PaymentCategory.PROMISE_INITIAL_PAYMENT,
    PaymentRecordType.INSTALLMENT: PaymentCategory.INSTALLMENT_PAYMENT,
    PaymentRecordType.FIELD: PaymentCategory.FIELD_PAYMENT,
    PaymentRecordType.REFUND: PaymentCategory.REFUND,
}

# Payment types that never count toward revenue.
REVENUE_EXCLUDED_TYPES: Set[PaymentRecordType] = {PaymentRecordType.REFUND}


@dataclass(frozen=True, slots=True)
class ParcelShare:
    """
    Part of one payment attributed to one parcel.

    payment_id is None when the share stands in for a denormalized sale field
    rather than a ledger row.
    """

    sale_id: UUID
    parcel_id: UUID
    payment_type: PaymentRecordType
    amount: Decimal
    payment_date: date
    payment_id: Optional[UUID] = None
    recorded_by: Optional[UUID] = None

    @property
    def category(self) -> PaymentCategory:
        return categorize(self.payment_type)

    @property
    def from_ledger(self) -> bool:
        return self.payment_id is not None


@dataclass(frozen=True, slots=True)
class SaleClassification:
    """Classified view of one sale's ledger."""

    sale: Sale
    shares: List[ParcelShare] = field(default_factory=list)
    excluded: List[Payment] = field(default_factory=list)

    def received(self, parcel_id: UUID, payment_type: Optional[PaymentRecordType] = None) -> Decimal:
        return money_sum(
            s.amount
            for s in self.shares
            if s.parcel_id == parcel_id and (payment_type is None or s.payment_type is payment_type)
        )

    def received_by_type(self, parcel_id: UUID) -> Dict[PaymentRecordType, Decimal]:
        totals: Dict[PaymentRecordType, Decimal] = {}
        for share in self.shares:
            if share.parcel_id == parcel_id:
                totals[share.payment_type] = totals.get(share.payment_type, ZERO) + share.amount
        return totals

    def total_received(self) -> Decimal:
        return money_sum(s.amount for s in self.shares)


def categorize(payment_type: PaymentRecordType) -> PaymentCategory:
    return _CATEGORY_BY_TYPE[payment_type]


def is_cash_received(payment: Payment) -> bool:
    return payment.payment_type not in REVENUE_EXCLUDED_TYPES


def divide_across(amount: Decimal, count: int) -> List[Decimal]:
    """
    Split an amount into `count` equal parts whose sum is exactly `amount`.
    """

    if count < 1:
        raise ValueError("count must be at least 1")
    part = amount / count
    parts = [part] * (count - 1)
    parts.append(amount - part * (count - 1))
    return parts


def split_across_parcels(payment: Payment, sale: Sale) -> List[ParcelShare]:
    """Attribute one payment to each parcel of its sale."""

    if payment.sale_id != sale.sale_id:
        raise ValueError(f"payment {payment.payment_id} does not belong to sale {sale.sale_id}")
    return [
        ParcelShare(
            sale_id=sale.sale_id,
            parcel_id=parcel_id,
            payment_type=payment.payment_type,
            amount=amount,
            payment_date=payment.payment_date,
            payment_id=payment.payment_id,
            recorded_by=payment.recorded_by,
        )
        for parcel_id, amount in zip(sale.parcel_ids, divide_across(payment.amount, sale.piece_count))
    ]


def _denormalized_amounts(sale: Sale) -> Iterable[Tuple[PaymentRecordType, Decimal]]:
    yield PaymentRecordType.SMALL_ADVANCE, sale.small_advance_amount
    yield PaymentRecordType.BIG_ADVANCE, sale.big_advance_amount
    if sale.promise_initial_payment is not None:
        yield PaymentRecordType.INITIAL_PAYMENT, sale.promise_initial_payment


def fallback_shares(sale: Sale, recorded_types: Set[PaymentRecordType]) -> List[ParcelShare]:
    """
    Shares standing in for denormalized sale amounts with no ledger entry.

    Args:
        sale: Sale whose fields are consulted
        recorded_types: Payment types the ledger already holds for this sale
    """

    shares: List[ParcelShare] = []
    for payment_type, amount in _denormalized_amounts(sale):
        if amount <= ZERO or payment_type in recorded_types:
            continue
        for parcel_id, part in zip(sale.parcel_ids, divide_across(amount, sale.piece_count)):
            shares.append(
                ParcelShare(
                    sale_id=sale.sale_id,
                    parcel_id=parcel_id,
                    payment_type=payment_type,
                    amount=part,
                    payment_date=sale.sale_date,
                )
            )
    return shares


def classify_sale_payments(
    sale: Sale,
    payments: Iterable[Payment],
    *,
    include_fallback: bool = True,
) -> SaleClassification:
    """
    Classify a sale's ledger into per-parcel cash shares.

    Args:
        sale: The sale
        payments: Payments to consider; entries of other sales are ignored
        include_fallback: Let denormalized sale amounts stand in for missing
            ledger entries

    Returns:
        SaleClassification with cash shares and the excluded (refund) entries
    """

    own = [p for p in payments if p.sale_id == sale.sale_id]
    shares: List[ParcelShare] = []
    excluded: List[Payment] = []

    for payment in own:
        if not is_cash_received(payment):
            excluded.append(payment)
            continue
        shares.extend(split_across_parcels(payment, sale))

    if include_fallback:
        recorded_types = {p.payment_type for p in own}
        shares.extend(fallback_shares(sale, recorded_types))

    return SaleClassification(sale=sale, shares=shares, excluded=excluded)


__all__ = [
    "ParcelShare",
    "PaymentCategory",
    "REVENUE_EXCLUDED_TYPES",
    "SaleClassification",
    "categorize",
    "classify_sale_payments",
    "divide_across",
    "fallback_shares",
    "is_cash_received",
    "split_across_parcels",
]
