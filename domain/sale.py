"""
Domain: Land sales.

Governed by:
- Sale lifecycle: Pending (reserved) -> confirmed (full cash, or down payment +
  installments, or promise of sale) -> Completed; Cancelled from anywhere.

Contract excerpts relevant here:
- A sale may cover several parcels. Its totals are the sums over its parcels.
- The stored `status` is coarse and often stale. Only the terminal Completed and
  Cancelled markers are trusted; everything else is re-derived by
  `domain.lifecycle.resolve_sale_status`.
- A sale never has an empty parcel list.

This module captures the sale record. Splitting, confirmation and reversal live
in `domain.split` and the sale services.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional, Tuple
from uuid import UUID

from .money import ZERO, require_non_negative
from .time import require_utc_timestamp


class PaymentType(str, Enum):
    """How the buyer pays for the sale."""

    FULL = "Full"
    INSTALLMENT = "Installment"
    PROMISE_OF_SALE = "PromiseOfSale"


class SaleStatus(str, Enum):
    """
    Sale status.

    Stored rows only ever carry Pending, AwaitingPayment, Completed or
    Cancelled. InstallmentsOngoing is derived by the resolver and never stored.
    """

    PENDING = "Pending"
    AWAITING_PAYMENT = "AwaitingPayment"
    INSTALLMENTS_ONGOING = "InstallmentsOngoing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# Values the `sales.status` column accepts.
STORED_SALE_STATUSES: FrozenSet[SaleStatus] = frozenset(
    {
        SaleStatus.PENDING,
        SaleStatus.AWAITING_PAYMENT,
        SaleStatus.COMPLETED,
        SaleStatus.CANCELLED,
    }
)


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Aggregate root of the ledger.

    Money fields are totals over every parcel of the sale:
    - total_selling_price: sum of the parcels' list prices at creation
    - total_purchase_cost: sum of the parcels' purchase costs
    - small_advance_amount: reservation deposit
    - big_advance_amount: down payment recorded at confirmation
    - company_fee_amount: commission charged at confirmation (None until then)
    """

    sale_id: UUID
    client_id: UUID
    parcel_ids: Tuple[UUID, ...]
    payment_type: PaymentType
    total_selling_price: Decimal
    total_purchase_cost: Decimal
    profit_margin: Decimal
    small_advance_amount: Decimal
    big_advance_amount: Decimal
    status: SaleStatus
    sale_date: date

    company_fee_percentage: Optional[Decimal] = None
    company_fee_amount: Optional[Decimal] = None

    # Installment schedule summary (Installment sales only)
    number_of_installments: Optional[int] = None
    monthly_installment_amount: Optional[Decimal] = None
    installment_start_date: Optional[date] = None
    installment_end_date: Optional[date] = None

    deadline_date: Optional[date] = None

    # Promise of sale
    promise_initial_payment: Optional[Decimal] = None
    promise_completed: bool = False

    # Explicit confirmation markers
    is_confirmed: bool = False
    big_advance_confirmed: bool = False

    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    confirmed_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.parcel_ids:
            raise ValueError("sale must cover at least one parcel")
        if len(set(self.parcel_ids)) != len(self.parcel_ids):
            raise ValueError("sale parcel list contains duplicates")
        require_non_negative("total_selling_price", self.total_selling_price)
        require_non_negative("total_purchase_cost", self.total_purchase_cost)
        require_non_negative("small_advance_amount", self.small_advance_amount)
        require_non_negative("big_advance_amount", self.big_advance_amount)
        require_non_negative("company_fee_amount", self.company_fee_amount)
        if self.number_of_installments is not None and self.number_of_installments < 1:
            raise ValueError("number_of_installments must be at least 1")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def piece_count(self) -> int:
        return len(self.parcel_ids)

    @property
    def company_fee(self) -> Decimal:
        """Company fee as an amount, zero when none was charged."""
        return self.company_fee_amount if self.company_fee_amount is not None else ZERO

    @property
    def total_payable(self) -> Decimal:
        return self.total_selling_price + self.company_fee

    def covers(self, parcel_id: UUID) -> bool:
        return parcel_id in self.parcel_ids


__all__ = ["STORED_SALE_STATUSES", "PaymentType", "Sale", "SaleStatus"]
