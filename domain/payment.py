"""
Domain: Payment ledger entries.

Payments are append-only. A sale's financial state is the aggregate of its
payments plus its installments, never a single cached balance.

Refunds are stored as negative amounts and never count as cash received.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


class PaymentRecordType(str, Enum):
    """
    Declared payment type, as stored on the row.

    SMALL_ADVANCE is the reservation deposit, BIG_ADVANCE the down payment that
    confirms an installment sale, INITIAL_PAYMENT the first payment of a
    promise of sale.
    """

    SMALL_ADVANCE = "SmallAdvance"
    BIG_ADVANCE = "BigAdvance"
    FULL = "Full"
    PARTIAL = "Partial"
    INITIAL_PAYMENT = "InitialPayment"
    INSTALLMENT = "Installment"
    FIELD = "Field"
    REFUND = "Refund"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "BankTransfer"
    CHECK = "Check"
    CREDIT_CARD = "CreditCard"
    OTHER = "Other"


@dataclass(frozen=True, slots=True)
class Payment:
    """Single ledger entry against a sale."""

    payment_id: UUID
    client_id: UUID
    sale_id: Optional[UUID]
    amount: Decimal
    payment_type: PaymentRecordType
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.CASH
    installment_id: Optional[UUID] = None
    notes: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.payment_type is PaymentRecordType.REFUND:
            if self.amount > 0:
                raise ValueError("refund amount must be zero or negative")
        elif self.amount < 0:
            raise ValueError(f"{self.payment_type.value} payment amount must be non-negative")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    @property
    def is_refund(self) -> bool:
        return self.payment_type is PaymentRecordType.REFUND


__all__ = ["Payment", "PaymentMethod", "PaymentRecordType"]
