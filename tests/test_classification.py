"""
Tests for `domain/classification.py`.

Covers contract rules:
- A payment against an n-parcel sale attributes amount / n to each parcel and
  the shares always sum to the payment.
- Refunds are never cash received.
- Denormalized reservation / down payment fields stand in for missing ledger
  entries, exactly once, decided by sale membership not amount equality.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from domain.classification import (
    PaymentCategory,
    categorize,
    classify_sale_payments,
    divide_across,
    split_across_parcels,
)
from domain.payment import Payment, PaymentRecordType
from fakes import make_sale

CLIENT_ID = UUID("00000000-0000-0000-0000-000000000001")


def _payment(sale, payment_type: PaymentRecordType, amount: str) -> Payment:
    return Payment(
        payment_id=uuid4(),
        client_id=sale.client_id,
        sale_id=sale.sale_id,
        amount=Decimal(amount),
        payment_type=payment_type,
        payment_date=date(2024, 3, 1),
    )


@pytest.mark.parametrize("count", [1, 2, 3, 7])
def test_divide_across_sums_exactly(count: int) -> None:
    """Verify the parts always add back up to the amount."""

    parts = divide_across(Decimal("100"), count)

    assert len(parts) == count
    assert sum(parts) == Decimal("100")


def test_divide_across_rejects_zero_count() -> None:
    """Verify dividing across no parcels is an error."""

    with pytest.raises(ValueError):
        divide_across(Decimal("100"), 0)


def test_split_across_parcels_attributes_equal_shares() -> None:
    """Verify a payment on a 2-parcel sale gives half to each parcel."""

    sale = make_sale(CLIENT_ID, [uuid4(), uuid4()])
    payment = _payment(sale, PaymentRecordType.INSTALLMENT, "8000")

    shares = split_across_parcels(payment, sale)

    assert [s.parcel_id for s in shares] == list(sale.parcel_ids)
    assert [s.amount for s in shares] == [Decimal("4000"), Decimal("4000")]
    assert all(s.payment_id == payment.payment_id for s in shares)
    assert shares[0].category is PaymentCategory.INSTALLMENT_PAYMENT


def test_split_across_parcels_rejects_foreign_payment() -> None:
    """Verify a payment of another sale cannot be attributed."""

    sale = make_sale(CLIENT_ID, [uuid4()])
    other = make_sale(CLIENT_ID, [uuid4()])

    with pytest.raises(ValueError):
        split_across_parcels(_payment(other, PaymentRecordType.FULL, "1"), sale)


def test_refunds_are_excluded_from_cash_received() -> None:
    """Verify a refund lands in `excluded`, not in the shares."""

    sale = make_sale(CLIENT_ID, [uuid4()], small_advance_amount=Decimal("5000"))
    reservation = _payment(sale, PaymentRecordType.SMALL_ADVANCE, "5000")
    refund = _payment(sale, PaymentRecordType.REFUND, "-5000")

    result = classify_sale_payments(sale, [reservation, refund])

    assert result.total_received() == Decimal("5000")
    assert result.excluded == [refund]
    assert categorize(PaymentRecordType.REFUND) is PaymentCategory.REFUND


def test_fallback_uses_denormalized_fields_when_ledger_is_empty() -> None:
    """Verify reservation and down payment fields stand in for missing entries."""

    parcels = [uuid4(), uuid4()]
    sale = make_sale(
        CLIENT_ID,
        parcels,
        small_advance_amount=Decimal("5000"),
        big_advance_amount=Decimal("20000"),
    )

    result = classify_sale_payments(sale, [])

    assert result.received(parcels[0], PaymentRecordType.SMALL_ADVANCE) == Decimal("2500")
    assert result.received(parcels[1], PaymentRecordType.BIG_ADVANCE) == Decimal("10000")
    assert result.total_received() == Decimal("25000")
    assert all(not s.from_ledger for s in result.shares)


def test_fallback_never_double_counts_a_recorded_entry() -> None:
    """Verify a ledger entry of the same type replaces the field instead of adding to it."""

    sale = make_sale(CLIENT_ID, [uuid4()], small_advance_amount=Decimal("5000"))

    result = classify_sale_payments(sale, [_payment(sale, PaymentRecordType.SMALL_ADVANCE, "5000")])

    assert result.total_received() == Decimal("5000")


def test_fallback_is_decided_by_membership_not_amount() -> None:
    """Verify a recorded entry with a different amount still suppresses the fallback."""

    sale = make_sale(CLIENT_ID, [uuid4()], small_advance_amount=Decimal("5000"))

    result = classify_sale_payments(sale, [_payment(sale, PaymentRecordType.SMALL_ADVANCE, "3000")])

    assert result.total_received() == Decimal("3000")


def test_fallback_can_be_disabled() -> None:
    """Verify include_fallback=False only counts ledger entries."""

    sale = make_sale(CLIENT_ID, [uuid4()], small_advance_amount=Decimal("5000"))

    result = classify_sale_payments(sale, [], include_fallback=False)

    assert result.shares == []


def test_received_by_type_groups_per_parcel() -> None:
    """Verify a parcel's per-type received amount sums its shares of that type."""

    parcel = uuid4()
    sale = make_sale(CLIENT_ID, [parcel])
    payments = [
        _payment(sale, PaymentRecordType.INSTALLMENT, "800"),
        _payment(sale, PaymentRecordType.INSTALLMENT, "800"),
        _payment(sale, PaymentRecordType.BIG_ADVANCE, "20000"),
    ]

    totals = classify_sale_payments(sale, payments).received_by_type(parcel)

    assert totals == {
        PaymentRecordType.INSTALLMENT: Decimal("1600"),
        PaymentRecordType.BIG_ADVANCE: Decimal("20000"),
    }
