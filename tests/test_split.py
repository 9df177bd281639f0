"""
Tests for `domain/split.py`.

Covers contract rules:
- Splitting conserves every money field: new sale + shrunk original == original.
- The new sale covers only the acted-upon parcel and gets an equal share.
- Installments and ledger entries of the original are rescaled by (n - 1) / n;
  the removed ledger share moves to the new sale.
- A single-parcel sale is not split.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from domain.installment import generate_schedule
from domain.payment import Payment, PaymentRecordType
from domain.sale import PaymentType, SaleStatus
from domain.split import sale_share, split_parcel
from fakes import make_sale

NOW = datetime(2024, 2, 1, 12, 0, 0, tzinfo=timezone.utc)
CLIENT_ID = UUID("00000000-0000-0000-0000-000000000001")


def _parcels(n: int):
    return [uuid4() for _ in range(n)]


def _payment(sale, amount: str, payment_type=PaymentRecordType.SMALL_ADVANCE) -> Payment:
    return Payment(
        payment_id=uuid4(),
        client_id=sale.client_id,
        sale_id=sale.sale_id,
        amount=Decimal(amount),
        payment_type=payment_type,
        payment_date=date(2024, 1, 1),
    )


def test_split_two_parcel_sale_scenario() -> None:
    """Verify 2 parcels at 200,000 split into 100,000 each, original status unchanged."""

    parcels = _parcels(2)
    sale = make_sale(
        CLIENT_ID,
        parcels,
        payment_type=PaymentType.FULL,
        total_selling_price=Decimal("200000"),
        total_purchase_cost=Decimal("120000"),
    )
    new_id = uuid4()

    result = split_parcel(sale, parcels[0], new_sale_id=new_id, now=NOW)

    assert result.split is True
    assert result.target.sale_id == new_id
    assert result.target.parcel_ids == (parcels[0],)
    assert result.target.total_selling_price == Decimal("100000")
    assert result.remainder.sale_id == sale.sale_id
    assert result.remainder.parcel_ids == (parcels[1],)
    assert result.remainder.total_selling_price == Decimal("100000")
    assert result.remainder.status is SaleStatus.PENDING
    assert result.target.notes == f"Split from sale {sale.sale_id}"


@pytest.mark.parametrize("n", [2, 3, 4, 7])
def test_split_conserves_money_fields(n: int) -> None:
    """Verify new + shrunk original equal the pre-split totals within one cent per parcel."""

    sale = make_sale(
        CLIENT_ID,
        _parcels(n),
        total_selling_price=Decimal("100000.01"),
        total_purchase_cost=Decimal("61234.57"),
        small_advance_amount=Decimal("10000"),
        big_advance_amount=Decimal("33333.33"),
        company_fee_amount=Decimal("2000.02"),
        monthly_installment_amount=Decimal("1234.56"),
    )

    result = split_parcel(sale, sale.parcel_ids[1], new_sale_id=uuid4(), now=NOW)
    target, remainder = result.target, result.remainder
    tolerance = Decimal("0.01") * n

    for name in (
        "total_selling_price",
        "total_purchase_cost",
        "profit_margin",
        "small_advance_amount",
        "big_advance_amount",
        "company_fee_amount",
    ):
        combined = getattr(target, name) + getattr(remainder, name)
        assert abs(combined - getattr(sale, name)) <= tolerance, name

    assert remainder.piece_count == n - 1
    assert sale.parcel_ids[1] not in remainder.parcel_ids


def test_split_keeps_schedule_with_original() -> None:
    """Verify the new sale carries no schedule fields; the original keeps them."""

    sale = make_sale(
        CLIENT_ID,
        _parcels(2),
        number_of_installments=10,
        monthly_installment_amount=Decimal("8000"),
        installment_start_date=date(2024, 1, 1),
        installment_end_date=date(2024, 10, 1),
    )

    result = split_parcel(sale, sale.parcel_ids[0], new_sale_id=uuid4(), now=NOW)

    assert result.target.number_of_installments is None
    assert result.target.monthly_installment_amount is None
    assert result.remainder.number_of_installments == 10
    assert result.remainder.monthly_installment_amount == Decimal("4000")


def test_split_rescales_installments() -> None:
    """Verify the original's installments are rescaled by (n - 1) / n."""

    sale = make_sale(CLIENT_ID, _parcels(4))
    schedule = generate_schedule(sale.sale_id, Decimal("8000"), 2, date(2024, 1, 1))

    result = split_parcel(sale, sale.parcel_ids[0], new_sale_id=uuid4(), now=NOW, installments=schedule)

    assert [i.amount_due for i in result.remainder_installments] == [Decimal("3000"), Decimal("3000")]
    assert [i.installment_id for i in result.remainder_installments] == [i.installment_id for i in schedule]


def test_split_moves_ledger_share_to_new_sale() -> None:
    """Verify each payment keeps (n - 1) / n and the removed share moves to the new sale."""

    sale = make_sale(CLIENT_ID, _parcels(2), small_advance_amount=Decimal("10000"))
    reservation = _payment(sale, "10000")
    refund = _payment(sale, "-500", PaymentRecordType.REFUND)
    new_id = uuid4()

    result = split_parcel(
        sale,
        sale.parcel_ids[0],
        new_sale_id=new_id,
        now=NOW,
        payments=[reservation, refund],
    )

    assert [p.amount for p in result.remainder_payments] == [Decimal("5000")]
    assert result.remainder_payments[0].payment_id == reservation.payment_id
    moved = result.moved_payments
    assert len(moved) == 1
    assert moved[0].sale_id == new_id
    assert moved[0].amount == Decimal("5000")
    assert moved[0].payment_type is PaymentRecordType.SMALL_ADVANCE
    assert moved[0].payment_date == reservation.payment_date


def test_split_single_parcel_sale_is_noop() -> None:
    """Verify a single-parcel sale is returned as the target, unsplit."""

    sale = make_sale(CLIENT_ID, _parcels(1))

    result = split_parcel(sale, sale.parcel_ids[0], new_sale_id=uuid4(), now=NOW)

    assert result.split is False
    assert result.target is sale
    assert result.remainder is None


def test_split_rejects_foreign_parcel() -> None:
    """Verify splitting a parcel the sale does not cover raises."""

    sale = make_sale(CLIENT_ID, _parcels(2))

    with pytest.raises(ValueError):
        split_parcel(sale, uuid4(), new_sale_id=uuid4(), now=NOW)


def test_split_requires_utc_now() -> None:
    """Verify the split timestamp must be UTC."""

    sale = make_sale(CLIENT_ID, _parcels(2))

    with pytest.raises(ValueError):
        split_parcel(sale, sale.parcel_ids[0], new_sale_id=uuid4(), now=datetime(2024, 2, 1))


def test_sale_share_divides_equally() -> None:
    """Verify the per-parcel share is the total divided by the parcel count."""

    sale = make_sale(CLIENT_ID, _parcels(4), total_selling_price=Decimal("400000"))

    assert sale_share(sale).selling_price == Decimal("100000")
    assert sale_share(sale).company_fee is None
