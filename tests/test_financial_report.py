"""
Tests for `services/financial_report_service.py`.

Covers contract rules:
- Cancelled and reset sales contribute zero to every bucket.
- Refunds never count as cash received.
- Each amount is split equally across the sale's parcels and grouped by batch.
- Company fees are dated by sale date, ledger entries by payment date.
- The same snapshot always yields the same report.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from domain.land import LandBatch, LandParcel, ParcelStatus
from domain.payment import Payment, PaymentRecordType
from domain.sale import SaleStatus
from domain.user import User, UserRole
from fakes import make_sale
from services.errors import PermissionDeniedError
from services.financial_report_service import (
    UNASSIGNED_BATCH_NAME,
    DateRange,
    ReportBucket,
    ReportPeriod,
    build_financial_report,
    financial_report,
    resolve_date_range,
)
from services.snapshot import LedgerSnapshot

OWNER = User(user_id=uuid4(), name="Owner", role=UserRole.OWNER)
CLIENT_ID = uuid4()
BATCH_A = LandBatch(batch_id=uuid4(), name="Lotissement A", location="Kenitra")
BATCH_B = LandBatch(batch_id=uuid4(), name="Lotissement B", location="Rabat")


def _parcel(batch: LandBatch, piece_number: str) -> LandParcel:
    return LandParcel(
        parcel_id=uuid4(),
        batch_id=batch.batch_id,
        piece_number=piece_number,
        surface_area=Decimal("200"),
        purchase_cost=Decimal("60000"),
        selling_price_full=Decimal("100000"),
        selling_price_installment=Decimal("100000"),
        status=ParcelStatus.SOLD,
    )


def _payment(sale, payment_type: PaymentRecordType, amount: str, day: date) -> Payment:
    return Payment(
        payment_id=uuid4(),
        client_id=CLIENT_ID,
        sale_id=sale.sale_id,
        amount=Decimal(amount),
        payment_type=payment_type,
        payment_date=day,
        recorded_by=OWNER.user_id,
    )


P1 = _parcel(BATCH_A, "1")
P2 = _parcel(BATCH_A, "2")
P3 = _parcel(BATCH_B, "1")


def _snapshot() -> LedgerSnapshot:
    """
    sale1 covers P1 (batch A) and P3 (batch B): reservation 10,000, down
    payment 40,000, one installment of 8,000, a refund, company fee 4,000.
    sale2 is cancelled and sale3 is reset; both carry stale entries.
    """

    sale1 = make_sale(
        CLIENT_ID,
        [P1.parcel_id, P3.parcel_id],
        total_selling_price=Decimal("200000"),
        small_advance_amount=Decimal("10000"),
        big_advance_amount=Decimal("40000"),
        company_fee_amount=Decimal("4000"),
        company_fee_percentage=Decimal("2"),
        status=SaleStatus.AWAITING_PAYMENT,
        sale_date=date(2024, 5, 1),
        created_by=OWNER.user_id,
    )
    sale2 = make_sale(
        CLIENT_ID,
        [P2.parcel_id],
        company_fee_amount=Decimal("0"),
        status=SaleStatus.CANCELLED,
        sale_date=date(2024, 5, 3),
    )
    sale3 = make_sale(CLIENT_ID, [P2.parcel_id], sale_date=date(2024, 5, 4))

    payments = [
        _payment(sale1, PaymentRecordType.SMALL_ADVANCE, "10000", date(2024, 5, 2)),
        _payment(sale1, PaymentRecordType.BIG_ADVANCE, "40000", date(2024, 5, 10)),
        _payment(sale1, PaymentRecordType.INSTALLMENT, "8000", date(2024, 5, 15)),
        _payment(sale1, PaymentRecordType.REFUND, "-1000", date(2024, 5, 16)),
        _payment(sale2, PaymentRecordType.FULL, "50000", date(2024, 5, 3)),
        _payment(sale3, PaymentRecordType.BIG_ADVANCE, "20000", date(2024, 5, 4)),
    ]
    return LedgerSnapshot(
        sales=[sale1, sale2, sale3],
        payments=payments,
        parcels=[P1, P2, P3],
        batches=[BATCH_A, BATCH_B],
        users=[OWNER],
    )


def test_month_report_totals() -> None:
    """Verify the bucket totals, cash received and grand total for the month."""

    report = build_financial_report(_snapshot(), ReportPeriod.MONTH, today=date(2024, 5, 20))

    assert report.date_range == DateRange(date(2024, 5, 1), date(2024, 5, 20))
    assert report.totals == {
        ReportBucket.INSTALLMENT: Decimal("8000"),
        ReportBucket.SMALL_ADVANCE: Decimal("10000"),
        ReportBucket.BIG_ADVANCE: Decimal("40000"),
        ReportBucket.FULL: Decimal("0"),
        ReportBucket.PROMISE_OF_SALE: Decimal("0"),
        ReportBucket.COMPANY_FEE: Decimal("4000"),
    }
    assert report.cash_received == Decimal("58000")
    assert report.grand_total == Decimal("62000")


def test_month_report_splits_across_batches() -> None:
    """Verify a 2-parcel sale gives each batch half of every bucket."""

    report = build_financial_report(_snapshot(), ReportPeriod.MONTH, today=date(2024, 5, 20))

    assert [s.batch_name for s in report.summary] == ["Lotissement A", "Lotissement B"]
    assert all(s.total == Decimal("31000") for s in report.summary)
    assert report.summary[0].amounts[ReportBucket.BIG_ADVANCE] == Decimal("20000")
    assert report.summary[1].location == "Rabat"

    groups = report.groups[ReportBucket.SMALL_ADVANCE]
    assert [g.amount for g in groups] == [Decimal("5000"), Decimal("5000")]
    assert all(g.percentage == Decimal("50.00") for g in groups)

    (line,) = groups[0].parcels
    assert line.parcel_id == P1.parcel_id
    assert line.piece_number == "1"
    assert line.entry_count == 1
    assert line.recorded_by == ["Owner"]
    assert line.sold_by == ["Owner"]


def test_today_report_dates_fee_by_sale_date() -> None:
    """Verify only entries paid today count and the fee follows the sale date."""

    report = build_financial_report(_snapshot(), ReportPeriod.TODAY, today=date(2024, 5, 15))

    assert report.totals[ReportBucket.INSTALLMENT] == Decimal("8000")
    assert report.totals[ReportBucket.COMPANY_FEE] == Decimal("0")
    assert report.grand_total == Decimal("8000")


def test_week_report() -> None:
    """Verify the week covers the seven days before today through today."""

    report = build_financial_report(_snapshot(), ReportPeriod.WEEK, today=date(2024, 5, 15))

    assert report.cash_received == Decimal("48000")
    assert report.totals[ReportBucket.SMALL_ADVANCE] == Decimal("0")


def test_custom_date_report() -> None:
    """Verify the custom-date period covers exactly that day."""

    report = build_financial_report(
        _snapshot(), ReportPeriod.CUSTOM_DATE, today=date(2024, 5, 20), custom_date=date(2024, 5, 2)
    )

    assert report.cash_received == Decimal("10000")
    assert report.totals[ReportBucket.SMALL_ADVANCE] == Decimal("10000")


def test_custom_date_requires_a_date() -> None:
    """Verify the custom-date period without a date is rejected."""

    with pytest.raises(ValueError):
        build_financial_report(_snapshot(), ReportPeriod.CUSTOM_DATE, today=date(2024, 5, 20))


def test_cancelled_and_reset_sales_contribute_nothing() -> None:
    """Verify the stale entries of cancelled and reset sales are ignored over all time."""

    report = build_financial_report(_snapshot(), ReportPeriod.ALL, today=date(2024, 5, 20))

    assert report.totals[ReportBucket.FULL] == Decimal("0")
    assert report.totals[ReportBucket.BIG_ADVANCE] == Decimal("40000")
    assert all(line.parcel_id != P2.parcel_id for g in report.groups[ReportBucket.BIG_ADVANCE] for line in g.parcels)


def test_report_is_idempotent() -> None:
    """Verify the same snapshot yields an identical report."""

    snapshot = _snapshot()

    first = build_financial_report(snapshot, ReportPeriod.ALL, today=date(2024, 5, 20))
    second = build_financial_report(snapshot, ReportPeriod.ALL, today=date(2024, 5, 20))

    assert first == second


def test_denormalized_reservation_stands_in_for_missing_entry() -> None:
    """Verify a reservation with no ledger entry is reported on the sale date."""

    sale = make_sale(
        CLIENT_ID,
        [P2.parcel_id],
        small_advance_amount=Decimal("6000"),
        sale_date=date(2024, 5, 5),
    )
    snapshot = LedgerSnapshot(sales=[sale], parcels=[P1, P2, P3], batches=[BATCH_A, BATCH_B])

    report = build_financial_report(snapshot, ReportPeriod.MONTH, today=date(2024, 5, 20))

    assert report.totals[ReportBucket.SMALL_ADVANCE] == Decimal("6000")
    (group,) = report.groups[ReportBucket.SMALL_ADVANCE]
    assert group.batch_name == "Lotissement A"
    assert group.parcels[0].recorded_by == []


def test_down_payment_counts_for_pending_sale_with_reservation() -> None:
    """Verify a BigAdvance entry is reported even when the stored fields look unconfirmed."""

    sale = make_sale(
        CLIENT_ID,
        [P1.parcel_id],
        small_advance_amount=Decimal("5000"),
        sale_date=date(2024, 5, 5),
    )
    snapshot = LedgerSnapshot(
        sales=[sale],
        payments=[_payment(sale, PaymentRecordType.BIG_ADVANCE, "20000", date(2024, 5, 6))],
        parcels=[P1, P2, P3],
        batches=[BATCH_A, BATCH_B],
    )

    report = build_financial_report(snapshot, ReportPeriod.ALL, today=date(2024, 5, 20))

    assert report.totals[ReportBucket.BIG_ADVANCE] == Decimal("20000")


def test_unknown_parcel_is_grouped_as_unassigned() -> None:
    """Verify money on a parcel with no batch lands in the Unassigned group."""

    sale = make_sale(CLIENT_ID, [uuid4()], sale_date=date(2024, 5, 5), company_fee_amount=Decimal("0"))
    snapshot = LedgerSnapshot(
        sales=[sale],
        payments=[_payment(sale, PaymentRecordType.FULL, "100000", date(2024, 5, 6))],
    )

    report = build_financial_report(snapshot, ReportPeriod.ALL, today=date(2024, 5, 20))

    (group,) = report.groups[ReportBucket.FULL]
    assert group.batch_name == UNASSIGNED_BATCH_NAME
    assert group.batch_id is None
    assert group.percentage == Decimal("100.00")


@pytest.mark.parametrize(
    "period, expected",
    [
        (ReportPeriod.TODAY, DateRange(date(2024, 5, 15), date(2024, 5, 15))),
        (ReportPeriod.WEEK, DateRange(date(2024, 5, 8), date(2024, 5, 15))),
        (ReportPeriod.MONTH, DateRange(date(2024, 5, 1), date(2024, 5, 15))),
        (ReportPeriod.ALL, DateRange()),
    ],
)
def test_resolve_date_range(period: ReportPeriod, expected: DateRange) -> None:
    """Verify each relative period resolves against today."""

    assert resolve_date_range(period, today=date(2024, 5, 15)) == expected


def test_report_requires_view_financial(store) -> None:
    """Verify an unknown actor cannot read the report."""

    with pytest.raises(PermissionDeniedError):
        financial_report(store, None, ReportPeriod.ALL)
