"""
Financial reconciliation and grouping.

Recomputes, from a fresh snapshot on every call, the money received in a date
range, classified into six buckets and grouped by land batch (location) and
parcel.

Eligibility (shared with the lifecycle resolver through `domain.lifecycle`):
- Cancelled sales and reset sales (Pending, no reservation, no down payment,
  no company fee) contribute nothing.
- Refunds never count.
- Down payments (BigAdvance) count only for confirmed sales; reservation
  deposits (SmallAdvance) always count.

Dating:
- Ledger entries are filtered by their payment date. The sale they belong to
  must be eligible but need not itself fall in the range, so an installment
  collected today on an older sale is reported today.
- Company fees and denormalized amounts standing in for missing ledger
  entries are dated by the sale date.

Attribution: an amount against a sale covering n parcels gives amount / n to
each parcel, and through the parcel to its batch.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from domain.classification import divide_across, fallback_shares, split_across_parcels
from domain.land import LandBatch
from domain.lifecycle import is_confirmed, is_reset
from domain.money import ZERO, money_sum, round_cents
from domain.payment import Payment, PaymentRecordType
from domain.sale import Sale, SaleStatus
from domain.user import Permission, User
from repositories.record_store import RecordStore
from services.authorization import require_permission
from services.snapshot import LedgerSnapshot, load_snapshot

UNASSIGNED_BATCH_NAME = "Unassigned"
_HUNDRED = Decimal("100")


class ReportPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"
    CUSTOM_DATE = "custom-date"


class ReportBucket(str, Enum):
    INSTALLMENT = "Installment"
    SMALL_ADVANCE = "SmallAdvance"
    BIG_ADVANCE = "BigAdvance"
    FULL = "Full"
    PROMISE_OF_SALE = "PromiseOfSale"
    COMPANY_FEE = "CompanyFee"


BUCKET_BY_PAYMENT_TYPE: Dict[PaymentRecordType, ReportBucket] = {
    PaymentRecordType.INSTALLMENT: ReportBucket.INSTALLMENT,
    PaymentRecordType.SMALL_ADVANCE: ReportBucket.SMALL_ADVANCE,
    PaymentRecordType.BIG_ADVANCE: ReportBucket.BIG_ADVANCE,
    PaymentRecordType.FULL: ReportBucket.FULL,
    # Partial and field payments go toward the price like a full payment.
    PaymentRecordType.PARTIAL: ReportBucket.FULL,
    PaymentRecordType.FIELD: ReportBucket.FULL,
    PaymentRecordType.INITIAL_PAYMENT: ReportBucket.PROMISE_OF_SALE,
}


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive date range; a missing bound is open."""

    start: Optional[date] = None
    end: Optional[date] = None

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


def resolve_date_range(
    period: ReportPeriod,
    *,
    today: date,
    custom_date: Optional[date] = None,
) -> DateRange:
    """
    Turn a report period into a date range.

    today: the day itself; week: the seven days before today through today;
    month: first of the current month through today; all: unbounded;
    custom-date: the given day (required).
    """

    if period is ReportPeriod.TODAY:
        return DateRange(today, today)
    if period is ReportPeriod.WEEK:
        return DateRange(today - timedelta(days=7), today)
    if period is ReportPeriod.MONTH:
        return DateRange(today.replace(day=1), today)
    if period is ReportPeriod.CUSTOM_DATE:
        if custom_date is None:
            raise ValueError("custom-date period requires a date")
        return DateRange(custom_date, custom_date)
    return DateRange()


@dataclass(frozen=True, slots=True)
class ReportEntry:
    """One amount attributed to one parcel in one bucket."""

    bucket: ReportBucket
    sale_id: UUID
    parcel_id: UUID
    amount: Decimal
    day: date
    recorded_by: Optional[UUID] = None


@dataclass(frozen=True, slots=True)
class ParcelLine:
    parcel_id: UUID
    piece_number: Optional[str]
    amount: Decimal
    entry_count: int
    recorded_by: List[str] = field(default_factory=list)
    sold_by: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LocationGroup:
    """
    One bucket's money for one land batch.

    percentage: share of the bucket total, in percent (2 decimals)
    """

    batch_id: Optional[UUID]
    batch_name: str
    location: Optional[str]
    amount: Decimal
    percentage: Decimal
    entry_count: int
    parcels: List[ParcelLine] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LocationSummary:
    """All six buckets for one land batch."""

    batch_id: Optional[UUID]
    batch_name: str
    location: Optional[str]
    amounts: Dict[ReportBucket, Decimal]
    total: Decimal


@dataclass(frozen=True, slots=True)
class FinancialReport:
    """
    Grouped financial totals for a period.

    totals: flat total per bucket (all six present)
    groups: per bucket, per-location groups with per-parcel detail
    summary: per location, every bucket and a total
    cash_received: every bucket except the company fee
    grand_total: cash_received + company fee
    """

    period: ReportPeriod
    date_range: DateRange
    totals: Dict[ReportBucket, Decimal]
    groups: Dict[ReportBucket, List[LocationGroup]]
    summary: List[LocationSummary]
    cash_received: Decimal
    grand_total: Decimal


def _eligible_sales(sales: Iterable[Sale]) -> Dict[UUID, Sale]:
    return {
        s.sale_id: s
        for s in sales
        if s.status is not SaleStatus.CANCELLED and not is_reset(s)
    }


def _payment_entries(
    payments: Iterable[Payment],
    eligible: Dict[UUID, Sale],
    payments_by_sale: Dict[UUID, List[Payment]],
    date_range: DateRange,
) -> List[ReportEntry]:
    entries: List[ReportEntry] = []
    for payment in payments:
        if payment.is_refund or not date_range.contains(payment.payment_date):
            continue
        sale = eligible.get(payment.sale_id) if payment.sale_id else None
        if sale is None:
            continue
        # Never excludes anything: a BigAdvance entry confirms its own sale, and reset sales are already out.
        if payment.payment_type is PaymentRecordType.BIG_ADVANCE and not is_confirmed(
            sale, payments_by_sale.get(sale.sale_id, [])
        ):
            continue
        bucket = BUCKET_BY_PAYMENT_TYPE[payment.payment_type]
        for share in split_across_parcels(payment, sale):
            entries.append(
                ReportEntry(
                    bucket=bucket,
                    sale_id=sale.sale_id,
                    parcel_id=share.parcel_id,
                    amount=share.amount,
                    day=share.payment_date,
                    recorded_by=share.recorded_by,
                )
            )
    return entries


def _sale_entries(
    eligible: Dict[UUID, Sale],
    payments_by_sale: Dict[UUID, List[Payment]],
    date_range: DateRange,
) -> List[ReportEntry]:
    """Company fees, plus denormalized amounts with no ledger entry."""

    entries: List[ReportEntry] = []
    for sale in eligible.values():
        if not date_range.contains(sale.sale_date):
            continue

        recorded: Set[PaymentRecordType] = {p.payment_type for p in payments_by_sale.get(sale.sale_id, [])}
        for share in fallback_shares(sale, recorded):
            entries.append(
                ReportEntry(
                    bucket=BUCKET_BY_PAYMENT_TYPE[share.payment_type],
                    sale_id=sale.sale_id,
                    parcel_id=share.parcel_id,
                    amount=share.amount,
                    day=share.payment_date,
                )
            )

        if sale.company_fee > ZERO:
            for parcel_id, amount in zip(sale.parcel_ids, divide_across(sale.company_fee, sale.piece_count)):
                entries.append(
                    ReportEntry(
                        bucket=ReportBucket.COMPANY_FEE,
                        sale_id=sale.sale_id,
                        parcel_id=parcel_id,
                        amount=amount,
                        day=sale.sale_date,
                    )
                )
    return entries


BatchKey = Tuple[str, str]


class _Grouper:
    """Resolves parcels to batches and names, for grouping."""

    def __init__(self, snapshot: LedgerSnapshot, sales: Dict[UUID, Sale]):
        self._parcels = snapshot.parcels_by_id()
        self._batches = snapshot.batches_by_id()
        self._users = snapshot.user_names()
        self._sales = sales

    def batch_of(self, parcel_id: UUID) -> Optional[LandBatch]:
        parcel = self._parcels.get(parcel_id)
        return self._batches.get(parcel.batch_id) if parcel else None

    def key(self, parcel_id: UUID) -> BatchKey:
        batch = self.batch_of(parcel_id)
        if batch is None:
            return ("", UNASSIGNED_BATCH_NAME)
        return (str(batch.batch_id), batch.name)

    def piece_number(self, parcel_id: UUID) -> Optional[str]:
        parcel = self._parcels.get(parcel_id)
        return parcel.piece_number if parcel else None

    def user_name(self, user_id: Optional[UUID]) -> Optional[str]:
        if user_id is None:
            return None
        return self._users.get(user_id, str(user_id))

    def seller_name(self, sale_id: UUID) -> Optional[str]:
        sale = self._sales.get(sale_id)
        return self.user_name(sale.created_by) if sale else None

    def describe(self, key: BatchKey) -> Tuple[Optional[UUID], str, Optional[str]]:
        batch_id, name = key
        if not batch_id:
            return None, name, None
        batch = self._batches[UUID(batch_id)]
        return batch.batch_id, batch.name, batch.location


def _names(values: Iterable[Optional[str]]) -> List[str]:
    return sorted({v for v in values if v})


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if whole == ZERO:
        return ZERO
    return round_cents(part / whole * _HUNDRED)


def _group_bucket(entries: List[ReportEntry], bucket_total: Decimal, grouper: _Grouper) -> List[LocationGroup]:
    by_batch: Dict[BatchKey, Dict[UUID, List[ReportEntry]]] = defaultdict(lambda: defaultdict(list))
    for entry in entries:
        by_batch[grouper.key(entry.parcel_id)][entry.parcel_id].append(entry)

    groups: List[LocationGroup] = []
    for key, by_parcel in by_batch.items():
        lines = [
            ParcelLine(
                parcel_id=parcel_id,
                piece_number=grouper.piece_number(parcel_id),
                amount=money_sum(e.amount for e in parcel_entries),
                entry_count=len(parcel_entries),
                recorded_by=_names(grouper.user_name(e.recorded_by) for e in parcel_entries),
                sold_by=_names(grouper.seller_name(e.sale_id) for e in parcel_entries),
            )
            for parcel_id, parcel_entries in by_parcel.items()
        ]
        lines.sort(key=lambda line: (line.piece_number or "", str(line.parcel_id)))
        amount = money_sum(line.amount for line in lines)
        batch_id, name, location = grouper.describe(key)
        groups.append(
            LocationGroup(
                batch_id=batch_id,
                batch_name=name,
                location=location,
                amount=amount,
                percentage=_percentage(amount, bucket_total),
                entry_count=sum(line.entry_count for line in lines),
                parcels=lines,
            )
        )

    groups.sort(key=lambda g: (-g.amount, g.batch_name, str(g.batch_id)))
    return groups


def build_financial_report(
    snapshot: LedgerSnapshot,
    period: ReportPeriod,
    *,
    today: date,
    custom_date: Optional[date] = None,
) -> FinancialReport:
    """
    Reconcile a snapshot into grouped financial totals.

    Args:
        snapshot: Collections read for this refresh
        period: today | week | month | all | custom-date
        today: Reference day for relative periods
        custom_date: Day for the custom-date period

    Returns:
        FinancialReport; the same snapshot always yields the same report
    """

    date_range = resolve_date_range(period, today=today, custom_date=custom_date)
    eligible = _eligible_sales(snapshot.sales)
    payments_by_sale = snapshot.payments_by_sale()

    entries = _payment_entries(snapshot.payments, eligible, payments_by_sale, date_range)
    entries.extend(_sale_entries(eligible, payments_by_sale, date_range))

    by_bucket: Dict[ReportBucket, List[ReportEntry]] = {bucket: [] for bucket in ReportBucket}
    for entry in entries:
        by_bucket[entry.bucket].append(entry)

    totals = {bucket: money_sum(e.amount for e in by_bucket[bucket]) for bucket in ReportBucket}
    grouper = _Grouper(snapshot, eligible)
    groups = {bucket: _group_bucket(by_bucket[bucket], totals[bucket], grouper) for bucket in ReportBucket}

    per_batch: Dict[BatchKey, Dict[ReportBucket, Decimal]] = defaultdict(
        lambda: {bucket: ZERO for bucket in ReportBucket}
    )
    for entry in entries:
        amounts = per_batch[grouper.key(entry.parcel_id)]
        amounts[entry.bucket] += entry.amount

    summary: List[LocationSummary] = []
    for key, amounts in per_batch.items():
        batch_id, name, location = grouper.describe(key)
        summary.append(
            LocationSummary(
                batch_id=batch_id,
                batch_name=name,
                location=location,
                amounts=amounts,
                total=money_sum(amounts.values()),
            )
        )
    summary.sort(key=lambda s: (-s.total, s.batch_name, str(s.batch_id)))

    cash_received = money_sum(
        amount for bucket, amount in totals.items() if bucket is not ReportBucket.COMPANY_FEE
    )
    return FinancialReport(
        period=period,
        date_range=date_range,
        totals=totals,
        groups=groups,
        summary=summary,
        cash_received=cash_received,
        grand_total=cash_received + totals[ReportBucket.COMPANY_FEE],
    )


def financial_report(
    store: RecordStore,
    actor: Optional[User],
    period: ReportPeriod,
    *,
    today: Optional[date] = None,
    custom_date: Optional[date] = None,
) -> FinancialReport:
    """
    Read a fresh snapshot and reconcile it.

    Raises:
        PermissionDeniedError: The actor may not view financial data
        ValueError: custom-date period without a date
    """

    require_permission(actor, Permission.VIEW_FINANCIAL)
    return build_financial_report(
        load_snapshot(store),
        period,
        today=today or date.today(),
        custom_date=custom_date,
    )


__all__ = [
    "BUCKET_BY_PAYMENT_TYPE",
    "DateRange",
    "FinancialReport",
    "LocationGroup",
    "LocationSummary",
    "ParcelLine",
    "ReportBucket",
    "ReportEntry",
    "ReportPeriod",
    "UNASSIGNED_BATCH_NAME",
    "build_financial_report",
    "financial_report",
    "resolve_date_range",
]
