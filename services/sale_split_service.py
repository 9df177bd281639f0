"""
Persistence of parcel splits.

Shared by confirmation and cancellation: both split the targeted parcel out of
a multi-parcel sale before acting on it. The writes are separate round-trips
with no transaction; `steps` records what was written so a failure part-way
can be reported precisely.
"""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID, uuid4

from domain.installment import Installment
from domain.payment import Payment
from domain.sale import Sale
from domain.split import SplitResult, split_parcel
from domain.time import utc_now
from repositories.installment_repository import update_installment
from repositories.payment_repository import insert_payments, update_payment_amount
from repositories.record_store import RecordStore
from repositories.sale_repository import insert_sale, update_sale

logger = logging.getLogger(__name__)


def plan_split(
    sale: Sale,
    parcel_id: UUID,
    payments: List[Payment],
    installments: List[Installment],
) -> SplitResult:
    """Split the parcel out of the sale in memory (no writes)."""

    return split_parcel(
        sale,
        parcel_id,
        new_sale_id=uuid4(),
        now=utc_now(),
        installments=installments,
        payments=payments,
    )


def persist_split(
    store: RecordStore,
    result: SplitResult,
    steps: List[str],
    *,
    carry_payments: bool,
) -> None:
    """
    Write a split: new sale, shrunk original, rescaled installments and ledger.

    Args:
        store: Record store
        result: Planned split; nothing is written when `result.split` is False
        steps: Appended with a label after every committed write
        carry_payments: Record the removed ledger shares against the new sale
            (confirmation); otherwise the shares are dropped (cancellation)
    """

    if not result.split or result.remainder is None:
        return

    insert_sale(store, result.target)
    steps.append(f"inserted split sale {result.target.sale_id}")

    update_sale(store, result.remainder)
    steps.append(f"shrunk sale {result.remainder.sale_id}")

    for installment in result.remainder_installments:
        update_installment(store, installment)
    if result.remainder_installments:
        steps.append(f"rescaled {len(result.remainder_installments)} installment(s)")

    for payment in result.remainder_payments:
        update_payment_amount(store, payment.payment_id, payment.amount)
    if result.remainder_payments:
        steps.append(f"rescaled {len(result.remainder_payments)} payment(s)")

    if carry_payments and result.moved_payments:
        insert_payments(store, result.moved_payments)
        steps.append(f"moved {len(result.moved_payments)} payment share(s)")

    logger.info(
        "Split parcel out of sale %s into sale %s",
        result.remainder.sale_id,
        result.target.sale_id,
    )


__all__ = ["persist_split", "plan_split"]
