"""
In-memory snapshot of the ledger.

Views and reports are recomputed from scratch on every refresh: one snapshot is
read, every figure is derived from it, and nothing derived is cached.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List
from uuid import UUID

from domain.client import Client
from domain.installment import Installment
from domain.land import LandBatch, LandParcel
from domain.payment import Payment
from domain.sale import Sale
from domain.user import User
from repositories.client_repository import list_clients
from repositories.installment_repository import list_installments
from repositories.land_repository import list_batches, list_parcels
from repositories.payment_repository import list_payments
from repositories.record_store import RecordStore
from repositories.sale_repository import list_sales
from repositories.user_repository import list_users


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Every collection the views and reports derive from."""

    sales: List[Sale] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    installments: List[Installment] = field(default_factory=list)
    parcels: List[LandParcel] = field(default_factory=list)
    batches: List[LandBatch] = field(default_factory=list)
    clients: List[Client] = field(default_factory=list)
    users: List[User] = field(default_factory=list)

    def payments_by_sale(self) -> Dict[UUID, List[Payment]]:
        grouped: Dict[UUID, List[Payment]] = defaultdict(list)
        for payment in self.payments:
            if payment.sale_id is not None:
                grouped[payment.sale_id].append(payment)
        return grouped

    def installments_by_sale(self) -> Dict[UUID, List[Installment]]:
        grouped: Dict[UUID, List[Installment]] = defaultdict(list)
        for installment in self.installments:
            grouped[installment.sale_id].append(installment)
        return grouped

    def parcels_by_id(self) -> Dict[UUID, LandParcel]:
        return {p.parcel_id: p for p in self.parcels}

    def batches_by_id(self) -> Dict[UUID, LandBatch]:
        return {b.batch_id: b for b in self.batches}

    def client_names(self) -> Dict[UUID, str]:
        return {c.client_id: c.name for c in self.clients}

    def user_names(self) -> Dict[UUID, str]:
        return {u.user_id: u.name for u in self.users}


def load_snapshot(store: RecordStore) -> LedgerSnapshot:
    """Read every collection once."""

    return LedgerSnapshot(
        sales=list_sales(store),
        payments=list_payments(store),
        installments=list_installments(store),
        parcels=list_parcels(store),
        batches=list_batches(store),
        clients=list_clients(store),
        users=list_users(store),
    )


__all__ = ["LedgerSnapshot", "load_snapshot"]
