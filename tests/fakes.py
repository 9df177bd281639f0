"""
In-memory record store and seeding helpers for tests.

`InMemoryRecordStore` follows the `RecordStore` contract: values are stored
the way the Supabase store sends them (strings for UUIDs, decimals and
dates), and filters use the same list / None / equality semantics.
"""

from __future__ import annotations

import copy
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from domain.land import ParcelStatus
from domain.sale import PaymentType, Sale, SaleStatus
from domain.user import User, UserRole
from repositories.client_repository import CLIENTS_TABLE
from repositories.land_repository import BATCHES_TABLE, PARCELS_TABLE
from repositories.record_store import has_empty_membership, is_membership, plain_value
from repositories.sale_repository import insert_sale
from repositories.user_repository import USERS_TABLE

Record = Dict[str, Any]


class InMemoryRecordStore:
    """
    Dict-backed RecordStore.

    `fail_on(op, collection)` makes the next matching call raise, to exercise
    partial-failure paths. `writes` logs every committed write as (op, collection).
    """

    def __init__(self) -> None:
        self.tables: Dict[str, List[Record]] = {}
        self.writes: List[Tuple[str, str]] = []
        self._failures: Dict[Tuple[str, str], Exception] = {}

    def fail_on(self, op: str, collection: str, error: Optional[Exception] = None) -> None:
        self._failures[(op, collection)] = error or RuntimeError(f"Failed to {op} {collection}: injected")

    def _maybe_fail(self, op: str, collection: str) -> None:
        error = self._failures.pop((op, collection), None)
        if error is not None:
            raise error

    def rows(self, collection: str) -> List[Record]:
        return self.tables.setdefault(collection, [])

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
        for column, value in (filters or {}).items():
            stored = row.get(column)
            if value is None:
                if stored is not None:
                    return False
            elif is_membership(value):
                if stored not in plain_value(value):
                    return False
            elif stored != plain_value(value):
                return False
        return True

    def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Record]:
        self._maybe_fail("query", collection)
        if has_empty_membership(filters):
            return []

        found = [copy.deepcopy(r) for r in self.rows(collection) if self._matches(r, filters)]
        if order_by:
            found.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""), reverse=descending)
        return found

    def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        return self.insert_many(collection, [record])[0]

    def insert_many(self, collection: str, records: Sequence[Mapping[str, Any]]) -> List[Record]:
        if not records:
            return []
        self._maybe_fail("insert", collection)

        stored = [{k: plain_value(v) for k, v in record.items()} for record in records]
        for row in stored:
            row.setdefault("id", str(uuid4()))
        self.rows(collection).extend(stored)
        self.writes.append(("insert", collection))
        return copy.deepcopy(stored)

    def update(self, collection: str, record_id: UUID, patch: Mapping[str, Any]) -> None:
        self._maybe_fail("update", collection)
        for row in self.rows(collection):
            if row.get("id") == str(record_id):
                row.update({k: plain_value(v) for k, v in patch.items()})
        self.writes.append(("update", collection))

    def delete(self, collection: str, filters: Mapping[str, Any]) -> None:
        if not filters:
            raise ValueError(f"Refusing to delete from {collection} without a filter")
        self._maybe_fail("delete", collection)
        if has_empty_membership(filters):
            return
        self.tables[collection] = [r for r in self.rows(collection) if not self._matches(r, filters)]
        self.writes.append(("delete", collection))


# ============================================================================
# Seeding helpers
# ============================================================================

def add_user(
    store: InMemoryRecordStore,
    name: str = "Owner",
    role: UserRole = UserRole.OWNER,
    *,
    active: bool = True,
    permissions: Optional[Dict[str, bool]] = None,
) -> User:
    user = User(user_id=uuid4(), name=name, role=role, active=active, permissions=permissions or {})
    store.insert(
        USERS_TABLE,
        {
            "id": user.user_id,
            "name": name,
            "role": role,
            "status": "Active" if active else "Inactive",
            "permissions": dict(user.permissions),
        },
    )
    return user


def add_client(store: InMemoryRecordStore, name: str = "Amina Benali", cin: str = "AB123456") -> UUID:
    client_id = uuid4()
    store.insert(CLIENTS_TABLE, {"id": client_id, "name": name, "cin": cin})
    return client_id


def add_batch(store: InMemoryRecordStore, name: str = "Lotissement A", location: Optional[str] = "Kenitra") -> UUID:
    batch_id = uuid4()
    store.insert(BATCHES_TABLE, {"id": batch_id, "name": name, "location": location})
    return batch_id


def add_parcel(
    store: InMemoryRecordStore,
    batch_id: UUID,
    piece_number: str = "1",
    *,
    price_full: Decimal = Decimal("100000"),
    price_installment: Decimal = Decimal("100000"),
    purchase_cost: Decimal = Decimal("60000"),
    status: ParcelStatus = ParcelStatus.AVAILABLE,
) -> UUID:
    parcel_id = uuid4()
    store.insert(
        PARCELS_TABLE,
        {
            "id": parcel_id,
            "land_batch_id": batch_id,
            "piece_number": piece_number,
            "surface_area": Decimal("200"),
            "purchase_cost": purchase_cost,
            "selling_price_full": price_full,
            "selling_price_installment": price_installment,
            "status": status,
        },
    )
    return parcel_id


def make_sale(
    client_id: UUID,
    parcel_ids: Sequence[UUID],
    *,
    payment_type: PaymentType = PaymentType.INSTALLMENT,
    total_selling_price: Decimal = Decimal("100000"),
    total_purchase_cost: Decimal = Decimal("60000"),
    small_advance_amount: Decimal = Decimal("0"),
    big_advance_amount: Decimal = Decimal("0"),
    status: SaleStatus = SaleStatus.PENDING,
    sale_date: date = date(2024, 1, 1),
    **fields: Any,
) -> Sale:
    return Sale(
        sale_id=fields.pop("sale_id", uuid4()),
        client_id=client_id,
        parcel_ids=tuple(parcel_ids),
        payment_type=payment_type,
        total_selling_price=total_selling_price,
        total_purchase_cost=total_purchase_cost,
        profit_margin=total_selling_price - total_purchase_cost,
        small_advance_amount=small_advance_amount,
        big_advance_amount=big_advance_amount,
        status=status,
        sale_date=sale_date,
        **fields,
    )


def add_sale(store: InMemoryRecordStore, sale: Sale) -> Sale:
    return insert_sale(store, sale)


__all__ = [
    "InMemoryRecordStore",
    "add_batch",
    "add_client",
    "add_parcel",
    "add_sale",
    "add_user",
    "make_sale",
]
