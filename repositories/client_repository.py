"""
Client repository for buyer records.

Provides functions to look up clients referenced by sales.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.client import Client
from domain.time import parse_utc_datetime
from repositories.record_store import RecordStore

CLIENTS_TABLE: str = "clients"


def _row_to_client(row: Mapping[str, Any]) -> Client:
    return Client(
        client_id=UUID(str(row["id"])),
        name=str(row.get("name") or ""),
        cin=str(row.get("cin") or ""),
        phone=row.get("phone"),
        email=row.get("email"),
        address=row.get("address"),
        created_at=parse_utc_datetime(row["created_at"]) if row.get("created_at") else None,
        updated_at=parse_utc_datetime(row["updated_at"]) if row.get("updated_at") else None,
    )


def get_client_by_id(store: RecordStore, client_id: UUID) -> Optional[Client]:
    """
    Get a client by their ID.

    Args:
        store: Record store
        client_id: UUID of the client

    Returns:
        Client domain model or None if not found

    Example:
        client = get_client_by_id(store, UUID('12345678-1234-1234-1234-123456789012'))
        if client is None:
            # Reject the sale: unknown buyer
    """

    rows = store.query(CLIENTS_TABLE, {"id": client_id})
    if not rows:
        return None
    return _row_to_client(rows[0])


def list_clients(store: RecordStore) -> List[Client]:
    rows = store.query(CLIENTS_TABLE, order_by="name")
    return [_row_to_client(row) for row in rows]


__all__ = ["CLIENTS_TABLE", "get_client_by_id", "list_clients"]
