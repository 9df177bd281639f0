"""
Domain: Client (land buyer).

A client is created on its own and later referenced by sales. Identity fields
(name, national id) are fixed once a sale references the client; contact
fields (phone, email, address) may change.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Client:
    """
    Buyer identity and contact details.
    """

    client_id: UUID
    name: str
    cin: str  # national identity card number

    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("client name is required")
        if not self.cin.strip():
            raise ValueError("client cin is required")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)


__all__ = ["Client"]
