"""
Record store (persistence collaborator).

Every repository talks to storage through the narrow `RecordStore` interface:
query / insert / update / delete over named collections of flat records.
`SupabaseRecordStore` implements it on the supabase-py client.

Filters map a column to a value:
- list / tuple / set  -> membership (IN)
- None                -> IS NULL
- anything else       -> equality

Reads are retried on transport failures with bounded exponential backoff and
an overall time budget. Writes are never retried: a failed write surfaces
immediately as a RuntimeError so the caller can report the partial state.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, TypeVar
from uuid import UUID

import httpx
from postgrest.exceptions import APIError

from repositories.client import StoreSettings, get_supabase, load_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

Record = Dict[str, Any]
Filters = Mapping[str, Any]


class TransientStoreError(RuntimeError):
    """Raised when a read keeps failing at the transport level after all retries."""

    def __init__(self, action: str, attempts: int, cause: Exception):
        self.action = action
        self.attempts = attempts
        super().__init__(f"Failed to {action} after {attempts} attempt(s): {cause}")


class RecordStore(Protocol):
    """Generic record store over named collections."""

    def query(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Record]: ...

    def insert(self, collection: str, record: Mapping[str, Any]) -> Record: ...

    def insert_many(self, collection: str, records: Sequence[Mapping[str, Any]]) -> List[Record]: ...

    def update(self, collection: str, record_id: UUID, patch: Mapping[str, Any]) -> None: ...

    def delete(self, collection: str, filters: Filters) -> None: ...


def plain_value(value: Any) -> Any:
    """Convert domain values (UUID, Enum, Decimal, dates) to JSON-friendly values."""

    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [plain_value(v) for v in value]
    return value


def is_membership(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def has_empty_membership(filters: Optional[Filters]) -> bool:
    """A filter such as `id IN ()` can never match."""
    return any(is_membership(v) and not v for v in (filters or {}).values())


def _apply_filters(request: Any, filters: Optional[Filters]) -> Any:
    for column, value in (filters or {}).items():
        if value is None:
            request = request.is_(column, "null")
        elif is_membership(value):
            request = request.in_(column, plain_value(value))
        else:
            request = request.eq(column, plain_value(value))
    return request


def _rows(response: Any, action: str) -> List[Record]:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return list(getattr(response, "data", None) or [])


class SupabaseRecordStore:
    """
    RecordStore backed by Supabase (PostgREST).

    Args:
        client: Supabase client; defaults to the shared lazily created client
        settings: Retry settings; defaults to the environment
        sleep: Delay function between read attempts
        clock: Monotonic clock for the overall read budget
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        settings: Optional[StoreSettings] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._settings = settings or load_settings()
        self._sleep = sleep
        self._clock = clock

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def _read_with_retry(self, action: str, operation: Callable[[], T]) -> T:
        """
        Run a read, retrying transport failures.

        Makes at most 1 + max_retries attempts; the delay doubles from
        retry_base_delay and no retry starts past the overall timeout.
        """

        deadline = self._clock() + self._settings.timeout
        attempt = 0
        while True:
            attempt += 1
            try:
                return operation()
            except httpx.TransportError as e:
                delay = self._settings.retry_base_delay * (2 ** (attempt - 1))
                if attempt > self._settings.max_retries or self._clock() + delay > deadline:
                    raise TransientStoreError(action, attempt, e) from e
                logger.warning(
                    "Retrying %s after transport error (attempt %d/%d, waiting %.2fs): %s",
                    action,
                    attempt,
                    self._settings.max_retries + 1,
                    delay,
                    e,
                )
                self._sleep(delay)

    @staticmethod
    def _write(action: str, operation: Callable[[], Any]) -> List[Record]:
        """Run a write once; any failure surfaces as a RuntimeError."""

        try:
            response = operation()
        except APIError as e:
            raise RuntimeError(f"Failed to {action}: {e}") from e
        except httpx.TransportError as e:
            raise TransientStoreError(action, 1, e) from e
        return _rows(response, action)

    def query(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Record]:
        if has_empty_membership(filters):
            return []

        action = f"query {collection}"

        def run() -> List[Record]:
            request = _apply_filters(self.client.table(collection).select("*"), filters)
            if order_by:
                request = request.order(order_by, desc=descending)
            try:
                response = request.execute()
            except APIError as e:
                raise RuntimeError(f"Failed to {action}: {e}") from e
            return _rows(response, action)

        return self._read_with_retry(action, run)

    def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        rows = self.insert_many(collection, [record])
        return rows[0]

    def insert_many(self, collection: str, records: Sequence[Mapping[str, Any]]) -> List[Record]:
        if not records:
            return []

        payload = [{k: plain_value(v) for k, v in record.items()} for record in records]
        rows = self._write(
            f"insert into {collection}",
            lambda: self.client.table(collection).insert(payload).execute(),
        )
        # PostgREST echoes inserted rows back; fall back to the payload otherwise.
        return rows or payload

    def update(self, collection: str, record_id: UUID, patch: Mapping[str, Any]) -> None:
        payload = {k: plain_value(v) for k, v in patch.items()}
        self._write(
            f"update {collection} {record_id}",
            lambda: self.client.table(collection).update(payload).eq("id", str(record_id)).execute(),
        )

    def delete(self, collection: str, filters: Filters) -> None:
        if not filters:
            raise ValueError(f"Refusing to delete from {collection} without a filter")
        if has_empty_membership(filters):
            return

        self._write(
            f"delete from {collection}",
            lambda: _apply_filters(self.client.table(collection).delete(), filters).execute(),
        )


__all__ = [
    "Filters",
    "Record",
    "RecordStore",
    "SupabaseRecordStore",
    "TransientStoreError",
    "has_empty_membership",
    "is_membership",
    "plain_value",
]
