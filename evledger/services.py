"""Framework-agnostic business services for the EV ledger."""

from __future__ import annotations

import asyncio
import logging
from datetime import timezone, tzinfo
from decimal import InvalidOperation
from typing import Any, Callable, Dict, Generic, List, Optional, Set, TypeVar
from uuid import uuid4

from .exceptions import PersistenceError, RecordNotFoundError, ValidationError
from .gateway import StorageGateway
from .models import AccountType, ServiceRecord, ServiceType, Transaction, TransactionType
from .validators import (
    parse_amount,
    parse_cost,
    parse_odometer,
    validate_enum,
    validate_optional_str,
    validate_required_str,
    validate_service_date,
    validate_service_types,
    validate_tire_detail,
    validate_tires,
    validate_transaction_date,
)

logger = logging.getLogger(__name__)

LOAD_ERROR = "Could not load data. Please try again later."
SAVE_ERROR = "Could not save data. Changes might not be persisted."

T = TypeVar("T")


class SyncedCollection(Generic[T]):
    """A local list of records with eventually-consistent persistence.

    ``replace`` updates ``data`` immediately and schedules the save in the
    background; a failed save leaves the local copy in place and sets
    ``error`` for the caller to show as a banner. After a failed load the
    collection is read-only until a later ``refresh`` succeeds, so the
    stored copy is never overwritten with a partial list.
    """

    def __init__(
        self,
        gateway: StorageGateway,
        key: str,
        decode: Callable[[Dict[str, Any]], T],
        encode: Callable[[T], Dict[str, Any]],
    ) -> None:
        self._gateway = gateway
        self._key = key
        self._decode = decode
        self._encode = encode
        self._data: List[T] = []
        self._pending: Set["asyncio.Task[bool]"] = set()
        self._save_lock = asyncio.Lock()
        self.loading = True
        self.load_failed = False
        self.error: Optional[str] = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def data(self) -> List[T]:
        return list(self._data)

    async def refresh(self) -> None:
        self.loading = True
        self.error = None
        try:
            raw_records = await self._gateway.load(self._key, [])
            self._data = [self._decode(payload) for payload in raw_records]
            self.load_failed = False
        except (PersistenceError, KeyError, TypeError, ValueError, InvalidOperation):
            logger.exception("Failed to load %s", self._key)
            self.error = LOAD_ERROR
            self.load_failed = True
            self._data = []
        finally:
            self.loading = False

    def replace(self, records: List[T]) -> None:
        """Swap in a new list locally and persist it without waiting.

        Must be called while an event loop is running. Raises PersistenceError
        when the last load failed.
        """
        if self.load_failed:
            raise PersistenceError(LOAD_ERROR)
        self._data = list(records)
        snapshot = [self._encode(record) for record in self._data]
        task = asyncio.get_running_loop().create_task(self._save(snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait for every scheduled save to settle."""
        while self._pending:
            batch = list(self._pending)
            await asyncio.gather(*batch)
            self._pending.difference_update(batch)

    async def _save(self, snapshot: List[Dict[str, Any]]) -> bool:
        # Saves run one at a time in scheduling order so the last write wins.
        async with self._save_lock:
            saved = await self._gateway.save(self._key, snapshot)
        self.error = None if saved else SAVE_ERROR
        return saved


class TransactionService:
    """Manages transactions and mediates persistence."""

    def __init__(self, collection: SyncedCollection[Transaction], tz: tzinfo = timezone.utc) -> None:
        self._collection = collection
        self._tz = tz
        self.last_description = ""

    # Public API -----------------------------------------------------------
    def add(self, payload: Dict[str, object]) -> Transaction:
        transaction = Transaction(**self._validate_payload(payload))
        self._collection.replace([*self._collection.data, transaction])
        self.last_description = transaction.description
        return transaction

    def update(self, transaction_id: str, changes: Dict[str, object]) -> Transaction:
        existing = self._get_or_raise(transaction_id)
        # Merge existing serialised data with incoming changes to support partial updates.
        merged_payload = {**existing.to_dict(), **changes}
        updated = Transaction(**self._validate_payload(merged_payload, current=existing))
        self._collection.replace(
            [updated if tx.id == transaction_id else tx for tx in self._collection.data]
        )
        return updated

    def delete(self, transaction_id: str) -> None:
        self._get_or_raise(transaction_id)
        self._collection.replace(
            [tx for tx in self._collection.data if tx.id != transaction_id]
        )

    def get(self, transaction_id: str) -> Transaction:
        """Return a transaction or raise if it does not exist."""
        return self._get_or_raise(transaction_id)

    def list(self) -> List[Transaction]:
        """Transactions in insertion order; views sort them."""
        return self._collection.data

    # Internal helpers -----------------------------------------------------
    def _get_or_raise(self, transaction_id: str) -> Transaction:
        for tx in self._collection.data:
            if tx.id == transaction_id:
                return tx
        raise RecordNotFoundError(f"Transaction {transaction_id} not found")

    def _validate_payload(
        self, payload: Dict[str, object], *, current: Optional[Transaction] = None
    ) -> Dict[str, object]:
        return {
            "id": current.id if current else str(uuid4()),
            "description": validate_required_str(payload.get("description"), "description", 200),
            "amount": parse_amount(payload.get("amount"), "amount"),
            "type": validate_enum(payload.get("type", TransactionType.INCOME.value), "type", TransactionType),
            "account": validate_enum(payload.get("account", AccountType.CASH.value), "account", AccountType),
            "date": validate_transaction_date(payload.get("date"), "date", tz=self._tz),
        }


class ServiceRecordService:
    """Manages the vehicle service and repair log."""

    def __init__(self, collection: SyncedCollection[ServiceRecord]) -> None:
        self._collection = collection

    def add(self, payload: Dict[str, object]) -> ServiceRecord:
        record = ServiceRecord(**self._validate_payload(payload))
        self._collection.replace([*self._collection.data, record])
        return record

    def list(self) -> List[ServiceRecord]:
        return sorted(self._collection.data, key=lambda rec: rec.date, reverse=True)

    def get(self, record_id: str) -> ServiceRecord:
        for record in self._collection.data:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"Service record {record_id} not found")

    def _validate_payload(self, payload: Dict[str, object]) -> Dict[str, object]:
        service_types = validate_service_types(payload.get("service_types"))
        base: Dict[str, object] = {
            "id": str(uuid4()),
            "service_types": service_types,
            "notes": validate_optional_str(payload.get("notes"), "notes", 500),
            "tire_company": None,
            "tires": None,
        }
        if ServiceType.TIRE in service_types:
            # Tire work is described by its detail; free text is ignored.
            base["description"] = validate_tire_detail(payload.get("tire_detail")).value
            base["tires"] = validate_tires(payload.get("tires"))
            base["tire_company"] = validate_optional_str(payload.get("tire_company"), "tire_company", 100)
        else:
            description = payload.get("description")
            if not isinstance(description, str) or not description.strip():
                raise ValidationError("Please enter a service description.")
            base["description"] = validate_required_str(description, "description", 200)
        base["cost"] = parse_cost(payload.get("cost"), "cost")
        base["odometer"] = parse_odometer(payload.get("odometer"))
        base["date"] = validate_service_date(payload.get("date"), "date")
        return base
