"""Per-user application state tying collections, calendar and views together."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from .aggregation import LedgerView, summarize
from .calendar import CalendarAdapter
from .exceptions import PersistenceError
from .gateway import StorageGateway, storage_key
from .models import ServiceRecord, Transaction
from .reports import MonthlyReport, build_monthly_report, service_history
from .services import LOAD_ERROR, ServiceRecordService, SyncedCollection, TransactionService

TRANSACTIONS_KIND = "transactions"
SERVICE_RECORDS_KIND = "service_records"


class LedgerSession:
    """Holds one user's transactions and service log.

    Mutations go through ``transactions`` and ``service_records``; they show up
    in the views immediately while saves complete in the background.
    """

    def __init__(self, gateway: StorageGateway, calendar: CalendarAdapter, username: Optional[str] = None) -> None:
        self.username = username
        self.calendar = calendar
        self._transactions: SyncedCollection[Transaction] = SyncedCollection(
            gateway,
            storage_key(TRANSACTIONS_KIND, username),
            Transaction.from_dict,
            Transaction.to_dict,
        )
        self._service_records: SyncedCollection[ServiceRecord] = SyncedCollection(
            gateway,
            storage_key(SERVICE_RECORDS_KIND, username),
            ServiceRecord.from_dict,
            ServiceRecord.to_dict,
        )
        self.transactions = TransactionService(self._transactions, tz=calendar.tz)
        self.service_records = ServiceRecordService(self._service_records)

    async def open(self) -> "LedgerSession":
        await asyncio.gather(self._transactions.refresh(), self._service_records.refresh())
        return self

    async def flush(self) -> None:
        await asyncio.gather(self._transactions.flush(), self._service_records.flush())

    @property
    def loading(self) -> bool:
        return self._transactions.loading or self._service_records.loading

    @property
    def error(self) -> Optional[str]:
        return self._transactions.error or self._service_records.error

    @property
    def read_only(self) -> bool:
        """True while either collection failed to load."""
        return self._transactions.load_failed or self._service_records.load_failed

    def ensure_writable(self) -> None:
        if self.read_only:
            raise PersistenceError(LOAD_ERROR)

    def dashboard(self) -> LedgerView:
        return summarize(self.transactions.list(), self.calendar)

    def monthly_report(self, month: Optional[int] = None, year: Optional[int] = None) -> MonthlyReport:
        return build_monthly_report(self.transactions.list(), self.calendar, month, year)

    def service_history(self) -> List[Dict[str, Any]]:
        return service_history(self.service_records.list(), self.calendar)
