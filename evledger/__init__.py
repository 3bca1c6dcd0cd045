"""Core business logic package for the EV account manager."""

from .aggregation import (
    LedgerView,
    Totals,
    compute_totals,
    filter_by_period,
    partition_by_category,
    sort_descending,
    summarize,
)
from .auth import CredentialStore
from .calendar import (
    BikramSambatCalendar,
    CalendarAdapter,
    ForeignDate,
    GregorianFallbackCalendar,
    resolve_calendar,
)
from .config import Settings
from .exceptions import (
    AuthenticationError,
    CalendarConversionError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from .gateway import StorageGateway, storage_key
from .models import AccountType, ServiceRecord, ServiceType, TireServiceType, Transaction, TransactionType
from .services import ServiceRecordService, SyncedCollection, TransactionService
from .session import LedgerSession
from .storage import JSONStorage

__all__ = [
    "AccountType",
    "AuthenticationError",
    "BikramSambatCalendar",
    "CalendarAdapter",
    "CalendarConversionError",
    "CredentialStore",
    "ForeignDate",
    "GregorianFallbackCalendar",
    "JSONStorage",
    "LedgerSession",
    "LedgerView",
    "PersistenceError",
    "RecordNotFoundError",
    "ServiceRecord",
    "ServiceRecordService",
    "ServiceType",
    "Settings",
    "StorageGateway",
    "SyncedCollection",
    "TireServiceType",
    "Totals",
    "Transaction",
    "TransactionService",
    "TransactionType",
    "ValidationError",
    "compute_totals",
    "filter_by_period",
    "partition_by_category",
    "resolve_calendar",
    "sort_descending",
    "storage_key",
    "summarize",
]
