"""Report builders consumed by the API and CLI."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .aggregation import LedgerView, summarize
from .calendar import CalendarAdapter
from .exceptions import CalendarConversionError, ValidationError
from .models import ServiceRecord, Transaction, TransactionType

logger = logging.getLogger(__name__)

CURRENCY = "NPR"
REPORT_YEAR_SPAN = 10


def format_currency(amount: Decimal) -> str:
    return f"{CURRENCY} {amount:,.2f}"


def local_date_string(calendar: CalendarAdapter, instant) -> str:
    """BS date for display; an empty string when the date cannot be converted."""
    try:
        return calendar.format(instant)
    except CalendarConversionError:
        logger.warning("Could not convert date %s for display", instant, exc_info=True)
        return ""


@dataclass(frozen=True)
class ReportItem:
    id: str
    description: str
    label: str
    account: str
    sign: str
    amount: str
    date: str

    @classmethod
    def from_transaction(cls, tx: Transaction, calendar: CalendarAdapter) -> "ReportItem":
        return cls(
            id=tx.id,
            description=tx.description,
            label=tx.type_label,
            account=tx.account.value,
            sign="+" if tx.type is TransactionType.INCOME else "-",
            amount=format_currency(tx.amount),
            date=local_date_string(calendar, tx.date),
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyReport:
    month: int
    year: int
    month_name: str
    available_years: Tuple[int, ...]
    view: LedgerView
    income: Tuple[ReportItem, ...]
    expense: Tuple[ReportItem, ...]
    loan: Tuple[ReportItem, ...]

    @property
    def title(self) -> str:
        return f"Summary for {self.month_name} {self.year}"

    @property
    def net(self) -> Decimal:
        return self.view.totals.net_profit

    @property
    def is_empty(self) -> bool:
        return not self.view.transactions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "month": self.month,
            "year": self.year,
            "month_name": self.month_name,
            "available_years": list(self.available_years),
            "totals": self.view.totals.to_dict(),
            "net": format_currency(self.net),
            "income": [item.to_dict() for item in self.income],
            "expense": [item.to_dict() for item in self.expense],
            "loan": [item.to_dict() for item in self.loan],
        }


def build_monthly_report(
    transactions: Sequence[Transaction],
    calendar: CalendarAdapter,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> MonthlyReport:
    """Scope the ledger to one BS month, defaulting to the current one."""
    today = calendar.today()
    month = today.month if month is None else month
    year = today.year if year is None else year
    if not 0 <= month <= 11:
        raise ValidationError("month must be between 0 and 11")

    view = summarize(transactions, calendar, month=month, year=year)

    def items(group: Iterable[Transaction]) -> Tuple[ReportItem, ...]:
        return tuple(ReportItem.from_transaction(tx, calendar) for tx in group)

    return MonthlyReport(
        month=month,
        year=year,
        month_name=calendar.month_names()[month],
        available_years=tuple(today.year + offset for offset in range(REPORT_YEAR_SPAN)),
        view=view,
        income=items(view.partition.income),
        expense=items(view.partition.expense),
        loan=items(view.partition.loan),
    )


def service_history(records: Iterable[ServiceRecord], calendar: CalendarAdapter) -> List[Dict[str, Any]]:
    """Service log rows, newest first."""
    ordered = sorted(records, key=lambda rec: rec.date, reverse=True)
    return [
        {
            **record.to_dict(),
            "local_date": local_date_string(calendar, record.date),
            "display_description": record.display_description,
            "cost_display": format_currency(record.cost),
        }
        for record in ordered
    ]
