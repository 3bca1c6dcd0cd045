"""Pure derivations over the transaction log.

Nothing here mutates its input or keeps state between calls: the same
transactions (and scope) always produce equal views.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .calendar import CalendarAdapter
from .exceptions import CalendarConversionError
from .models import AccountType, Transaction, TransactionType

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Totals:
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    cash_balance: Decimal = ZERO
    loan_balance: Decimal = ZERO

    @property
    def net_profit(self) -> Decimal:
        return self.total_income - self.total_expenses

    def to_dict(self) -> Dict[str, str]:
        return {
            "total_income": f"{self.total_income:.2f}",
            "total_expenses": f"{self.total_expenses:.2f}",
            "cash_balance": f"{self.cash_balance:.2f}",
            "loan_balance": f"{self.loan_balance:.2f}",
            "net_profit": f"{self.net_profit:.2f}",
        }


@dataclass(frozen=True)
class Partition:
    income: Tuple[Transaction, ...] = ()
    expense: Tuple[Transaction, ...] = ()
    loan: Tuple[Transaction, ...] = ()


@dataclass(frozen=True)
class LedgerView:
    """Everything a dashboard or monthly report needs from one pass."""

    transactions: Tuple[Transaction, ...]
    partition: Partition
    totals: Totals
    month: Optional[int] = None
    year: Optional[int] = None

    @property
    def is_scoped(self) -> bool:
        return self.month is not None and self.year is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "year": self.year,
            "totals": self.totals.to_dict(),
            "transactions": [tx.to_dict() for tx in self.transactions],
            "income": [tx.to_dict() for tx in self.partition.income],
            "expense": [tx.to_dict() for tx in self.partition.expense],
            "loan": [tx.to_dict() for tx in self.partition.loan],
        }


def _has_scope(month: Optional[int], year: Optional[int]) -> bool:
    return month is not None and year is not None


def filter_by_period(
    transactions: Iterable[Transaction],
    calendar: CalendarAdapter,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> List[Transaction]:
    """Keep transactions falling in BS ``month`` (0-11) of ``year``.

    Without a complete scope the input is returned unchanged (as a new list).
    Transactions whose date cannot be converted are dropped and logged.
    """
    if not _has_scope(month, year):
        return list(transactions)

    matched: List[Transaction] = []
    for tx in transactions:
        try:
            converted = calendar.to_foreign_date(tx.date)
        except CalendarConversionError:
            logger.warning("Could not convert date for transaction %s; excluded from period view", tx.id, exc_info=True)
            continue
        if converted.year == year and converted.month == month:
            matched.append(tx)
    return matched


def sort_descending(transactions: Iterable[Transaction]) -> List[Transaction]:
    # sorted() is stable with reverse=True, so equal instants keep input order.
    return sorted(transactions, key=lambda tx: tx.date, reverse=True)


def partition_by_category(transactions: Iterable[Transaction]) -> Partition:
    income: List[Transaction] = []
    expense: List[Transaction] = []
    loan: List[Transaction] = []
    for tx in transactions:
        if tx.account is AccountType.LOAN:
            loan.append(tx)
        elif tx.type is TransactionType.INCOME:
            income.append(tx)
        else:
            expense.append(tx)
    return Partition(income=tuple(income), expense=tuple(expense), loan=tuple(loan))


def compute_totals(source: Iterable[Transaction]) -> Totals:
    """Accumulate profit/loss and account balances.

    Loan draws (INCOME on LOAN) raise the liability and repayments lower it;
    neither counts toward income or expenses.
    """
    total_income = total_expenses = cash_balance = loan_balance = ZERO
    for tx in source:
        is_income = tx.type is TransactionType.INCOME
        if tx.account is AccountType.LOAN:
            loan_balance += tx.amount if is_income else -tx.amount
            continue
        if is_income:
            total_income += tx.amount
            cash_balance += tx.amount
        else:
            total_expenses += tx.amount
            cash_balance -= tx.amount
    return Totals(
        total_income=total_income,
        total_expenses=total_expenses,
        cash_balance=cash_balance,
        loan_balance=loan_balance,
    )


def summarize(
    transactions: Sequence[Transaction],
    calendar: CalendarAdapter,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> LedgerView:
    """Derive the sorted, partitioned view plus totals.

    Totals are all-time when no scope is given and period-only otherwise.
    """
    scoped = filter_by_period(transactions, calendar, month, year)
    ordered = sort_descending(scoped)
    source = scoped if _has_scope(month, year) else transactions
    return LedgerView(
        transactions=tuple(ordered),
        partition=partition_by_category(ordered),
        totals=compute_totals(source),
        month=month if _has_scope(month, year) else None,
        year=year if _has_scope(month, year) else None,
    )
