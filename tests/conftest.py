"""Shared fixtures for the EV ledger tests."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterable

import pytest

from evledger.calendar import CalendarAdapter, ForeignDate, GregorianFallbackCalendar
from evledger.config import Settings
from evledger.exceptions import CalendarConversionError
from evledger.gateway import StorageGateway
from evledger.models import AccountType, Transaction, TransactionType
from evledger.storage import JSONStorage

FIXED_NOW = datetime(2024, 5, 20, 9, 30, tzinfo=timezone.utc)


def make_tx(
    tx_id: str,
    amount: str,
    tx_type: TransactionType = TransactionType.INCOME,
    account: AccountType = AccountType.CASH,
    when: datetime = FIXED_NOW,
    description: str = "entry",
) -> Transaction:
    return Transaction(
        id=tx_id,
        description=description,
        amount=Decimal(amount),
        type=tx_type,
        account=account,
        date=when,
    )


class BrokenDatesCalendar(GregorianFallbackCalendar):
    """Gregorian fallback that refuses to convert the listed instants."""

    def __init__(self, broken: Iterable[datetime]) -> None:
        super().__init__(tz=timezone.utc, clock=lambda: FIXED_NOW)
        self._broken = set(broken)

    def to_foreign_date(self, instant: datetime) -> ForeignDate:
        if instant in self._broken:
            raise CalendarConversionError(f"cannot convert {instant}")
        return super().to_foreign_date(instant)


@pytest.fixture
def calendar() -> CalendarAdapter:
    return GregorianFallbackCalendar(tz=timezone.utc, clock=lambda: FIXED_NOW)


@pytest.fixture
def storage(tmp_path: Path) -> JSONStorage:
    return JSONStorage(tmp_path / "data")


@pytest.fixture
def gateway(storage: JSONStorage) -> StorageGateway:
    return StorageGateway(storage, load_latency=0, save_latency=0)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        calendar="gregorian",
        timezone="UTC",
        load_latency=0,
        save_latency=0,
        log_level="WARNING",
        env="dev",
    )
