"""Tests for input validation helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from evledger.calendar import BikramSambatCalendar, ForeignDate
from evledger.exceptions import ValidationError
from evledger.models import ServiceType, TireSelection, TireServiceType, TransactionType
from evledger.validators import (
    clean_payload,
    parse_amount,
    parse_cost,
    parse_odometer,
    validate_enum,
    validate_service_date,
    validate_service_types,
    validate_tire_detail,
    validate_tires,
    validate_transaction_date,
    validate_username,
)


def test_parse_amount_quantizes_to_cents():
    assert parse_amount("12.345", "amount") == Decimal("12.35")
    assert parse_amount(7, "amount") == Decimal("7.00")


@pytest.mark.parametrize("raw", ["0", "-5", "abc", None, True, "NaN"])
def test_parse_amount_rejects_non_positive_or_garbage(raw):
    with pytest.raises(ValidationError):
        parse_amount(raw, "amount")


def test_parse_cost_allows_zero_but_not_negative():
    assert parse_cost("0", "cost") == Decimal("0.00")
    with pytest.raises(ValidationError):
        parse_cost("-0.01", "cost")


def test_parse_odometer():
    assert parse_odometer("12500") == 12500
    assert parse_odometer(0) == 0
    for raw in ("-1", "12.5", "far", True):
        with pytest.raises(ValidationError):
            parse_odometer(raw)


def test_bare_transaction_date_gets_current_time_of_day():
    clock = lambda: datetime(2024, 5, 20, 14, 5, 30, 250000, tzinfo=timezone.utc)  # noqa: E731

    result = validate_transaction_date("2024-05-18", clock=clock)

    assert result == datetime(2024, 5, 18, 14, 5, 30, 250000, tzinfo=timezone.utc)


def test_full_transaction_instant_is_kept():
    result = validate_transaction_date("2024-05-18T08:00:00Z")

    assert result == datetime(2024, 5, 18, 8, tzinfo=timezone.utc)


@pytest.mark.parametrize("raw", [None, "yesterday", "2024-02-30", 20240518])
def test_transaction_date_rejects_bad_input(raw):
    with pytest.raises(ValidationError):
        validate_transaction_date(raw)


def test_service_date_is_midnight_utc():
    assert validate_service_date("2024-05-18") == datetime(2024, 5, 18, tzinfo=timezone.utc)


def test_validate_enum_accepts_values_names_and_members():
    assert validate_enum("Income", "type", TransactionType) is TransactionType.INCOME
    assert validate_enum("EXPENSE", "type", TransactionType) is TransactionType.EXPENSE
    assert validate_enum(TransactionType.INCOME, "type", TransactionType) is TransactionType.INCOME
    with pytest.raises(ValidationError):
        validate_enum("transfer", "type", TransactionType)


def test_service_types_must_not_be_empty():
    assert validate_service_types(["Tire", "servicing"]) == frozenset(
        {ServiceType.TIRE, ServiceType.SERVICING}
    )
    with pytest.raises(ValidationError, match="at least one service type"):
        validate_service_types([])
    with pytest.raises(ValidationError):
        validate_service_types("Tire")


def test_tires_require_at_least_one_position():
    assert validate_tires({"fl": True}) == TireSelection(fl=True)
    with pytest.raises(ValidationError, match="at least one tire"):
        validate_tires({"fl": False, "spare": False})
    with pytest.raises(ValidationError, match="at least one tire"):
        validate_tires(None)
    with pytest.raises(ValidationError, match="unknown positions"):
        validate_tires({"middle": True})


def test_tire_detail_is_required():
    assert validate_tire_detail("Tire Rotation") is TireServiceType.ROTATION
    with pytest.raises(ValidationError, match="tire detail"):
        validate_tire_detail("")


def test_username_rules():
    assert validate_username(" ram.bahadur ") == "ram.bahadur"
    for raw in ("", "has space", "a/b", "NULL"):
        with pytest.raises(ValidationError):
            validate_username(raw)


def test_clean_payload_drops_none():
    assert clean_payload({"a": 1, "b": None, "c": ""}) == {"a": 1, "c": ""}


def test_bare_transaction_date_is_a_day_in_the_reader_time_zone():
    kathmandu = ZoneInfo("Asia/Kathmandu")
    # 20:00 UTC is already 01:45 the next morning in Kathmandu.
    clock = lambda: datetime(2024, 4, 12, 20, 0, tzinfo=timezone.utc)  # noqa: E731

    result = validate_transaction_date("2024-04-12", tz=kathmandu, clock=clock)

    assert result == datetime(2024, 4, 11, 20, 0, tzinfo=timezone.utc)
    assert result.astimezone(kathmandu).date() == date(2024, 4, 12)
    assert BikramSambatCalendar(tz=kathmandu).to_foreign_date(result) == ForeignDate(2080, 11, 30)
