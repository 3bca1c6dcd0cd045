"""Validation helpers shared across EV ledger services."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone, tzinfo
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Type, TypeVar

from .exceptions import ValidationError
from .models import ServiceType, TireSelection, TireServiceType, parse_datetime

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,40}$")
DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

E = TypeVar("E", bound=Enum)


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _to_decimal(raw: object, field: str) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:  # type: ignore[arg-type]
        raise ValidationError(f"{field} must be a numeric value") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a numeric value")
    return amount


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a positive Decimal with exactly two fraction digits."""
    amount = _to_decimal(raw, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return _quantize_two_decimals(amount)


def parse_cost(raw: object, field: str) -> Decimal:
    """Like parse_amount but zero is allowed (warranty work costs nothing)."""
    amount = _to_decimal(raw, field)
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")
    return _quantize_two_decimals(amount)


def parse_odometer(raw: object, field: str = "odometer") -> int:
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a whole number")
    if isinstance(raw, int):
        value = raw
    else:
        try:
            value = int(str(raw).strip())
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{field} must be a whole number") from exc
    if value < 0:
        raise ValidationError(f"{field} must not be negative")
    return value


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_required_str(value, field, max_length)


def validate_datetime(value: object, field: str) -> datetime:
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = parse_datetime(value)
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO 8601 date or datetime") from exc
    else:
        raise ValidationError(f"{field} must be a datetime or ISO 8601 string")
    return dt.astimezone(timezone.utc)


def _parse_date_only(value: object, field: str) -> Optional[date]:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str) and DATE_ONLY_PATTERN.fullmatch(value.strip()):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f"{field} is not a valid calendar date") from exc
    return None


def validate_transaction_date(
    value: object,
    field: str = "date",
    *,
    tz: tzinfo = timezone.utc,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> datetime:
    """Accept a full instant, or a bare date which gets the current time of day.

    A bare date is a day on the reader's wall calendar in ``tz``. Attaching
    the wall-clock time keeps entries recorded on the same day in insertion
    order once they are sorted by instant.
    """
    day = _parse_date_only(value, field)
    if day is None:
        return validate_datetime(value, field)
    now = clock().astimezone(tz)
    # Stored instants carry millisecond precision.
    now = now.replace(microsecond=now.microsecond // 1000 * 1000)
    return datetime.combine(day, now.timetz()).astimezone(timezone.utc)


def validate_service_date(value: object, field: str = "date") -> datetime:
    """Service dates are calendar days, stored at midnight UTC."""
    day = _parse_date_only(value, field)
    if day is None:
        return validate_datetime(value, field)
    return datetime.combine(day, time(0, 0), tzinfo=timezone.utc)


def validate_enum(value: object, field: str, enum_cls: Type[E]) -> E:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    canonical = value.strip().lower()
    for member in enum_cls:
        if canonical in (str(member.value).lower(), member.name.lower()):
            return member
    allowed = ", ".join(str(member.value) for member in enum_cls)
    raise ValidationError(f"{field} must be one of: {allowed}")


def validate_service_types(raw: object) -> FrozenSet[ServiceType]:
    if raw is None or isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise ValidationError("service_types must be a list")
    types = frozenset(validate_enum(item, "service_types", ServiceType) for item in raw)
    if not types:
        raise ValidationError("Please select at least one service type.")
    return types


def validate_tires(raw: object) -> TireSelection:
    if isinstance(raw, TireSelection):
        tires = raw
    elif isinstance(raw, dict):
        unknown = set(raw) - {name for name, _ in TireSelection.ABBREVIATIONS}
        if unknown:
            raise ValidationError(f"tires has unknown positions: {', '.join(sorted(unknown))}")
        tires = TireSelection.from_dict(raw)
    elif raw is None:
        tires = TireSelection()
    else:
        raise ValidationError("tires must be a mapping of tire positions to booleans")
    if not tires.any_selected():
        raise ValidationError("Please select at least one tire.")
    return tires


def validate_tire_detail(raw: object) -> TireServiceType:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError("Please select a tire detail.")
    return validate_enum(raw, "tire_detail", TireServiceType)


def validate_username(value: object) -> str:
    username = validate_required_str(value, "username", 40)
    if not USERNAME_PATTERN.fullmatch(username):
        raise ValidationError(
            "username may only contain letters, digits, dots, underscores, or hyphens"
        )
    if username.lower() == "null":
        # "null" is the storage scope for signed-out sessions.
        raise ValidationError("username is reserved")
    return username


def validate_password(value: object) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError("Please fill out all fields.")
    return value


def clean_payload(payload: Dict[str, object]) -> Dict[str, object]:
    """Drop keys whose value is None so partial updates only touch given fields."""
    return {key: value for key, value in payload.items() if value is not None}
