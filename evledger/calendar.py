"""Calendar adapters mapping UTC instants onto the Bikram Sambat calendar.

Timestamps are stored as UTC instants; reports are organised by Bikram Sambat
(BS) month. Consumers receive a ``CalendarAdapter`` explicitly instead of
reaching for a module-level calendar object.

Two implementations exist:

* ``BikramSambatCalendar`` uses the ``nepali-datetime`` conversion tables.
* ``GregorianFallbackCalendar`` is the documented fallback for environments
  where exact BS conversion is not wanted. It approximates the BS year as the
  Gregorian year plus 57 and reuses the Gregorian month and day, so month
  boundaries are off by roughly two weeks. Reports produced with it are
  labelled with BS month names but follow Gregorian months.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import nepali_datetime

from .exceptions import CalendarConversionError

BS_MONTH_NAMES = (
    "Baisakh",
    "Jestha",
    "Asar",
    "Shrawan",
    "Bhadra",
    "Aswin",
    "Kartik",
    "Mangsir",
    "Poush",
    "Magh",
    "Falgun",
    "Chaitra",
)

FALLBACK_YEAR_OFFSET = 57
DEFAULT_TIMEZONE = "Asia/Kathmandu"


@dataclass(frozen=True, order=True)
class ForeignDate:
    year: int
    month: int  # 0-11
    day: int


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone {name!r}") from exc


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CalendarAdapter(abc.ABC):
    """Converts instants to (year, month 0-11, day) in a target calendar."""

    def __init__(self, tz: tzinfo = timezone.utc, clock: Callable[[], datetime] = _utc_now) -> None:
        self._tz = tz
        self._clock = clock

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def local_date(self, instant: datetime) -> date:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self._tz).date()

    @abc.abstractmethod
    def to_foreign_date(self, instant: datetime) -> ForeignDate:
        """Raises CalendarConversionError when the instant cannot be converted."""

    def today(self) -> ForeignDate:
        return self.to_foreign_date(self._clock())

    def month_names(self) -> Sequence[str]:
        return BS_MONTH_NAMES

    def format(self, instant: datetime) -> str:
        """Render as ``Baisakh 1, 2081``."""
        converted = self.to_foreign_date(instant)
        return f"{self.month_names()[converted.month]} {converted.day}, {converted.year}"


class BikramSambatCalendar(CalendarAdapter):
    name = "bikram_sambat"

    def to_foreign_date(self, instant: datetime) -> ForeignDate:
        local = self.local_date(instant)
        try:
            converted = nepali_datetime.date.from_datetime_date(local)
        except (ValueError, OverflowError) as exc:
            raise CalendarConversionError(
                f"{local.isoformat()} is outside the supported Bikram Sambat range"
            ) from exc
        return ForeignDate(year=converted.year, month=converted.month - 1, day=converted.day)


class GregorianFallbackCalendar(CalendarAdapter):
    name = "gregorian"

    def to_foreign_date(self, instant: datetime) -> ForeignDate:
        local = self.local_date(instant)
        return ForeignDate(
            year=local.year + FALLBACK_YEAR_OFFSET, month=local.month - 1, day=local.day
        )


CALENDARS = {
    BikramSambatCalendar.name: BikramSambatCalendar,
    GregorianFallbackCalendar.name: GregorianFallbackCalendar,
}


def resolve_calendar(name: str = BikramSambatCalendar.name, tz_name: Optional[str] = DEFAULT_TIMEZONE) -> CalendarAdapter:
    """Build the calendar adapter named in configuration."""
    try:
        factory = CALENDARS[name.strip().lower()]
    except KeyError as exc:
        raise ValueError(
            f"Unknown calendar {name!r}; expected one of: {', '.join(sorted(CALENDARS))}"
        ) from exc
    return factory(tz=resolve_timezone(tz_name))
