"""Environment-driven settings for the EV ledger."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from .calendar import DEFAULT_TIMEZONE, CalendarAdapter, resolve_calendar

ENV_PREFIX = "EV_LEDGER_"


def _env(environ: Mapping[str, str], name: str, default: str) -> str:
    value = environ.get(ENV_PREFIX + name)
    return value.strip() if value and value.strip() else default


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _env(environ, name, str(default))
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{ENV_PREFIX}{name} must not be negative")
    return value


@dataclass
class Settings:
    data_dir: Path = Path("data")
    calendar: str = "bikram_sambat"
    timezone: str = DEFAULT_TIMEZONE
    load_latency: float = 0.5
    save_latency: float = 0.3
    log_level: str = "INFO"
    env: str = "prod"
    allowed_origins: List[str] = field(default_factory=list)

    @property
    def is_dev(self) -> bool:
        return self.env in {"dev", "development"}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        origins = _env(environ, "ALLOWED_ORIGINS", "")
        return cls(
            data_dir=Path(_env(environ, "DATA_DIR", "data")),
            calendar=_env(environ, "CALENDAR", "bikram_sambat").lower(),
            timezone=_env(environ, "TIMEZONE", DEFAULT_TIMEZONE),
            load_latency=_env_float(environ, "LOAD_LATENCY", 0.5),
            save_latency=_env_float(environ, "SAVE_LATENCY", 0.3),
            log_level=_env(environ, "LOG_LEVEL", "INFO").upper(),
            env=_env(environ, "ENV", "prod").lower(),
            allowed_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
        )

    def build_calendar(self) -> CalendarAdapter:
        return resolve_calendar(self.calendar, self.timezone)
