"""Data models for the EV ledger domain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

__all__ = [
    "AccountType",
    "ServiceRecord",
    "ServiceType",
    "TireSelection",
    "TireServiceType",
    "Transaction",
    "TransactionType",
    "isoformat_utc",
    "parse_datetime",
]


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="milliseconds")
    # datetime.isoformat renders +00:00 for UTC; replace with the shorter Z form.
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Treat naive datetimes as UTC to avoid accidental timezone drift.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class AccountType(str, Enum):
    CASH = "cash"
    LOAN = "loan"


class ServiceType(str, Enum):
    SERVICING = "Servicing"
    REPAIRING = "Repairing"
    TIRE = "Tire"


class TireServiceType(str, Enum):
    NEW = "Tire New"
    RESOLE = "Tire Resole"
    ROTATION = "Tire Rotation"


@dataclass(frozen=True)
class Transaction:
    id: str
    description: str
    amount: Decimal
    type: TransactionType
    account: AccountType
    date: datetime

    @property
    def is_loan(self) -> bool:
        return self.account is AccountType.LOAN

    @property
    def type_label(self) -> str:
        """Human label for the type; loan draws and repayments read differently."""
        if self.is_loan:
            return "Withdrawal" if self.type is TransactionType.INCOME else "Pay Loan"
        return "Income" if self.type is TransactionType.INCOME else "Expense"

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the transaction to JSON-friendly natives."""
        return {
            "id": self.id,
            "description": self.description,
            "amount": f"{self.amount:.2f}",
            "type": self.type.value,
            "account": self.account.value,
            "date": isoformat_utc(self.date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Hydrate a Transaction from JSON-native data."""
        return cls(
            id=data["id"],
            description=data["description"],
            amount=Decimal(str(data["amount"])),
            type=TransactionType(data["type"]),
            account=AccountType(data["account"]),
            date=parse_datetime(data["date"]),
        )


@dataclass(frozen=True)
class TireSelection:
    fl: bool = False
    fr: bool = False
    rl: bool = False
    rr: bool = False
    spare: bool = False

    ABBREVIATIONS = (("fl", "FL"), ("fr", "FR"), ("rl", "RL"), ("rr", "RR"), ("spare", "Spare"))

    def any_selected(self) -> bool:
        return any(getattr(self, name) for name, _ in self.ABBREVIATIONS)

    def abbreviations(self) -> List[str]:
        return [label for name, label in self.ABBREVIATIONS if getattr(self, name)]

    def to_dict(self) -> Dict[str, bool]:
        return {name: getattr(self, name) for name, _ in self.ABBREVIATIONS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TireSelection":
        return cls(**{name: bool(data.get(name, False)) for name, _ in cls.ABBREVIATIONS})


@dataclass(frozen=True)
class ServiceRecord:
    id: str
    date: datetime
    odometer: int
    description: str
    cost: Decimal
    service_types: FrozenSet[ServiceType] = field(default_factory=frozenset)
    notes: Optional[str] = None
    tire_company: Optional[str] = None
    tires: Optional[TireSelection] = None

    @property
    def is_tire_service(self) -> bool:
        return ServiceType.TIRE in self.service_types

    @property
    def display_description(self) -> str:
        """Description with selected tire positions and tire company appended."""
        text = self.description
        if self.is_tire_service and self.tires is not None:
            selected = self.tires.abbreviations()
            if selected:
                text = f"{self.description} ({', '.join(selected)})"
        if self.tire_company:
            return f"{text} - {self.tire_company}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the service record to JSON-friendly natives."""
        # Keep declaration order of ServiceType so stored payloads are stable.
        types = [member.value for member in ServiceType if member in self.service_types]
        return {
            "id": self.id,
            "date": isoformat_utc(self.date),
            "odometer": self.odometer,
            "description": self.description,
            "cost": f"{self.cost:.2f}",
            "notes": self.notes,
            "service_types": types,
            "tire_company": self.tire_company,
            "tires": self.tires.to_dict() if self.tires is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceRecord":
        """Hydrate a ServiceRecord from JSON-native data."""
        tires = data.get("tires")
        return cls(
            id=data["id"],
            date=parse_datetime(data["date"]),
            odometer=int(data["odometer"]),
            description=data["description"],
            cost=Decimal(str(data["cost"])),
            service_types=frozenset(ServiceType(value) for value in data.get("service_types", [])),
            notes=data.get("notes"),
            tire_company=data.get("tire_company"),
            tires=TireSelection.from_dict(tires) if tires is not None else None,
        )
