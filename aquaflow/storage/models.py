"""
Data models for storage layer.

Defines customers, meter readings and scan history, along with the
JSON mapping used by the key-value store.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Tuple


def generate_id() -> str:
    """Generate a short unique identifier for customers, readings and scans."""
    return uuid.uuid4().hex[:12]


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO 8601 date into a naive local datetime.

    Accepts plain dates, naive timestamps and UTC timestamps such as
    "2023-11-15T10:00:00.000Z". Offsets are converted to local time and
    dropped, since all dates compared by the app are naive.
    """
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class ReadingStatus(Enum):
    """Payment status of a reading's invoice."""
    UNPAID = "Unpaid"
    PAID = "Paid"


class AlertLevel(Enum):
    """Coarse severity attached to an AI insight."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: str) -> "AlertLevel":
        """Parse a level string case-insensitively.

        Raises:
            ValueError: If the value is not one of low, medium, high
        """
        if not isinstance(value, str):
            raise ValueError(f"alert level must be a string, got {value!r}")
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_levels = [level.value for level in cls]
            raise ValueError(f"alert level must be one of: {valid_levels}")


@dataclass(frozen=True)
class Reading:
    """A single meter reading and the invoice computed from it.

    Readings are append-only. The only change a reading ever sees is its
    status flipping to PAID, which produces a new Reading.
    """
    id: str
    date: datetime
    value: float
    consumption: float
    amount: float
    status: ReadingStatus = ReadingStatus.UNPAID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "value": self.value,
            "consumption": self.consumption,
            "amount": self.amount,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reading":
        return cls(
            id=str(data["id"]),
            date=parse_timestamp(data["date"]),
            value=float(data["value"]),
            consumption=float(data["consumption"]),
            amount=float(data["amount"]),
            status=ReadingStatus(data.get("status", ReadingStatus.UNPAID.value)),
        )


@dataclass(frozen=True)
class ScanEntry:
    """Result of one AI analysis run for a customer."""
    id: str
    date: datetime
    analysis: str
    alert_level: AlertLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "analysis": self.analysis,
            "alertLevel": self.alert_level.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanEntry":
        return cls(
            id=str(data["id"]),
            date=parse_timestamp(data["date"]),
            analysis=str(data["analysis"]),
            alert_level=AlertLevel.parse(data["alertLevel"]),
        )


@dataclass(frozen=True)
class Customer:
    """A metered customer.

    Readings are kept in chronological order and scans most-recent-first.
    The customer exclusively owns both sequences; updates always return a
    new Customer instead of mutating this one.
    """
    id: str
    name: str
    address: str
    meter_number: str
    last_reading: float
    readings: Tuple[Reading, ...] = field(default_factory=tuple)
    scans: Tuple[ScanEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "meterNumber": self.meter_number,
            "lastReading": self.last_reading,
            "readings": [reading.to_dict() for reading in self.readings],
            "scans": [scan.to_dict() for scan in self.scans],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Customer":
        # Records written before scan history existed have no "scans" key
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            address=str(data.get("address", "")),
            meter_number=str(data["meterNumber"]),
            last_reading=float(data["lastReading"]),
            readings=tuple(Reading.from_dict(r) for r in data.get("readings", [])),
            scans=tuple(ScanEntry.from_dict(s) for s in data.get("scans") or []),
        )


@dataclass(frozen=True)
class Insight:
    """Latest AI insight for the focused customer."""
    customer_id: str
    analysis: str
    alert_level: AlertLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customerId": self.customer_id,
            "analysis": self.analysis,
            "alertLevel": self.alert_level.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Insight":
        return cls(
            customer_id=str(data["customerId"]),
            analysis=str(data["analysis"]),
            alert_level=AlertLevel.parse(data["alertLevel"]),
        )
