"""
Customer collection operations.

All functions are functional updates: they return new customers or new
lists and never mutate their inputs.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from aquaflow.storage.models import (
    AlertLevel,
    Customer,
    Reading,
    ReadingStatus,
    ScanEntry,
    generate_id,
)


class CustomerNotFoundError(KeyError):
    """Raised when a customer id is not in the collection."""


class ReadingNotFoundError(KeyError):
    """Raised when a reading id does not belong to the customer."""


@dataclass(frozen=True)
class Invoice:
    """A reading listed with the customer it was billed to."""
    reading: Reading
    customer_id: str
    customer_name: str
    meter_number: str


def new_customer(
    name: str,
    address: str,
    meter_number: str,
    last_reading: float = 0.0,
    customer_id: Optional[str] = None,
) -> Customer:
    """Create a customer with empty reading and scan history.

    Raises:
        ValueError: If name or meter number is empty, or the initial
            reading is negative
    """
    if not name or not name.strip():
        raise ValueError("name is required and cannot be empty")
    if not meter_number or not meter_number.strip():
        raise ValueError("meter_number is required and cannot be empty")
    if last_reading < 0:
        raise ValueError("last_reading cannot be negative")

    return Customer(
        id=customer_id or generate_id(),
        name=name.strip(),
        address=(address or "").strip(),
        meter_number=meter_number.strip(),
        last_reading=float(last_reading),
    )


def find_customer(customers: Iterable[Customer], customer_id: str) -> Optional[Customer]:
    return next((c for c in customers if c.id == customer_id), None)


def get_customer(customers: Iterable[Customer], customer_id: str) -> Customer:
    """Like find_customer, but raises CustomerNotFoundError when absent."""
    customer = find_customer(customers, customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer


def replace_customer(customers: Iterable[Customer], updated: Customer) -> List[Customer]:
    """Replace the customer with the same id, keeping list order.

    Raises:
        CustomerNotFoundError: If no customer has ``updated.id``
    """
    result = []
    found = False
    for customer in customers:
        if customer.id == updated.id:
            result.append(updated)
            found = True
        else:
            result.append(customer)
    if not found:
        raise CustomerNotFoundError(updated.id)
    return result


def search_customers(customers: Iterable[Customer], query: str) -> List[Customer]:
    """Case-insensitive search on customer name or meter number."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(customers)
    return [
        c for c in customers
        if needle in c.name.lower() or needle in c.meter_number.lower()
    ]


def add_scan(
    customer: Customer,
    analysis: str,
    alert_level: AlertLevel,
    timestamp: Optional[datetime] = None,
    scan_id: Optional[str] = None,
) -> Tuple[Customer, ScanEntry]:
    """Prepend a scan entry to the customer's history."""
    scan = ScanEntry(
        id=scan_id or generate_id(),
        date=timestamp or datetime.now(),
        analysis=analysis,
        alert_level=alert_level,
    )
    return replace(customer, scans=(scan,) + customer.scans), scan


def mark_reading_paid(customer: Customer, reading_id: str) -> Customer:
    """Flip a reading's status to PAID. Paying twice is a no-op.

    Raises:
        ReadingNotFoundError: If the reading is not the customer's
    """
    if not any(r.id == reading_id for r in customer.readings):
        raise ReadingNotFoundError(reading_id)

    readings = tuple(
        replace(r, status=ReadingStatus.PAID) if r.id == reading_id else r
        for r in customer.readings
    )
    return replace(customer, readings=readings)


def list_invoices(customers: Iterable[Customer]) -> List[Invoice]:
    """All readings across customers, newest first."""
    invoices = [
        Invoice(
            reading=reading,
            customer_id=customer.id,
            customer_name=customer.name,
            meter_number=customer.meter_number,
        )
        for customer in customers
        for reading in customer.readings
    ]
    return sorted(invoices, key=lambda inv: inv.reading.date, reverse=True)
