"""
Unit tests for customer collection operations.
"""

from datetime import datetime

import pytest

from aquaflow.core.customers import (
    CustomerNotFoundError,
    ReadingNotFoundError,
    add_scan,
    find_customer,
    get_customer,
    list_invoices,
    mark_reading_paid,
    new_customer,
    replace_customer,
    search_customers,
)
from aquaflow.storage.models import AlertLevel, Customer, Reading, ReadingStatus
from aquaflow.storage.seed import initial_customers


class TestNewCustomer:
    """Test customer creation and validation."""

    def test_new_customer_fields(self):
        customer = new_customer(" Carol King ", "7 Brook Lane", "MTR-003", 42, customer_id="c3")

        assert customer == Customer(
            id="c3",
            name="Carol King",
            address="7 Brook Lane",
            meter_number="MTR-003",
            last_reading=42.0,
        )
        assert customer.readings == ()
        assert customer.scans == ()

    def test_generated_id(self):
        first = new_customer("A", "", "M1")
        second = new_customer("B", "", "M2")
        assert first.id and second.id and first.id != second.id

    def test_missing_name(self):
        with pytest.raises(ValueError, match="name is required"):
            new_customer("  ", "addr", "MTR-1")

    def test_missing_meter(self):
        with pytest.raises(ValueError, match="meter_number is required"):
            new_customer("Carol", "addr", "")

    def test_negative_initial_reading(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            new_customer("Carol", "addr", "MTR-1", -1)


class TestLookup:
    """Test finding, replacing and searching customers."""

    def setup_method(self):
        self.customers = initial_customers()

    def test_find_customer(self):
        assert find_customer(self.customers, "2").name == "Alice Smith"
        assert find_customer(self.customers, "99") is None

    def test_get_customer_raises(self):
        with pytest.raises(CustomerNotFoundError):
            get_customer(self.customers, "99")

    def test_replace_keeps_order(self):
        updated = Customer(id="1", name="John Updated", address="", meter_number="MTR-001",
                           last_reading=1300)

        result = replace_customer(self.customers, updated)

        assert [c.name for c in result] == ["John Updated", "Alice Smith"]
        assert self.customers[0].name == "John Doe"

    def test_replace_unknown_customer(self):
        stranger = new_customer("X", "", "M", customer_id="99")
        with pytest.raises(CustomerNotFoundError):
            replace_customer(self.customers, stranger)

    @pytest.mark.parametrize("query,expected", [
        ("alice", ["2"]),
        ("SMITH", ["2"]),
        ("mtr-00", ["1", "2"]),
        ("mtr-001", ["1"]),
        ("", ["1", "2"]),
        ("nobody", []),
    ])
    def test_search(self, query, expected):
        assert [c.id for c in search_customers(self.customers, query)] == expected


class TestScansAndPayments:
    """Test scan history and invoice payment."""

    def setup_method(self):
        self.customer = initial_customers()[1]

    def test_add_scan_prepends(self):
        first, scan1 = add_scan(self.customer, "Normal.", AlertLevel.LOW,
                                timestamp=datetime(2024, 1, 1), scan_id="s1")
        second, scan2 = add_scan(first, "Spike!", AlertLevel.HIGH,
                                 timestamp=datetime(2024, 2, 1), scan_id="s2")

        assert [s.id for s in second.scans] == ["s2", "s1"]
        assert scan2.alert_level == AlertLevel.HIGH
        assert self.customer.scans == ()

    def test_mark_reading_paid(self):
        paid = mark_reading_paid(self.customer, "r3")

        assert paid.readings[0].status == ReadingStatus.PAID
        assert paid.readings[0].amount == self.customer.readings[0].amount
        assert self.customer.readings[0].status == ReadingStatus.UNPAID

    def test_mark_reading_paid_twice(self):
        once = mark_reading_paid(self.customer, "r3")
        assert mark_reading_paid(once, "r3") == once

    def test_mark_unknown_reading(self):
        with pytest.raises(ReadingNotFoundError):
            mark_reading_paid(self.customer, "nope")


class TestListInvoices:
    """Test the invoice listing."""

    def test_newest_first_across_customers(self):
        invoices = list_invoices(initial_customers())

        assert [inv.reading.id for inv in invoices] == ["r3", "r2", "r1"]
        assert invoices[0].customer_name == "Alice Smith"
        assert invoices[0].meter_number == "MTR-002"

    def test_same_day_readings_sorted_by_time(self):
        customer = Customer(
            id="1", name="A", address="", meter_number="M", last_reading=3,
            readings=(
                Reading(id="early", date=datetime(2024, 1, 1, 8), value=2, consumption=1, amount=16.5),
                Reading(id="late", date=datetime(2024, 1, 1, 18), value=3, consumption=1, amount=16.5),
            ),
        )
        assert [inv.reading.id for inv in list_invoices([customer])] == ["late", "early"]

    def test_stored_utc_dates_sort_with_naive_dates(self):
        stored = Customer.from_dict({
            "id": "3", "name": "Carol King", "address": "", "meterNumber": "MTR-003",
            "lastReading": 40,
            "readings": [{
                "id": "z1", "date": "2024-01-05T10:00:00.000Z", "value": 40,
                "consumption": 40, "amount": 100.0, "status": "Unpaid",
            }],
        })

        invoices = list_invoices(initial_customers() + [stored])

        assert [inv.reading.id for inv in invoices] == ["z1", "r3", "r2", "r1"]

    def test_no_invoices(self):
        assert list_invoices([]) == []
