"""
Unit tests for alert derivation.

Tests overdue detection, leak alerts, ordering, filtering and dismissal.
"""

from datetime import datetime, timedelta

import pytest

from aquaflow.core.alerts import (
    AlertFilter,
    AlertSeverity,
    AlertType,
    derive_alerts,
    dismiss_alert,
)
from aquaflow.storage.models import AlertLevel, Customer, Insight, Reading, ReadingStatus

NOW = datetime(2024, 3, 1, 12, 0, 0)


def make_reading(reading_id: str, days_ago: float, amount: float = 42.25,
                 status: ReadingStatus = ReadingStatus.UNPAID) -> Reading:
    return Reading(
        id=reading_id,
        date=NOW - timedelta(days=days_ago),
        value=100,
        consumption=15,
        amount=amount,
        status=status,
    )


def make_customer(customer_id: str, name: str, *readings: Reading) -> Customer:
    return Customer(
        id=customer_id,
        name=name,
        address="",
        meter_number=f"MTR-{customer_id}",
        last_reading=100,
        readings=tuple(readings),
    )


class TestOverdueDetection:
    """Test overdue bill alerts."""

    def test_unpaid_old_reading_is_overdue(self):
        customer = make_customer("2", "Alice Smith", make_reading("r3", days_ago=45))

        alerts = derive_alerts([customer], now=NOW)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.id == "overdue-r3"
        assert alert.type == AlertType.OVERDUE_BILL
        assert alert.severity == AlertSeverity.HIGH
        assert alert.customer_id == "2"
        assert alert.customer_name == "Alice Smith"
        assert alert.message == "Bill of $42.25 is overdue by more than 30 days."

    def test_exactly_thirty_days_is_not_overdue(self):
        """Verify the threshold is strict."""
        customer = make_customer("1", "A", make_reading("r1", days_ago=30))
        assert derive_alerts([customer], now=NOW) == []

    def test_one_second_past_thirty_days_is_overdue(self):
        customer = make_customer("1", "A", make_reading("r1", days_ago=30 + 1 / 86400))
        assert [a.id for a in derive_alerts([customer], now=NOW)] == ["overdue-r1"]

    def test_thirty_one_days_is_overdue(self):
        customer = make_customer("1", "A", make_reading("r1", days_ago=31))
        assert [a.id for a in derive_alerts([customer], now=NOW)] == ["overdue-r1"]

    def test_paid_reading_is_not_overdue(self):
        customer = make_customer(
            "1", "A", make_reading("r1", days_ago=90, status=ReadingStatus.PAID)
        )
        assert derive_alerts([customer], now=NOW) == []

    def test_recent_unpaid_reading_is_not_overdue(self):
        customer = make_customer("1", "A", make_reading("r1", days_ago=3))
        assert derive_alerts([customer], now=NOW) == []

    def test_amount_formatted_to_cents(self):
        customer = make_customer("1", "A", make_reading("r1", days_ago=40, amount=130.0))
        alerts = derive_alerts([customer], now=NOW)
        assert alerts[0].message == "Bill of $130.00 is overdue by more than 30 days."

    def test_customer_without_readings(self):
        assert derive_alerts([make_customer("1", "A")], now=NOW) == []

    def test_no_customers(self):
        assert derive_alerts([], now=NOW) == []

    def test_defaults_to_current_time(self):
        customer = Customer(
            id="1", name="A", address="", meter_number="M", last_reading=1,
            readings=(Reading(id="old", date=datetime.now() - timedelta(days=60),
                              value=1, consumption=1, amount=16.5),),
        )
        assert [a.id for a in derive_alerts([customer])] == ["overdue-old"]

    def test_stored_utc_dates(self):
        customer = Customer.from_dict({
            "id": "2", "name": "Alice Smith", "address": "", "meterNumber": "MTR-002",
            "lastReading": 890,
            "readings": [{
                "id": "r3", "date": "2023-11-15T10:00:00.000Z", "value": 890,
                "consumption": 15, "amount": 42.25, "status": "Unpaid",
            }],
        })

        assert [a.id for a in derive_alerts([customer], now=NOW)] == ["overdue-r3"]
        assert [a.id for a in derive_alerts([customer])] == ["overdue-r3"]


class TestLeakDetection:
    """Test critical leak alerts from the latest insight."""

    def setup_method(self):
        self.customers = [make_customer("1", "John Doe"), make_customer("2", "Alice Smith")]

    def test_high_insight_creates_leak_alert(self):
        insight = Insight(customer_id="2", analysis="Sudden spike, check for leaks.",
                          alert_level=AlertLevel.HIGH)

        alerts = derive_alerts(self.customers, latest_insight=insight, now=NOW)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.id == "leak-2-high"
        assert alert.type == AlertType.CRITICAL_LEAK
        assert alert.severity == AlertSeverity.HIGH
        assert alert.message == "Sudden spike, check for leaks."
        assert alert.customer_name == "Alice Smith"

    @pytest.mark.parametrize("level", [AlertLevel.LOW, AlertLevel.MEDIUM])
    def test_lower_levels_create_no_alert(self, level):
        insight = Insight(customer_id="2", analysis="Looks normal.", alert_level=level)
        assert derive_alerts(self.customers, latest_insight=insight, now=NOW) == []

    def test_insight_for_unknown_customer_is_ignored(self):
        insight = Insight(customer_id="99", analysis="Leak!", alert_level=AlertLevel.HIGH)
        assert derive_alerts(self.customers, latest_insight=insight, now=NOW) == []


class TestOrderingAndFiltering:
    """Test alert order and filter behaviour."""

    def setup_method(self):
        self.customers = [
            make_customer("1", "John Doe",
                          make_reading("a1", days_ago=90),
                          make_reading("a2", days_ago=60)),
            make_customer("2", "Alice Smith",
                          make_reading("b1", days_ago=45)),
        ]
        self.insight = Insight(customer_id="1", analysis="Leak suspected.",
                               alert_level=AlertLevel.HIGH)

    def all_alerts(self, alert_filter=AlertFilter.ALL, dismissed=frozenset()):
        return derive_alerts(
            self.customers,
            latest_insight=self.insight,
            dismissed_ids=dismissed,
            alert_filter=alert_filter,
            now=NOW,
        )

    def test_overdue_first_then_leak(self):
        """Verify customer order, then reading order, then the leak alert."""
        ids = [a.id for a in self.all_alerts()]
        assert ids == ["overdue-a1", "overdue-a2", "overdue-b1", "leak-1-high"]

    def test_overdue_filter(self):
        alerts = self.all_alerts(AlertFilter.OVERDUE_BILL)
        assert [a.id for a in alerts] == ["overdue-a1", "overdue-a2", "overdue-b1"]
        assert all(a.type == AlertType.OVERDUE_BILL for a in alerts)

    def test_leak_filter(self):
        alerts = self.all_alerts(AlertFilter.CRITICAL_LEAK)
        assert [a.id for a in alerts] == ["leak-1-high"]

    def test_filters_partition_all(self):
        """Verify the two type filters split the ALL result exactly."""
        everything = self.all_alerts()
        overdue = self.all_alerts(AlertFilter.OVERDUE_BILL)
        leaks = self.all_alerts(AlertFilter.CRITICAL_LEAK)

        assert set(a.id for a in overdue) & set(a.id for a in leaks) == set()
        assert sorted(a.id for a in overdue + leaks) == sorted(a.id for a in everything)

    def test_inputs_not_mutated(self):
        before = list(self.customers)
        self.all_alerts()
        assert self.customers == before


class TestDismissal:
    """Test dismissing alerts."""

    def setup_method(self):
        self.customers = [
            make_customer("1", "John Doe", make_reading("a1", days_ago=90)),
        ]
        self.insight = Insight(customer_id="1", analysis="Leak suspected.",
                               alert_level=AlertLevel.HIGH)

    @pytest.mark.parametrize("alert_filter", list(AlertFilter))
    @pytest.mark.parametrize("alert_id", ["overdue-a1", "leak-1-high"])
    def test_dismissed_alert_absent_under_every_filter(self, alert_filter, alert_id):
        dismissed = dismiss_alert(frozenset(), alert_id)
        alerts = derive_alerts(self.customers, latest_insight=self.insight,
                               dismissed_ids=dismissed, alert_filter=alert_filter, now=NOW)
        assert alert_id not in [a.id for a in alerts]

    def test_dismiss_is_idempotent(self):
        once = dismiss_alert(frozenset(), "overdue-a1")
        twice = dismiss_alert(once, "overdue-a1")
        assert once == twice == frozenset({"overdue-a1"})

    def test_dismiss_returns_new_set(self):
        original = frozenset({"leak-1-high"})
        updated = dismiss_alert(original, "overdue-a1")
        assert original == frozenset({"leak-1-high"})
        assert updated == frozenset({"leak-1-high", "overdue-a1"})

    def test_dismissal_survives_repeated_derivation(self):
        """Verify an unchanged reading does not bring a dismissed alert back."""
        dismissed = dismiss_alert(frozenset(), "overdue-a1")
        for _ in range(3):
            alerts = derive_alerts(self.customers, dismissed_ids=dismissed, now=NOW)
            assert alerts == []

    def test_plain_set_accepted(self):
        alerts = derive_alerts(self.customers, latest_insight=self.insight,
                               dismissed_ids={"leak-1-high"}, now=NOW)
        assert [a.id for a in alerts] == ["overdue-a1"]
