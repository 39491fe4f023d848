"""
Alert derivation for overdue bills and leaks.

Alerts are never stored. They are recomputed on every query from the
customers' readings, the latest AI insight and the set of alert ids the
user has dismissed.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import AbstractSet, FrozenSet, Iterable, List, Optional

from aquaflow.storage.models import AlertLevel, Customer, Insight, ReadingStatus

OVERDUE_AFTER_DAYS = 30


class AlertType(Enum):
    """Kinds of alert shown to the user."""
    OVERDUE_BILL = "Overdue Bill"
    CRITICAL_LEAK = "Critical Leak"


class AlertSeverity(Enum):
    """Severity levels for derived alerts."""
    HIGH = "high"
    MEDIUM = "medium"


class AlertFilter(Enum):
    """Alert list filter."""
    ALL = "All"
    OVERDUE_BILL = "Overdue Bill"
    CRITICAL_LEAK = "Critical Leak"

    def matches(self, alert_type: AlertType) -> bool:
        """Whether an alert of the given type passes this filter."""
        return self is AlertFilter.ALL or self.value == alert_type.value


@dataclass(frozen=True)
class Alert:
    """Derived alert with a deterministic id."""
    id: str
    type: AlertType
    message: str
    customer_id: str
    customer_name: str
    severity: AlertSeverity


def overdue_alert_id(reading_id: str) -> str:
    return f"overdue-{reading_id}"


def leak_alert_id(customer_id: str, alert_level: AlertLevel) -> str:
    return f"leak-{customer_id}-{alert_level.value}"


def derive_alerts(
    customers: Iterable[Customer],
    latest_insight: Optional[Insight] = None,
    dismissed_ids: AbstractSet[str] = frozenset(),
    alert_filter: AlertFilter = AlertFilter.ALL,
    now: Optional[datetime] = None,
) -> List[Alert]:
    """Derive the ordered list of active alerts.

    Rules:
    - Overdue bill (HIGH): an unpaid reading dated strictly more than
      30 days before ``now``. One alert per reading.
    - Critical leak (HIGH): the latest insight has alert level HIGH and
      belongs to a known customer. At most one alert.

    Overdue alerts come first, in customer order and then chronological
    reading order, followed by the leak alert. Dismissed ids are skipped
    before the filter is applied.

    Args:
        customers: Customers in display order
        latest_insight: Most recent insight for the focused customer
        dismissed_ids: Alert ids the user has dismissed
        alert_filter: Which alert types to keep
        now: Evaluation time (defaults to now)

    Returns:
        List of alerts (empty if none)
    """
    customers = list(customers)
    now = now or datetime.now()
    cutoff = now - timedelta(days=OVERDUE_AFTER_DAYS)

    alerts = []

    for customer in customers:
        for reading in customer.readings:
            if reading.status != ReadingStatus.UNPAID or not reading.date < cutoff:
                continue
            alert_id = overdue_alert_id(reading.id)
            if alert_id in dismissed_ids:
                continue
            alerts.append(Alert(
                id=alert_id,
                type=AlertType.OVERDUE_BILL,
                message=f"Bill of ${reading.amount:.2f} is overdue by more than {OVERDUE_AFTER_DAYS} days.",
                customer_id=customer.id,
                customer_name=customer.name,
                severity=AlertSeverity.HIGH,
            ))

    if latest_insight is not None and latest_insight.alert_level == AlertLevel.HIGH:
        customer = next((c for c in customers if c.id == latest_insight.customer_id), None)
        alert_id = leak_alert_id(latest_insight.customer_id, latest_insight.alert_level)
        if customer is not None and alert_id not in dismissed_ids:
            alerts.append(Alert(
                id=alert_id,
                type=AlertType.CRITICAL_LEAK,
                message=latest_insight.analysis,
                customer_id=customer.id,
                customer_name=customer.name,
                severity=AlertSeverity.HIGH,
            ))

    return [alert for alert in alerts if alert_filter.matches(alert.type)]


def dismiss_alert(dismissed_ids: AbstractSet[str], alert_id: str) -> FrozenSet[str]:
    """Return a new dismissed set that includes ``alert_id``.

    Dismissing the same id twice has no additional effect.
    """
    return frozenset(dismissed_ids) | {alert_id}
