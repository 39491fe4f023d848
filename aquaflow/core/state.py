"""
Explicit application state.

Everything the front end used to keep as ambient view state (focused
customer, OCR value waiting to be confirmed, dismissed alerts, latest
insight, alert filter) lives in one frozen, serialisable container.
Every transition returns a new AppState.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from aquaflow.config.loader import TariffConfig
from aquaflow.core.alerts import Alert, AlertFilter, derive_alerts, dismiss_alert
from aquaflow.core.billing import record_reading
from aquaflow.core.customers import (
    add_scan,
    get_customer,
    mark_reading_paid,
    replace_customer,
)
from aquaflow.storage.models import AlertLevel, Customer, Insight, Reading


@dataclass(frozen=True)
class PendingReading:
    """A meter value extracted by OCR, waiting to be submitted."""
    customer_id: str
    value: str


@dataclass(frozen=True)
class AppState:
    """Complete application state owned by the calling layer."""
    customers: Tuple[Customer, ...] = field(default_factory=tuple)
    selected_customer_id: Optional[str] = None
    pending_reading: Optional[PendingReading] = None
    dismissed_alert_ids: FrozenSet[str] = frozenset()
    latest_insight: Optional[Insight] = None
    alert_filter: AlertFilter = AlertFilter.ALL

    @property
    def selected_customer(self) -> Optional[Customer]:
        if self.selected_customer_id is None:
            return None
        return next((c for c in self.customers if c.id == self.selected_customer_id), None)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise everything except the customers.

        Customers are persisted under their own key, so they are passed
        back in separately to ``from_dict``.
        """
        pending = None
        if self.pending_reading is not None:
            pending = {
                "customerId": self.pending_reading.customer_id,
                "value": self.pending_reading.value,
            }
        return {
            "selectedCustomerId": self.selected_customer_id,
            "pendingReading": pending,
            "dismissedAlertIds": sorted(self.dismissed_alert_ids),
            "latestInsight": self.latest_insight.to_dict() if self.latest_insight else None,
            "alertFilter": self.alert_filter.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], customers: Iterable[Customer] = ()) -> "AppState":
        pending_data = data.get("pendingReading")
        insight_data = data.get("latestInsight")
        return cls(
            customers=tuple(customers),
            selected_customer_id=data.get("selectedCustomerId"),
            pending_reading=PendingReading(
                customer_id=str(pending_data["customerId"]),
                value=str(pending_data["value"]),
            ) if pending_data else None,
            dismissed_alert_ids=frozenset(data.get("dismissedAlertIds") or []),
            latest_insight=Insight.from_dict(insight_data) if insight_data else None,
            alert_filter=AlertFilter(data.get("alertFilter", AlertFilter.ALL.value)),
        )


def _with_customer(state: AppState, customer: Customer) -> AppState:
    return replace(state, customers=tuple(replace_customer(state.customers, customer)))


def register_customer(state: AppState, customer: Customer) -> AppState:
    """Append a new customer.

    Raises:
        ValueError: If a customer with the same id already exists
    """
    if any(c.id == customer.id for c in state.customers):
        raise ValueError(f"Customer {customer.id} already exists")
    return replace(state, customers=state.customers + (customer,))


def select_customer(state: AppState, customer_id: str) -> AppState:
    """Focus a customer. The previous customer's insight is cleared."""
    get_customer(state.customers, customer_id)
    return replace(state, selected_customer_id=customer_id, latest_insight=None)


def submit_reading(
    state: AppState,
    customer_id: str,
    new_value: float,
    config: TariffConfig,
    timestamp: Optional[datetime] = None,
) -> Tuple[AppState, Reading]:
    """Record a reading for a customer and clear their pending OCR value.

    A value staged for a different customer is kept.

    Raises:
        CustomerNotFoundError: If the customer is unknown
        InvalidReadingError: If the value is not above the last reading
    """
    customer = get_customer(state.customers, customer_id)
    updated, reading = record_reading(customer, new_value, config, timestamp=timestamp)
    new_state = _with_customer(state, updated)
    pending = new_state.pending_reading
    if pending is not None and pending.customer_id == customer_id:
        new_state = clear_pending_reading(new_state)
    return new_state, reading


def stage_pending_reading(state: AppState, customer_id: str, value: str) -> AppState:
    """Hold an OCR-extracted value until the user confirms it."""
    get_customer(state.customers, customer_id)
    return replace(state, pending_reading=PendingReading(customer_id=customer_id, value=value))


def clear_pending_reading(state: AppState) -> AppState:
    return replace(state, pending_reading=None)


def apply_insight(
    state: AppState,
    customer_id: str,
    analysis: str,
    alert_level: AlertLevel,
    timestamp: Optional[datetime] = None,
) -> AppState:
    """Store an insight in the customer's scan history and make it the latest."""
    customer = get_customer(state.customers, customer_id)
    updated, _ = add_scan(customer, analysis, alert_level, timestamp=timestamp)
    new_state = _with_customer(state, updated)
    return replace(
        new_state,
        selected_customer_id=customer_id,
        latest_insight=Insight(
            customer_id=customer_id,
            analysis=analysis,
            alert_level=alert_level,
        ),
    )


def pay_reading(state: AppState, customer_id: str, reading_id: str) -> AppState:
    customer = get_customer(state.customers, customer_id)
    return _with_customer(state, mark_reading_paid(customer, reading_id))


def dismiss(state: AppState, alert_id: str) -> AppState:
    return replace(state, dismissed_alert_ids=dismiss_alert(state.dismissed_alert_ids, alert_id))


def set_alert_filter(state: AppState, alert_filter: AlertFilter) -> AppState:
    return replace(state, alert_filter=alert_filter)


def current_alerts(state: AppState, now: Optional[datetime] = None) -> List[Alert]:
    """Alerts for the state's customers, insight, dismissals and filter."""
    return derive_alerts(
        state.customers,
        latest_insight=state.latest_insight,
        dismissed_ids=state.dismissed_alert_ids,
        alert_filter=state.alert_filter,
        now=now,
    )
