"""
Dashboard summary and consumption history.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Tuple

from aquaflow.storage.models import Customer, ReadingStatus


@dataclass(frozen=True)
class DashboardSummary:
    """Totals shown on the dashboard."""
    total_revenue: float
    total_unpaid: float
    active_meters: int


def _sum_amounts(amounts: Iterable[float]) -> float:
    total = sum((Decimal(str(a)) for a in amounts), Decimal("0"))
    return float(total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def summarize(customers: Iterable[Customer]) -> DashboardSummary:
    """Compute revenue, outstanding balance and meter count.

    Revenue counts every invoice regardless of status; the unpaid total
    counts only UNPAID invoices.
    """
    customers = list(customers)
    readings = [r for c in customers for r in c.readings]
    return DashboardSummary(
        total_revenue=_sum_amounts(r.amount for r in readings),
        total_unpaid=_sum_amounts(
            r.amount for r in readings if r.status == ReadingStatus.UNPAID
        ),
        active_meters=len(customers),
    )


def recent_consumption(customer: Customer, limit: int = 5) -> List[Tuple[datetime, float]]:
    """The last ``limit`` readings as (date, consumption), oldest first."""
    if limit <= 0:
        return []
    return [(r.date, r.consumption) for r in customer.readings[-limit:]]
