"""
Demo customers used when the store has never been written.
"""

from datetime import datetime
from typing import List

from .models import Customer, Reading, ReadingStatus


def initial_customers() -> List[Customer]:
    """Return the two demo customers the application starts with."""
    return [
        Customer(
            id="1",
            name="John Doe",
            address="123 River Road",
            meter_number="MTR-001",
            last_reading=1250,
            readings=(
                Reading(id="r1", date=datetime(2023, 10, 1), value=1200,
                        consumption=25, amount=52.5, status=ReadingStatus.PAID),
                Reading(id="r2", date=datetime(2023, 11, 1), value=1250,
                        consumption=50, amount=110.0, status=ReadingStatus.PAID),
            ),
        ),
        Customer(
            id="2",
            name="Alice Smith",
            address="456 Hill Street",
            meter_number="MTR-002",
            last_reading=890,
            readings=(
                Reading(id="r3", date=datetime(2023, 11, 15), value=890,
                        consumption=15, amount=42.25, status=ReadingStatus.UNPAID),
            ),
        ),
    ]
