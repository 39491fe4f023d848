"""
Tiered billing calculations.

Computes invoice amounts from consumption using a three-tier progressive
rate schedule and records new meter readings against a customer.
"""

import math
from dataclasses import replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple, Union

from aquaflow.config.loader import TariffConfig
from aquaflow.storage.models import Customer, Reading, ReadingStatus, generate_id
from aquaflow.utils.logger import get_logger

logger = get_logger(__name__)

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


class InvalidReadingError(ValueError):
    """Raised when a meter value cannot be recorded."""


def _to_decimal(value: Number) -> Decimal:
    # str() gives the shortest repr, so 0.1 becomes exactly one tenth
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def compute_bill(consumption: Number, config: TariffConfig) -> float:
    """Calculate the invoice amount for a consumption.

    The usage charge is marginal: each tier's rate applies only to the
    units that fall inside that tier.

    Args:
        consumption: Units consumed since the previous reading
        config: Tariff schedule

    Returns:
        Base fee plus usage charge, rounded half away from zero
        (ROUND_HALF_UP) to 2 decimal places

    Negative consumption is not rejected and yields a negative usage charge.
    """
    usage = _to_decimal(consumption)
    base_fee = _to_decimal(config.base_fee)
    tier1_limit = _to_decimal(config.tier1_limit)
    tier1_rate = _to_decimal(config.tier1_rate)
    tier2_limit = _to_decimal(config.tier2_limit)
    tier2_rate = _to_decimal(config.tier2_rate)
    tier3_rate = _to_decimal(config.tier3_rate)

    if usage <= tier1_limit:
        usage_charge = usage * tier1_rate
    elif usage <= tier2_limit:
        usage_charge = (tier1_limit * tier1_rate
                        + (usage - tier1_limit) * tier2_rate)
    else:
        usage_charge = (tier1_limit * tier1_rate
                        + (tier2_limit - tier1_limit) * tier2_rate
                        + (usage - tier2_limit) * tier3_rate)

    total = base_fee + usage_charge
    return float(total.quantize(CENT, rounding=ROUND_HALF_UP))


def parse_meter_value(text: str) -> float:
    """Parse a typed or OCR-extracted meter value.

    Thousands separators are stripped, so "1,260.5" parses as 1260.5.

    Raises:
        InvalidReadingError: If the text is empty, not numeric or not finite
    """
    if text is None:
        raise InvalidReadingError("meter value is required")
    cleaned = str(text).replace(",", "").strip()
    if not cleaned:
        raise InvalidReadingError("meter value is required")
    try:
        value = float(cleaned)
    except ValueError:
        raise InvalidReadingError(f"meter value is not a number: {text!r}")
    if not math.isfinite(value):
        raise InvalidReadingError(f"meter value must be finite: {text!r}")
    return value


def record_reading(
    customer: Customer,
    new_value: Number,
    config: TariffConfig,
    timestamp: Optional[datetime] = None,
    reading_id: Optional[str] = None,
) -> Tuple[Customer, Reading]:
    """Record a new cumulative meter value and bill the consumption.

    Args:
        customer: Customer the meter belongs to
        new_value: New cumulative meter value
        config: Tariff used to price the consumption
        timestamp: Reading date (defaults to now)
        reading_id: Reading identifier (defaults to a generated id)

    Returns:
        Tuple of (updated customer, new reading). The input customer is
        left unchanged.

    Raises:
        InvalidReadingError: If new_value is not greater than the last reading
    """
    new_value = float(new_value)
    if new_value <= customer.last_reading:
        raise InvalidReadingError(
            f"New reading {new_value:g} must be higher than the last reading "
            f"{customer.last_reading:g} for customer {customer.id}"
        )

    consumption = float(_to_decimal(new_value) - _to_decimal(customer.last_reading))
    amount = compute_bill(consumption, config)

    reading = Reading(
        id=reading_id or generate_id(),
        date=timestamp or datetime.now(),
        value=new_value,
        consumption=consumption,
        amount=amount,
        status=ReadingStatus.UNPAID,
    )
    updated = replace(
        customer,
        last_reading=new_value,
        readings=customer.readings + (reading,),
    )

    logger.info(
        "Recorded reading %s for customer %s: %.2f units, $%.2f",
        reading.id, customer.id, consumption, amount,
    )
    return updated, reading
