from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

SERVICE_FEE_PER_NIGHT = Decimal("50")
CLEANING_FEE = Decimal("200")


@dataclass(frozen=True)
class FeeBreakdown:
    nights: int
    service_fee_per_night: Decimal
    cleaning_fee: Decimal
    insurance_cost: Decimal
    service_fee_total: Decimal
    total_fee: Decimal


def _to_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _to_decimal(value: Any, default: Decimal) -> Decimal:
    if value is None:
        return default
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return amount if amount.is_finite() else default


def calculate_nights(start: Any, end: Any) -> int:
    """
    Whole nights between two dates, never less than one.

    Unparseable dates count as a single night so fee arithmetic stays defined.
    """
    start_date = _to_date(start)
    end_date = _to_date(end)
    if start_date is None or end_date is None:
        return 1
    return max(1, (end_date - start_date).days)


def calculate_booking_fees(
    *,
    start_date: Any,
    end_date: Any,
    service_fee_per_night: Any = None,
    cleaning_fee: Any = None,
    insurance_cost: Any = None,
) -> FeeBreakdown:
    per_night = _to_decimal(service_fee_per_night, SERVICE_FEE_PER_NIGHT)
    cleaning = _to_decimal(cleaning_fee, CLEANING_FEE)
    insurance = _to_decimal(insurance_cost, Decimal("0"))
    nights = calculate_nights(start_date, end_date)
    service_fee_total = per_night * nights
    return FeeBreakdown(
        nights=nights,
        service_fee_per_night=per_night,
        cleaning_fee=cleaning,
        insurance_cost=insurance,
        service_fee_total=service_fee_total,
        total_fee=service_fee_total + cleaning + insurance,
    )


def booking_fees(booking) -> FeeBreakdown:
    return calculate_booking_fees(
        start_date=booking.start_date,
        end_date=booking.end_date,
        service_fee_per_night=booking.service_fee_per_night,
        cleaning_fee=booking.cleaning_fee,
        insurance_cost=booking.insurance_cost,
    )


def clamp_points(requested: Any, balance: int, nights: int) -> int:
    """Points that may be redeemed: at most one per night and never more than the balance."""
    try:
        requested_value = float(requested)
    except (TypeError, ValueError):
        requested_value = 0.0
    if not math.isfinite(requested_value):
        requested_value = 0.0
    normalized = max(0, math.floor(requested_value))
    max_points = max(0, min(int(balance), int(nights)))
    return min(normalized, max_points)


def points_value(points: int, fees: FeeBreakdown) -> Decimal:
    return fees.service_fee_per_night * points


def cash_due_for(fees: FeeBreakdown, points: int) -> Decimal:
    return max(fees.total_fee - points_value(points, fees), Decimal("0"))
