"""
Cost Estimator - the one place a booking's price is computed.
Used for the review preview, for submission, and for payment order creation.
"""
from datetime import date, datetime, time
from typing import Optional, Tuple, Union

from ..models.travel_request import TravelRequest


FIRST_TIER_HOURS = 3
FIRST_TIER_RATE = 150  # per hour, first three hours
SECOND_TIER_RATE = 100  # per hour beyond that

TimeLike = Union[str, time, None]
DateLike = Union[str, date, None]


def _parse_time(value: TimeLike) -> Optional[time]:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    try:
        hours, minutes = value.split(":")[:2]
        return time(int(hours), int(minutes))
    except (ValueError, AttributeError):
        return None


def _parse_date(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value[:10])
    except (ValueError, TypeError):
        return None


def cost_for_hours(hours: float) -> float:
    """Two-tier hourly rate; fractional hours are billed proportionally."""
    if hours <= 0:
        return 0.0
    first = min(hours, FIRST_TIER_HOURS) * FIRST_TIER_RATE
    rest = max(hours - FIRST_TIER_HOURS, 0) * SECOND_TIER_RATE
    return float(first + rest)


def estimate_cost(on_date: DateLike, start: TimeLike, end: TimeLike) -> float:
    """
    Price of a service window on one calendar day.

    Missing or unparseable inputs, and windows that do not end after they start, cost 0.
    """
    day = _parse_date(on_date)
    start_time = _parse_time(start)
    end_time = _parse_time(end)
    if day is None or start_time is None or end_time is None:
        return 0.0

    minutes = (datetime.combine(day, end_time) - datetime.combine(day, start_time)).total_seconds() / 60
    if minutes <= 0:
        return 0.0
    return cost_for_hours(minutes / 60)


def service_window(request: TravelRequest) -> Tuple[Optional[str], Optional[str]]:
    """
    Work out when the guide's service starts and ends.

    Meeting at the destination uses the booking's own window, any other pickup
    starts at the pickup time. A pre-booked hospital appointment replaces the
    booking window with the appointment's.
    """
    purpose = request.purpose_data
    prebooked = purpose is not None and purpose.is_prebooked_hospital()
    appointment = purpose.sub_purpose_data.booking_details if prebooked else None
    pickup = request.pickup_data

    if pickup is not None and pickup.pickup_type == "destination":
        start = appointment.start_time if appointment else request.start_time
    else:
        start = pickup.pickup_time if pickup else None

    end = appointment.end_time if appointment else request.end_time
    return start, end


def estimate_request_cost(request: TravelRequest) -> float:
    """Price of a travel request."""
    start, end = service_window(request)
    return estimate_cost(request.requested_date, start, end)


def to_minor_units(amount: float) -> int:
    """Rupees to paise."""
    return int(round(amount * 100))


def describe_cost(request: TravelRequest) -> dict:
    """Cost preview for the review step."""
    start, end = service_window(request)
    return {
        "estimatedCost": estimate_cost(request.requested_date, start, end),
        "serviceStartTime": start,
        "serviceEndTime": end,
        "details": (
            f"Calculated from {start} to {end} at ₹{FIRST_TIER_RATE}/hr for the first "
            f"{FIRST_TIER_HOURS} hours and ₹{SECOND_TIER_RATE}/hr thereafter."
        ),
    }
