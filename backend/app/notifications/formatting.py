from datetime import date, time
from decimal import Decimal, InvalidOperation

BOOKINGS_PATH = "/user/furparent_dashboard/bookings"


def format_booking_date(value: date | None) -> str:
    """``January 5, 2025`` style dates."""
    if value is None:
        return "the scheduled date"
    return f"{value:%B} {value.day}, {value.year}"


def format_booking_time(value: time | None) -> str:
    if value is None:
        return "the scheduled time"
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{value.hour % 12 or 12}:{value.minute:02d} {suffix}"


def format_peso(amount) -> str:
    """Peso amount without trailing zeros for whole values (``₱1500``)."""
    try:
        value = Decimal(str(amount if amount is not None else 0))
    except InvalidOperation:
        return f"₱{amount}"
    if value == value.to_integral_value():
        return f"₱{int(value)}"
    return f"₱{value.quantize(Decimal('0.01'))}"


def booking_link(booking_id: int, show_review: bool = False) -> str:
    link = f"{BOOKINGS_PATH}?bookingId={booking_id}"
    if show_review:
        link += "&showReview=true"
    return link
