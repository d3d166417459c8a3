"""SMS transport and message text for booking updates."""

import logging
import re

from twilio.rest import Client

from ..core.config import settings

logger = logging.getLogger(__name__)


def format_philippine_number(phone: str) -> str:
    """Normalize a Philippine mobile number to ``+63XXXXXXXXXX``.

    Raises ``ValueError`` for anything that is not a 10-digit mobile number
    starting with 9 once the country code or trunk prefix is removed.
    """
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("63"):
        digits = digits[2:]
    elif digits.startswith("0"):
        digits = digits[1:]
    if len(digits) == 11 and digits.startswith("9"):
        digits = digits[-10:]
    if len(digits) != 10:
        raise ValueError(f"Invalid Philippine phone number: expected 10 digits, got {len(digits)}")
    if not digits.startswith("9"):
        raise ValueError("Invalid Philippine mobile number: must start with 9")
    return f"+63{digits}"


def send_sms(phone: str, message: str) -> None:
    """Send an SMS through Twilio. Raises when unconfigured or on API errors."""
    if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_FROM_NUMBER):
        raise RuntimeError("Twilio credentials are not configured")
    to = format_philippine_number(phone)
    Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN).messages.create(
        body=message, from_=settings.TWILIO_FROM_NUMBER, to=to
    )
    logger.info("Sent SMS to %s", to)


def format_booking_sms(
    first_name: str | None,
    pet_name: str | None,
    service_name: str | None,
    status: str,
    booking_id: int,
) -> str:
    name = first_name or "there"
    pet = pet_name or "your pet"
    service = service_name or "service"
    if status == "confirmed":
        return (
            f"Hi {name}, your booking for {pet}'s {service} has been confirmed. "
            f"Booking ID: {booking_id}. Thank you for choosing Rainbow Paws."
        )
    if status == "in_progress":
        return (
            f"Hi {name}, your {service} service for {pet} is now in progress. "
            f"We'll keep you updated. Booking ID: {booking_id}."
        )
    if status == "completed":
        return (
            f"Hi {name}, your {service} service for {pet} has been completed. "
            f"Thank you for trusting us with your beloved pet. Booking ID: {booking_id}."
        )
    if status == "cancelled":
        return (
            f"Hi {name}, your booking for {pet}'s {service} has been cancelled. "
            f"If you have questions, please contact us. Booking ID: {booking_id}."
        )
    return (
        f"Hi {name}, there's an update on your booking for {pet}'s {service}. "
        f"Booking ID: {booking_id}. Please check your account for details."
    )
