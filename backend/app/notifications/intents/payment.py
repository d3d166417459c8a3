from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from app.crud import crud_booking
from app.models import NotificationSeverity
from app.models import PaymentNotificationKind as Kind
from app.notifications.formatting import booking_link, format_peso
from app.notifications.service import NotificationService
from app.schemas.notification import BookingContext, NotificationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentRule:
    title: str
    severity: NotificationSeverity
    send_email: bool
    message: Callable[[BookingContext], str]
    sms: Optional[Callable[[BookingContext, Optional[str]], str]] = None


def _subject(b: BookingContext) -> str:
    return f"{b.pet_name or 'your pet'}'s {b.service_name or 'cremation service'}"


def _confirmed_sms(b: BookingContext, first_name: Optional[str]) -> str:
    return (
        f"Hi {first_name or 'there'}! Your payment of {format_peso(b.total_amount)} for {_subject(b)} "
        f"has been confirmed. Booking ID: #{b.id}. Thank you for choosing Rainbow Paws!"
    )


def _failed_sms(b: BookingContext, first_name: Optional[str]) -> str:
    return (
        f"Hi {first_name or 'there'}, your payment for {_subject(b)} could not be processed. "
        f"Please retry payment or contact support. Booking ID: #{b.id}. Rainbow Paws"
    )


PAYMENT_RULES: Dict[Kind, PaymentRule] = {
    Kind.PAYMENT_PENDING: PaymentRule(
        "Payment Pending",
        NotificationSeverity.INFO,
        False,
        lambda b: f"Your payment of {format_peso(b.total_amount)} for {_subject(b)} is being processed.",
    ),
    Kind.PAYMENT_CONFIRMED: PaymentRule(
        "Payment Confirmed",
        NotificationSeverity.SUCCESS,
        True,
        lambda b: f"Your payment of {format_peso(b.total_amount)} for {_subject(b)} has been confirmed.",
        sms=_confirmed_sms,
    ),
    Kind.PAYMENT_FAILED: PaymentRule(
        "Payment Failed",
        NotificationSeverity.ERROR,
        True,
        lambda b: (
            f"Your payment for {_subject(b)} could not be processed. Please try again or contact support."
        ),
        sms=_failed_sms,
    ),
    Kind.PAYMENT_REFUNDED: PaymentRule(
        "Payment Refunded",
        NotificationSeverity.INFO,
        True,
        lambda b: f"Your payment of {format_peso(b.total_amount)} for {_subject(b)} has been refunded.",
    ),
}


def send_payment_notification(
    service: NotificationService,
    booking_id: int,
    kind: Kind | str,
    extra: Mapping[str, Any] | None = None,
) -> NotificationResult:
    """Notify the booking owner about a payment state change."""
    kind = Kind(kind)
    rule = PAYMENT_RULES[kind]

    booking = crud_booking.get_booking_context(service.db, booking_id)
    if booking is None:
        return NotificationResult(success=False, error="Booking not found")
    if extra and extra.get("amount") is not None:
        booking = booking.model_copy(update={"total_amount": extra["amount"]})

    result = service.create_notification(
        booking.user_id,
        rule.title,
        rule.message(booking),
        type=rule.severity.value,
        link=booking_link(booking.id),
        should_send_email=rule.send_email,
    )
    if result.success and rule.sms is not None:
        sms = rule.sms
        service.dispatcher.deliver_sms(service.db, booking.user_id, lambda first_name: sms(booking, first_name))
    return result
