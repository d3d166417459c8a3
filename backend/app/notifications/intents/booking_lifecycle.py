"""Booking lifecycle notifications for fur parents and their providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from app.crud import crud_booking
from app.models import BookingNotificationKind as Kind
from app.models import NotificationSeverity
from app.notifications.formatting import booking_link, format_booking_date, format_booking_time
from app.notifications.service import NotificationService
from app.schemas.notification import BookingContext, NotificationResult
from app.utils.email_templates import BookingEmailDetails, booking_confirmation_email, booking_status_update_email
from app.utils.sms import format_booking_sms

logger = logging.getLogger(__name__)

MessageBuilder = Callable[[BookingContext, Mapping[str, Any]], str]

# How the owner hears about a booking event by email
EMAIL_NONE = "none"
EMAIL_PLAIN = "plain"
EMAIL_RICH = "rich"


@dataclass(frozen=True)
class BookingRule:
    title: str
    severity: NotificationSeverity
    email: str
    message: MessageBuilder
    sms_status: Optional[str] = None
    # Status shown by the rich status-update email
    email_status: Optional[str] = None


def _pet(b: BookingContext) -> str:
    return b.pet_name or "your pet"


def _service(b: BookingContext) -> str:
    return b.service_name or "cremation service"


def _provider(b: BookingContext) -> str:
    return b.provider_name or "the service provider"


def cancelled_by_provider(extra: Mapping[str, Any]) -> bool:
    return extra.get("cancelled_by") == "provider" or extra.get("source") == "provider"


def _cancelled_message(b: BookingContext, extra: Mapping[str, Any]) -> str:
    reason = extra.get("reason")
    if cancelled_by_provider(extra):
        message = f"Your booking for {_pet(b)}'s {_service(b)} has been cancelled by the service provider."
        if reason:
            return f"{message} Reason: {reason}"
        return f"{message} Please contact them for more details."
    message = f"Your booking for {_pet(b)}'s {_service(b)} has been cancelled."
    if reason:
        message += f" Reason: {reason}"
    return message


BOOKING_RULES: Dict[Kind, BookingRule] = {
    Kind.BOOKING_CREATED: BookingRule(
        "Booking Created Successfully",
        NotificationSeverity.SUCCESS,
        EMAIL_RICH,
        lambda b, _: (
            f"Your booking for {_pet(b)}'s {_service(b)} with {_provider(b)} "
            "has been created and is pending confirmation."
        ),
    ),
    Kind.BOOKING_CONFIRMED: BookingRule(
        "Booking Confirmed",
        NotificationSeverity.SUCCESS,
        EMAIL_RICH,
        lambda b, _: (
            f"Your booking for {_pet(b)}'s {_service(b)} on {format_booking_date(b.booking_date)} "
            f"at {format_booking_time(b.booking_time)} has been confirmed."
        ),
        sms_status="confirmed",
        email_status="confirmed",
    ),
    Kind.BOOKING_PENDING: BookingRule(
        "Booking Pending Review",
        NotificationSeverity.WARNING,
        EMAIL_NONE,
        lambda b, _: f"Your booking for {_pet(b)}'s {_service(b)} is pending review by {_provider(b)}.",
    ),
    Kind.BOOKING_IN_PROGRESS: BookingRule(
        "Service In Progress",
        NotificationSeverity.INFO,
        EMAIL_RICH,
        lambda b, _: f"The {_service(b)} for {_pet(b)} is now in progress.",
        sms_status="in_progress",
        email_status="in_progress",
    ),
    Kind.BOOKING_COMPLETED: BookingRule(
        "Service Completed",
        NotificationSeverity.SUCCESS,
        EMAIL_RICH,
        lambda b, _: (
            f"The {_service(b)} for {_pet(b)} has been completed. Thank you for choosing our services."
        ),
        sms_status="completed",
        email_status="completed",
    ),
    Kind.BOOKING_CANCELLED: BookingRule(
        "Booking Cancelled",
        NotificationSeverity.WARNING,
        EMAIL_RICH,
        _cancelled_message,
        sms_status="cancelled",
        email_status="cancelled",
    ),
    Kind.REVIEW_REQUEST: BookingRule(
        "Please Review Your Experience",
        NotificationSeverity.INFO,
        EMAIL_NONE,
        lambda b, _: (
            f"How was your experience with {_provider(b)}? Your feedback helps us improve our services."
        ),
    ),
    Kind.REMINDER_24H: BookingRule(
        "Booking Reminder - 24 Hours",
        NotificationSeverity.INFO,
        EMAIL_PLAIN,
        lambda b, _: (
            f"Reminder: Your appointment for {_pet(b)}'s {_service(b)} is scheduled for tomorrow "
            f"at {format_booking_time(b.booking_time)}."
        ),
    ),
    Kind.REMINDER_1H: BookingRule(
        "Booking Reminder - 1 Hour",
        NotificationSeverity.WARNING,
        EMAIL_NONE,
        lambda b, _: (
            f"Reminder: Your appointment for {_pet(b)}'s {_service(b)} is in 1 hour. "
            "Please prepare for the service."
        ),
    ),
}


def _provider_cancelled_message(b: BookingContext, extra: Mapping[str, Any]) -> str:
    if cancelled_by_provider(extra):
        return f"You cancelled the booking for {_pet(b)}'s {_service(b)}."
    return f"The booking for {_pet(b)}'s {_service(b)} has been cancelled by the customer."


@dataclass(frozen=True)
class ProviderRule:
    title: str
    severity: NotificationSeverity
    message: Callable[[BookingContext, Mapping[str, Any]], str]
    link: Callable[[BookingContext], str]


PROVIDER_RULES: Dict[Kind, ProviderRule] = {
    Kind.BOOKING_CREATED: ProviderRule(
        "New Booking Received",
        NotificationSeverity.INFO,
        lambda b, _: f"You have received a new booking for {_pet(b)}'s {_service(b)}.",
        lambda b: f"/cremation/bookings/{b.id}",
    ),
    Kind.BOOKING_PENDING: ProviderRule(
        "Pending Booking Alert",
        NotificationSeverity.INFO,
        lambda b, _: f"You have a pending booking for {_pet(b)} that requires your attention.",
        lambda b: "/cremation/bookings?status=pending",
    ),
    Kind.BOOKING_CANCELLED: ProviderRule(
        "Booking Cancelled",
        NotificationSeverity.WARNING,
        _provider_cancelled_message,
        lambda b: f"/cremation/bookings/{b.id}",
    ),
}


def booking_message(kind: Kind | str, booking: BookingContext, extra: Mapping[str, Any] | None = None) -> str:
    return BOOKING_RULES[Kind(kind)].message(booking, extra or {})


def _email_details(booking: BookingContext, recipient: Mapping[str, Any], app_url: str, status: str, notes: str | None) -> BookingEmailDetails:
    customer = " ".join(p for p in (recipient.get("first_name"), recipient.get("last_name")) if p)
    return BookingEmailDetails(
        customer_name=customer or "Valued Customer",
        service_name=_service(booking),
        provider_name=_provider(booking),
        booking_date=format_booking_date(booking.booking_date),
        booking_time=format_booking_time(booking.booking_time),
        pet_name=_pet(booking),
        booking_id=booking.id,
        app_url=app_url,
        status=status,
        notes=notes,
    )


def _send_booking_email(
    service: NotificationService,
    booking: BookingContext,
    kind: Kind,
    rule: BookingRule,
    extra: Mapping[str, Any],
) -> None:
    dispatcher = service.dispatcher
    recipient = dispatcher.recipient_for_email(service.db, booking.user_id)
    if recipient is None:
        return
    try:
        notes = extra.get("notes") or extra.get("reason")
        if kind == Kind.BOOKING_CREATED:
            email = booking_confirmation_email(_email_details(booking, recipient, dispatcher.app_url, "pending", None))
        else:
            email = booking_status_update_email(
                _email_details(booking, recipient, dispatcher.app_url, rule.email_status or "pending", notes)
            )
    except Exception as exc:  # pragma: no cover - best effort
        logger.warning("Booking email render for %s failed: %s", booking.id, exc)
        return
    dispatcher.send_rich_email(recipient["email"], email)


def notify_provider(
    service: NotificationService,
    booking: BookingContext,
    kind: Kind,
    extra: Mapping[str, Any] | None = None,
) -> NotificationResult | None:
    """Echo a booking event to the provider's business account."""
    rule = PROVIDER_RULES.get(kind)
    if rule is None:
        return None
    provider_user_id = crud_booking.resolve_provider_user_id(service.db, booking.provider_id)
    if provider_user_id is None:
        logger.info("No provider account found for booking %s", booking.id)
        return None
    result = service.create_business_notification(
        provider_user_id,
        rule.title,
        rule.message(booking, extra or {}),
        type=rule.severity.value,
        link=rule.link(booking),
        should_send_email=True,
    )
    if not result.success:
        logger.warning("Provider notification for booking %s failed: %s", booking.id, result.error)
    return result


def send_booking_notification(
    service: NotificationService,
    booking_id: int,
    kind: Kind | str,
    extra: Mapping[str, Any] | None = None,
) -> NotificationResult:
    """Notify a fur parent about a booking event.

    Raises ``ValueError`` for an unknown kind. A missing booking yields an
    unsuccessful result rather than an exception.
    """
    kind = Kind(kind)
    extra = dict(extra or {})
    rule = BOOKING_RULES[kind]

    booking = crud_booking.get_booking_context(service.db, booking_id)
    if booking is None:
        return NotificationResult(success=False, error="Booking not found")

    link = booking_link(booking.id, show_review=kind == Kind.REVIEW_REQUEST)
    result = service.create_notification(
        booking.user_id,
        rule.title,
        rule.message(booking, extra),
        type=rule.severity.value,
        link=link,
        # Rich kinds get their own template below; one email per event
        should_send_email=rule.email == EMAIL_PLAIN,
    )
    if not result.success:
        return result

    if rule.email == EMAIL_RICH:
        _send_booking_email(service, booking, kind, rule, extra)

    if rule.sms_status:
        service.dispatcher.deliver_sms(
            service.db,
            booking.user_id,
            lambda first_name: format_booking_sms(
                first_name, booking.pet_name, booking.service_name, rule.sms_status, booking.id
            ),
        )

    if kind in PROVIDER_RULES:
        try:
            notify_provider(service, booking, kind, extra)
        except Exception as exc:  # pragma: no cover - best effort
            logger.warning("Provider echo for booking %s failed: %s", booking.id, exc)

    return result
