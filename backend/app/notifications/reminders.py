"""Booking reminders: seeding future reminder rows and firing the due ones."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List

from sqlalchemy.orm import Session

from ..crud import crud_booking, crud_booking_reminder
from ..db_utils import ensure_booking_reminders_table, ensure_notifications_table
from ..models import BookingNotificationKind, ReminderType
from .formatting import booking_link
from .intents.booking_lifecycle import send_booking_notification
from .service import NotificationService

logger = logging.getLogger(__name__)

REMINDER_OFFSETS = (
    (ReminderType.DAY_BEFORE, timedelta(hours=24)),
    (ReminderType.HOUR_BEFORE, timedelta(hours=1)),
)

REMINDER_KINDS = {
    ReminderType.DAY_BEFORE.value: BookingNotificationKind.REMINDER_24H,
    ReminderType.HOUR_BEFORE.value: BookingNotificationKind.REMINDER_1H,
}


def schedule_reminder(
    service: NotificationService, booking_id: int, reminder_type: ReminderType | str, scheduled_time: datetime
) -> bool:
    """Persist one reminder; returns ``False`` if the booking already has it."""
    ensure_booking_reminders_table(service.engine, service.state)
    reminder_type = ReminderType(reminder_type)
    created = crud_booking_reminder.create_reminder(service.db, booking_id, reminder_type.value, scheduled_time)
    return created is not None


def schedule_booking_reminders(
    service: NotificationService, booking_id: int, now: datetime | None = None
) -> List[str]:
    """Seed the 24h and 1h reminders for a booking's appointment.

    Offsets that already lie in the past are skipped. Raises ``LookupError``
    when the booking does not exist or has no appointment time.
    """
    booking = crud_booking.get_booking_context(service.db, booking_id)
    if booking is None:
        raise LookupError(f"Booking {booking_id} not found")
    appointment = booking.scheduled_at
    if appointment is None:
        raise LookupError(f"Booking {booking_id} has no appointment date and time")

    now = now or datetime.now()
    scheduled: List[str] = []
    for reminder_type, offset in REMINDER_OFFSETS:
        when = appointment - offset
        if when <= now:
            continue
        if schedule_reminder(service, booking.id, reminder_type, when):
            scheduled.append(reminder_type.value)
    logger.info("Scheduled reminders %s for booking %s", scheduled, booking_id)
    return scheduled


def process_pending_reminders(service: NotificationService, now: datetime | None = None) -> Dict[str, int]:
    """Send every due reminder once; delivery failures stay unsent for the next run.

    Reminders that can never be delivered (their booking is gone or their type
    is unknown) are retired as sent and counted as failed.
    """
    ensure_booking_reminders_table(service.engine, service.state)
    processed = failed = 0
    for reminder in crud_booking_reminder.get_due_reminders(service.db, now=now):
        booking_id, reminder_id = reminder.booking_id, reminder.id
        kind = REMINDER_KINDS.get(reminder.reminder_type)
        if kind is None:
            logger.warning("Retiring reminder %s with unknown type %r", reminder_id, reminder.reminder_type)
            crud_booking_reminder.mark_reminder_sent(service.db, reminder)
            failed += 1
            continue
        if crud_booking.get_booking_context(service.db, booking_id) is None:
            logger.warning("Retiring reminder %s: booking %s no longer exists", reminder_id, booking_id)
            crud_booking_reminder.mark_reminder_sent(service.db, reminder)
            failed += 1
            continue
        try:
            result = send_booking_notification(service, booking_id, kind)
        except Exception as exc:
            service.db.rollback()
            logger.warning("Reminder %s for booking %s failed: %s", reminder_id, booking_id, exc)
            failed += 1
            continue
        if result.success:
            crud_booking_reminder.mark_reminder_sent(service.db, reminder)
            processed += 1
        else:
            logger.warning("Reminder %s for booking %s not sent: %s", reminder_id, booking_id, result.error)
            failed += 1
    return {"processed": processed, "failed": failed}


def process_review_requests(service: NotificationService, now: datetime | None = None) -> int:
    """Ask owners of recently completed bookings for a review, once per booking."""
    ensure_notifications_table(service.engine, service.state)
    sent = 0
    for candidate in crud_booking_reminder.get_review_candidates(service.db, now=now):
        link = booking_link(candidate["id"], show_review=True)
        if crud_booking_reminder.review_request_sent(service.db, candidate["user_id"], link):
            continue
        result = send_booking_notification(service, candidate["id"], BookingNotificationKind.REVIEW_REQUEST)
        if result.success:
            sent += 1
        else:
            logger.warning("Review request for booking %s failed: %s", candidate["id"], result.error)
    return sent


def get_reminder_stats(db: Session, now: datetime | None = None) -> Dict[str, int]:
    return crud_booking_reminder.get_reminder_stats(db, now=now)
