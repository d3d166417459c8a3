from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy import DateTime, bindparam, column, func, or_, select, table, text
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from .. import models

# Owned by the booking service; only the status is read here
service_bookings = table("service_bookings", column("id"), column("status"))

_CLOSED_STATUSES = ("cancelled", "completed")


def reminder_exists(db: Session, booking_id: int, reminder_type: str) -> bool:
    return (
        db.query(models.BookingReminder.id)
        .filter(
            models.BookingReminder.booking_id == booking_id,
            models.BookingReminder.reminder_type == reminder_type,
        )
        .first()
        is not None
    )


def create_reminder(
    db: Session, booking_id: int, reminder_type: str, scheduled_time: datetime
) -> models.BookingReminder | None:
    """Insert a reminder unless one of the same type already exists.

    Returns ``None`` when the booking already holds this reminder type.
    """
    if reminder_exists(db, booking_id, reminder_type):
        return None
    db_obj = models.BookingReminder(
        booking_id=booking_id,
        reminder_type=reminder_type,
        scheduled_time=scheduled_time,
        sent=False,
    )
    db.add(db_obj)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent scheduler for the same booking
        db.rollback()
        return None
    db.refresh(db_obj)
    return db_obj


def get_due_reminders(db: Session, now: datetime | None = None, limit: int = 100) -> List[models.BookingReminder]:
    """Unsent reminders that are due for open bookings that still exist."""
    now = now or datetime.now()
    base = (
        select(models.BookingReminder)
        .where(models.BookingReminder.sent.is_(False), models.BookingReminder.scheduled_time <= now)
        .order_by(models.BookingReminder.scheduled_time.asc())
        .limit(limit)
    )
    stmt = base.join(service_bookings, service_bookings.c.id == models.BookingReminder.booking_id).where(
        or_(service_bookings.c.status.is_(None), service_bookings.c.status.notin_(_CLOSED_STATUSES))
    )
    try:
        return list(db.scalars(stmt).all())
    except (OperationalError, ProgrammingError):
        # Legacy deployments without service_bookings; orphans are retired by the caller
        db.rollback()
        return list(db.scalars(base).all())


def mark_reminder_sent(db: Session, reminder: models.BookingReminder, sent_at: datetime | None = None) -> None:
    reminder.sent = True
    reminder.sent_at = sent_at or datetime.now()
    db.commit()


def get_reminder_stats(db: Session, now: datetime | None = None) -> Dict[str, int]:
    now = now or datetime.now()
    R = models.BookingReminder
    total = db.query(func.count(R.id)).scalar() or 0
    sent = db.query(func.count(R.id)).filter(R.sent.is_(True)).scalar() or 0
    overdue = (
        db.query(func.count(R.id))
        .filter(R.sent.is_(False), R.scheduled_time <= now)
        .scalar()
        or 0
    )
    return {
        "total": int(total),
        "pending": int(total - sent - overdue),
        "sent": int(sent),
        "overdue": int(overdue),
    }


def get_review_candidates(db: Session, now: datetime | None = None, limit: int = 50) -> List[Dict[str, Any]]:
    """Completed bookings finished one to seven days ago with no review yet."""
    now = now or datetime.now()
    params = {"start": now - timedelta(days=7), "end": now - timedelta(days=1), "limit": limit}
    typed = [bindparam("start", type_=DateTime), bindparam("end", type_=DateTime)]
    with_reviews = text(
        "SELECT DISTINCT sb.id, sb.user_id, sb.provider_id FROM service_bookings sb "
        "LEFT JOIN reviews r ON sb.id = r.booking_id "
        "WHERE sb.status = 'completed' AND sb.updated_at >= :start AND sb.updated_at <= :end "
        "AND r.id IS NULL LIMIT :limit"
    ).bindparams(*typed)
    without_reviews = text(
        "SELECT sb.id, sb.user_id, sb.provider_id FROM service_bookings sb "
        "WHERE sb.status = 'completed' AND sb.updated_at >= :start AND sb.updated_at <= :end "
        "LIMIT :limit"
    ).bindparams(*typed)
    try:
        rows = db.execute(with_reviews, params).mappings().all()
    except (OperationalError, ProgrammingError):
        db.rollback()
        rows = db.execute(without_reviews, params).mappings().all()
    return [dict(r) for r in rows]


def review_request_sent(db: Session, user_id: int, link: str) -> bool:
    row = db.execute(
        text("SELECT 1 FROM notifications WHERE user_id = :user_id AND link = :link LIMIT 1"),
        {"user_id": user_id, "link": link},
    ).first()
    return row is not None
